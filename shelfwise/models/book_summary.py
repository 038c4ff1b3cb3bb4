"""BookSummary ORM - a patron-written summary moving through the Review Workflow.

Invariants:
    - (patron_barcode, book_barcode) is unique: one summary per patron per book, ever
    - status transitions: pending -> approved | rejected (terminal)
    - points is 0 unless approved, and never changes after review
    - rating is 1-5
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Text, Integer, Boolean, DateTime, ForeignKey, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class BookSummary(Base):
    __tablename__ = "book_summaries"
    __table_args__ = (
        UniqueConstraint(
            "patron_barcode", "book_barcode", name="uq_book_summaries_patron_book",
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_book_summaries_rating"),
        Index("ix_book_summaries_patron_submitted", "patron_barcode", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    patron_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patrons.id"), nullable=False,
    )
    patron_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    patron_name: Mapped[str] = mapped_column(String(300), nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False,
    )
    book_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    book_title: Mapped[str] = mapped_column(String(300), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    review_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    staff_created: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
