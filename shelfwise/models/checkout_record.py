"""CheckoutRecord ORM - one entry of an item's append-only checkout log.

Invariants:
    - (item_id, sequence) is unique; sequence starts at 1 per item
    - At most one record per item has returned_at unset, and it has the
      highest sequence (partial unique index uq_checkout_records_open_item)
    - At most one open record per patron (uq_checkout_records_open_patron)
    - Records are never deleted; only due_date, renewed_at, returned_at change

Design Decisions:
    - borrower_name / contact_info are copied at checkout time so the log reads
      the same after the patron record changes
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class CheckoutRecord(Base):
    __tablename__ = "checkout_records"
    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_checkout_records_item_sequence"),
        Index(
            "uq_checkout_records_open_item", "item_id", unique=True,
            postgresql_where=text("returned_at IS NULL"),
            sqlite_where=text("returned_at IS NULL"),
        ),
        Index(
            "uq_checkout_records_open_patron", "patron_id", unique=True,
            postgresql_where=text("returned_at IS NULL"),
            sqlite_where=text("returned_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    patron_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patrons.id"), nullable=False,
    )
    borrower_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    borrower_name: Mapped[str] = mapped_column(String(300), nullable=False)
    contact_info: Mapped[str] = mapped_column(String(64), nullable=False)
    event_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    checked_out_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    renewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    returned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
