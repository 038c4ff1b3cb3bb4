"""Attendance ORM - append-only fact that a patron attended a class.

Invariants:
    - (patron_barcode, class_name, class_date) is unique
    - Never mutated after creation
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    String, Text, Integer, Date, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class Attendance(Base):
    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint(
            "patron_barcode", "class_name", "class_date",
            name="uq_attendances_patron_class_date",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    patron_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patrons.id"), nullable=False,
    )
    patron_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    patron_name: Mapped[str] = mapped_column(String(300), nullable=False)
    class_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default="literacy",
    )
    class_name: Mapped[str] = mapped_column(String(200), nullable=False)
    class_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    attended_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    marked_by: Mapped[str] = mapped_column(String(200), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
