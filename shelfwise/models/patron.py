"""Patron ORM - a library member who borrows, attends classes and writes summaries.

Invariants:
    - barcode is unique
    - has_open_loan is true iff exactly one open CheckoutRecord names this patron
      (backed by the partial unique index on checkout_records.patron_id)
    - points never decreases; it is only ever incremented in SQL
    - active == False means suspended: no checkout, no attendance, not listed
      among the month's inactive patrons
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Boolean, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class Patron(Base):
    __tablename__ = "patrons"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_patrons_points_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    barcode: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True,
    )
    firstname: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    middlename: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    parent_phone_number: Mapped[str | None] = mapped_column(
        String(32), nullable=True,
    )
    patron_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="student",
    )
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    photo_public_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    has_open_loan: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self) -> str:
        return f"{self.firstname} {self.surname}"
