"""PatronBorrowing ORM - the patron-side mirror of a checkout record.

Invariants:
    - One row per CheckoutRecord (checkout_record_id unique)
    - Distinct item_barcode values form the patron's borrowed history, which
      authorizes summary submission
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class PatronBorrowing(Base):
    __tablename__ = "patron_borrowings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    patron_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patrons.id"), nullable=False, index=True,
    )
    checkout_record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("checkout_records.id"),
        nullable=False, unique=True,
    )
    item_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    item_title: Mapped[str] = mapped_column(String(300), nullable=False)
    item_subtitle: Mapped[str | None] = mapped_column(String(300), nullable=True)
    event_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    checked_out_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
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
