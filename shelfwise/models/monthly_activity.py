"""MonthlyActivity ORM - one Engagement Ledger row per (patron, year, month).

Invariants:
    - (patron_id, year, month) is unique; month is 1-12
    - Counters and point totals only ever grow
    - activity_score and rank are a cache written by the Ranking Engine, never
      by record_activity
    - Rows are never deleted

Design Decisions:
    - patron_barcode / patron_name denormalized: leaderboard reads need no join
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Integer, Boolean, DateTime, ForeignKey, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from shelfwise.db.base import Base


class MonthlyActivity(Base):
    __tablename__ = "monthly_activities"
    __table_args__ = (
        UniqueConstraint(
            "patron_id", "year", "month", name="uq_monthly_activities_patron_month",
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_activities_month"),
        Index("ix_monthly_activities_month_score", "year", "month", "activity_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    patron_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("patrons.id"), nullable=False,
    )
    patron_barcode: Mapped[str] = mapped_column(String(64), nullable=False)
    patron_name: Mapped[str] = mapped_column(String(300), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    # Counters
    books_checked_out: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    books_returned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    classes_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    summaries_submitted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    summaries_approved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Points
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_from_books: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_from_attendance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_from_summaries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ranking cache
    activity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
