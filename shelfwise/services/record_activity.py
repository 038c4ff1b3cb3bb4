"""Engagement Ledger - keyed, idempotent upsert of monthly activity counters.

Invariants:
    - One row per (patron, year, month), created lazily on the first event
    - Every non-zero delta field is ADDED to the stored value; nothing is overwritten
      except identity fields (patron_barcode, patron_name) and is_active
    - An already-recorded event_key makes the call a no-op (returns False)
    - activity_score and rank are never touched here
    - Never commits: runs inside the caller's atomic() unit

Design Decisions:
    - SELECT ... FOR UPDATE on the ledger row serializes concurrent increments on
      PostgreSQL; a lost insert race surfaces through flush_or_conflict
    - award_points increments patron.points in SQL (points = points + n)
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.core.activity_ledger import ActivityDelta, apply_delta
from shelfwise.core.clock import validate_month
from shelfwise.core.errors import ErrorContext, PreconditionFailedError
from shelfwise.infrastructure.database import flush_or_conflict
from shelfwise.models.activity_event import ActivityEvent
from shelfwise.models.monthly_activity import MonthlyActivity
from shelfwise.models.patron import Patron

logger = logging.getLogger(__name__)


async def record_activity(
    db: AsyncSession,
    patron: Patron,
    year: int,
    month: int,
    delta: ActivityDelta,
    event_key: str | None = None,
) -> bool:
    """Add delta to the patron's (year, month) ledger row. Returns False on replay."""
    validate_month(year, month)
    ctx = ErrorContext(patron_barcode=patron.barcode)

    if event_key is not None:
        seen = await db.execute(
            select(ActivityEvent.id).where(ActivityEvent.event_key == event_key),
        )
        if seen.scalar_one_or_none() is not None:
            logger.info(
                f"Ledger event {event_key} already recorded, skipping",
                extra={"event_key": event_key, "patron_barcode": patron.barcode},
            )
            return False
        db.add(ActivityEvent(
            event_key=event_key, patron_id=patron.id, year=year, month=month,
        ))
        await flush_or_conflict(
            db, f"Ledger event {event_key} was recorded concurrently", ctx,
        )

    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.patron_id == patron.id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
        .with_for_update()
        .execution_options(populate_existing=True),
    )
    row = result.scalar_one_or_none()

    if row is None:
        row = MonthlyActivity(
            patron_id=patron.id,
            patron_barcode=patron.barcode,
            patron_name=patron.display_name,
            year=year,
            month=month,
            is_active=True,
            **delta.increments(),
        )
        db.add(row)
    else:
        current = {name: getattr(row, name) for name in delta.increments()}
        for name, value in apply_delta(current, delta).items():
            setattr(row, name, value)
        row.patron_barcode = patron.barcode
        row.patron_name = patron.display_name
        row.is_active = True

    await flush_or_conflict(
        db, "Concurrent update of the activity ledger, please retry", ctx,
    )
    logger.info(
        f"Ledger updated for {patron.barcode} {year}-{month:02d}: {delta.increments()}",
        extra={
            "patron_barcode": patron.barcode, "year": year, "month": month,
            "event_key": event_key,
        },
    )
    return True


async def award_points(db: AsyncSession, patron: Patron, points: int) -> None:
    """Add points to the patron's running total. Zero is a no-op; negative is refused."""
    if points < 0:
        raise PreconditionFailedError(
            "Points awarded must be zero or more.", "INVALID_POINTS",
            ErrorContext(patron_barcode=patron.barcode),
        )
    if points == 0:
        return
    await db.execute(
        update(Patron)
        .where(Patron.id == patron.id)
        .values(points=Patron.points + points)
        .execution_options(synchronize_session=False),
    )
    await db.refresh(patron, attribute_names=["points"])
