"""Dashboard Aggregator - counts for the staff dashboard. Read-only."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.core.clock import ensure_utc, utc_now
from shelfwise.core.dashboard_stats import compose_dashboard
from shelfwise.core.enforce_circulation import is_overdue, is_overdue_by_more_than
from shelfwise.models.checkout_record import CheckoutRecord
from shelfwise.models.item import Item
from shelfwise.models.patron import Patron


async def build_dashboard(
    db: AsyncSession, overdue_alert_days: int = 30, now: datetime | None = None,
) -> dict:
    now = ensure_utc(now or utc_now())

    total_items = (await db.execute(select(func.count(Item.id)))).scalar_one()
    total_borrowed = (await db.execute(
        select(func.count(Item.id)).where(Item.available.is_(False)),
    )).scalar_one()

    due_dates = (await db.execute(
        select(CheckoutRecord.due_date).where(CheckoutRecord.returned_at.is_(None)),
    )).scalars().all()

    patron_counts = (await db.execute(
        select(Patron.patron_type, Patron.gender, func.count(Patron.id))
        .group_by(Patron.patron_type, Patron.gender),
    )).all()
    active_patrons = (await db.execute(
        select(func.count(Patron.id)).where(Patron.active.is_(True)),
    )).scalar_one()

    return compose_dashboard(
        total_items=total_items,
        total_borrowed=total_borrowed,
        total_overdues=sum(1 for d in due_dates if is_overdue(d, now)),
        overdue_over_threshold=sum(
            1 for d in due_dates if is_overdue_by_more_than(d, now, overdue_alert_days)
        ),
        overdue_threshold_days=overdue_alert_days,
        patron_counts=[tuple(row) for row in patron_counts],
        active_patrons=active_patrons,
    )
