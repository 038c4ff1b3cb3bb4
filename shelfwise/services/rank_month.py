"""Ranking Engine (shell half) - load, rank and persist a month's leaderboard.

Invariants:
    - Scores are always recomputed from counters before ranking
    - When persisting, score and rank are written back under row locks
      (SELECT ... FOR UPDATE) in one atomic() unit
    - Stats cover every ranked row, not only the returned top `limit`
    - Inactive patrons = non-suspended patrons with no ledger row this month

Design Decisions:
    - Ordering lives in core/ranking.py; this module only does IO
    - recompute_month always persists unless told otherwise; the leaderboard
      read persists only when persist_ranks_on_read is enabled
"""

import logging
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.core.activity_ledger import COUNTER_FIELDS, POINT_FIELDS
from shelfwise.core.clock import validate_month
from shelfwise.core.errors import ValidationError
from shelfwise.core.ranking import DEFAULT_TIE_BREAK, compute_month_stats, rank_activities
from shelfwise.core.scoring import DEFAULT_WEIGHTS, ScoreWeights
from shelfwise.infrastructure.database import atomic
from shelfwise.models.monthly_activity import MonthlyActivity
from shelfwise.models.patron import Patron

logger = logging.getLogger(__name__)


def _snapshot(row: MonthlyActivity) -> dict:
    snap = {
        "patron_id": str(row.patron_id),
        "patron_barcode": row.patron_barcode,
        "patron_name": row.patron_name,
        "year": row.year,
        "month": row.month,
        "is_active": row.is_active,
    }
    for name in COUNTER_FIELDS + POINT_FIELDS:
        snap[name] = getattr(row, name)
    return snap


def _check_month(year: int, month: int) -> None:
    try:
        validate_month(year, month)
    except ValueError as e:
        raise ValidationError(str(e), "month") from e


async def _rank_all(
    db: AsyncSession,
    year: int,
    month: int,
    weights: ScoreWeights,
    tie_break: Sequence[str],
    persist: bool,
) -> list[dict]:
    _check_month(year, month)
    query = (
        select(MonthlyActivity)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
        .execution_options(populate_existing=True)
    )
    if persist:
        query = query.with_for_update()

    async with atomic(db):
        result = await db.execute(query)
        rows = {str(r.patron_id): r for r in result.scalars().all()}
        ranked = rank_activities(
            [_snapshot(r) for r in rows.values()], weights, tie_break,
        )
        if persist:
            for entry in ranked:
                row = rows[entry["patron_id"]]
                row.activity_score = entry["activity_score"]
                row.rank = entry["rank"]

    if persist:
        logger.info(
            f"Persisted ranks for {len(ranked)} patrons in {year}-{month:02d}",
            extra={"year": year, "month": month},
        )
    return ranked


async def recompute_month(
    db: AsyncSession,
    year: int,
    month: int,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    tie_break: Sequence[str] = DEFAULT_TIE_BREAK,
    limit: int = 100,
    persist: bool = True,
) -> list[dict]:
    """Rank (year, month) and return the top `limit` rows."""
    ranked = await _rank_all(db, year, month, weights, tie_break, persist)
    return ranked[:limit]


async def get_monthly_leaderboard(
    db: AsyncSession,
    year: int,
    month: int,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    tie_break: Sequence[str] = DEFAULT_TIE_BREAK,
    limit: int = 100,
    persist: bool = True,
    inactive_cap: int = 20,
) -> dict:
    """Leaderboard, inactive patrons and month stats."""
    ranked = await _rank_all(db, year, month, weights, tie_break, persist)

    active_ids = (
        select(MonthlyActivity.patron_id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
    )
    inactive_filter = (
        Patron.active.is_(True),
        Patron.id.not_in(active_ids),
    )
    count_result = await db.execute(
        select(func.count(Patron.id)).where(*inactive_filter),
    )
    inactive_count = count_result.scalar_one()
    inactive_result = await db.execute(
        select(Patron)
        .where(*inactive_filter)
        .order_by(Patron.surname, Patron.firstname, Patron.barcode)
        .limit(inactive_cap),
    )

    return {
        "year": year,
        "month": month,
        "leaderboard": ranked[:limit],
        "inactive_patrons": [
            {
                "patron_barcode": p.barcode,
                "patron_name": p.display_name,
                "patron_type": p.patron_type,
            }
            for p in inactive_result.scalars().all()
        ],
        "stats": compute_month_stats(ranked, inactive_count),
    }
