"""Analytics Routes - monthly leaderboard and explicit rank recompute.

Invariants:
    - Weights and tie-break keys always come from Settings
    - GET persists ranks only when persist_ranks_on_read is enabled;
      POST /recompute always persists (scheduled-batch hook)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.api.dependencies import Actor, require_actor
from shelfwise.config import get_settings
from shelfwise.core.clock import month_key, utc_now
from shelfwise.core.domain_types import Permission
from shelfwise.infrastructure.database import get_db
from shelfwise.schemas.analytics import RecomputeRequest
from shelfwise.services.rank_month import get_monthly_leaderboard, recompute_month

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("/monthly")
async def monthly_leaderboard(
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.ANALYTICS_VIEW)),
):
    """Leaderboard for a month (defaults to the current UTC month)."""
    settings = get_settings()
    current_year, current_month = month_key(utc_now())
    return await get_monthly_leaderboard(
        db,
        year or current_year,
        month or current_month,
        weights=settings.score_weights(),
        tie_break=settings.ranking_tie_break,
        limit=limit or settings.leaderboard_limit,
        persist=settings.persist_ranks_on_read,
        inactive_cap=settings.inactive_display_cap,
    )


@router.post("/monthly/recompute")
async def recompute_monthly(
    body: RecomputeRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.ANALYTICS_RECOMPUTE)),
):
    settings = get_settings()
    ranked = await recompute_month(
        db,
        body.year,
        body.month,
        weights=settings.score_weights(),
        tie_break=settings.ranking_tie_break,
        limit=body.limit or settings.leaderboard_limit,
        persist=True,
    )
    return {
        "message": f"Ranks recomputed for {body.year}-{body.month:02d}",
        "count": len(ranked),
        "leaderboard": ranked,
    }
