"""Dashboard Route - staff dashboard counts."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.api.dependencies import Actor, require_actor
from shelfwise.config import get_settings
from shelfwise.core.domain_types import Permission
from shelfwise.infrastructure.database import get_db
from shelfwise.services.build_dashboard import build_dashboard

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("")
async def dashboard(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.DASHBOARD_VIEW)),
):
    return await build_dashboard(
        db, overdue_alert_days=get_settings().overdue_alert_days,
    )
