"""Circulation Routes - checkout, check-in, renewal, overdue and holds listings.

Invariants:
    - Every route requires a staff role holding the matching permission
    - Bodies validated by Pydantic before reaching CirculationHandlers
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.api.dependencies import Actor, require_actor
from shelfwise.core.domain_types import Permission
from shelfwise.infrastructure.database import get_db
from shelfwise.schemas.circulation import (
    CheckinRequest, CheckoutRequest, RenewRequest,
)
from shelfwise.services.handle_circulation import CirculationHandlers

router = APIRouter(prefix="/api/v1/circulations", tags=["circulations"])


@router.post("/check-out")
async def check_out(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.BOOK_CHECKOUT)),
):
    result = await CirculationHandlers(db).checkout(
        body.item_barcode, body.patron_barcode,
        due_in_days=body.due_in_days, event_title=body.event_title,
    )
    return {"message": "Item checked out successfully", **result}


@router.post("/check-in")
async def check_in(
    body: CheckinRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.BOOK_CHECKIN)),
):
    result = await CirculationHandlers(db).check_in(
        body.item_barcode, body.patron_barcode, bonus_points=body.bonus_points,
    )
    return {"message": "Item checked in successfully", **result}


@router.post("/renew")
async def renew(
    body: RenewRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.BOOK_RENEW)),
):
    result = await CirculationHandlers(db).renew(
        body.item_barcode, body.patron_barcode, body.new_due_date,
    )
    return {"message": "Item renewed successfully", **result}


@router.get("/overdues")
async def list_overdues(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.CIRCULATION_VIEW)),
):
    overdues = await CirculationHandlers(db).list_overdues()
    return {"count": len(overdues), "overdues": overdues}


@router.get("/holds")
async def list_holds(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.CIRCULATION_VIEW)),
):
    holds = await CirculationHandlers(db).list_holds()
    return {"count": len(holds), "holds": holds}
