"""Book Summary Routes - submission, staff creation, review and listing.

Invariants:
    - A patron caller always acts as itself: its X-Actor-Id is the patron barcode
      and any patron_barcode in the body is ignored
    - Patrons only ever see their own summaries
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.api.dependencies import Actor, require_actor
from shelfwise.core.domain_types import Permission, SummaryStatus
from shelfwise.core.errors import ValidationError
from shelfwise.infrastructure.database import get_db
from shelfwise.schemas.book_summary import (
    ReviewDecision, StaffSummaryCreate, SummarySubmit,
)
from shelfwise.services.handle_summaries import SummaryHandlers

router = APIRouter(prefix="/api/v1/book-summaries", tags=["book-summaries"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_summary(
    body: SummarySubmit,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.SUMMARY_SUBMIT)),
):
    patron_barcode = actor.actor_id if actor.is_patron else body.patron_barcode
    if not patron_barcode:
        raise ValidationError("patron_barcode is required", "patron_barcode")
    summary = await SummaryHandlers(db).submit_summary(
        patron_barcode, body.book_barcode, body.summary, body.rating,
    )
    return {
        "message": "Book summary submitted successfully. Awaiting review.",
        "summary": summary,
    }


@router.post("/staff", status_code=status.HTTP_201_CREATED)
async def create_staff_summary(
    body: StaffSummaryCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.SUMMARY_STAFF_CREATE)),
):
    summary = await SummaryHandlers(db).create_staff_summary(
        body.patron_barcode, body.book_barcode, body.summary, body.rating,
        staff_bonus=body.staff_bonus, created_by=actor.actor_id,
    )
    return {"message": "Book summary created and approved", "summary": summary}


@router.get("")
async def list_summaries(
    status_filter: SummaryStatus | None = Query(None, alias="status"),
    patron_barcode: str | None = Query(None, alias="patronBarcode"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.SUMMARY_VIEW)),
):
    if actor.is_patron:
        patron_barcode = actor.actor_id
    summaries = await SummaryHandlers(db).list_summaries(
        status=status_filter.value if status_filter else None,
        patron_barcode=patron_barcode,
    )
    return {"count": len(summaries), "summaries": summaries}


@router.patch("/{summary_id}")
async def review_summary(
    summary_id: UUID,
    body: ReviewDecision,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.SUMMARY_REVIEW)),
):
    summary = await SummaryHandlers(db).review_summary(
        summary_id, body.status, points=body.points,
        feedback=body.feedback, reviewer=actor.actor_id,
    )
    return {"message": f"Summary {summary['status']}", "summary": summary}
