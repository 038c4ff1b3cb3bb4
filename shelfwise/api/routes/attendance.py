"""Attendance Routes - mark and list class attendance."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.api.dependencies import Actor, require_actor
from shelfwise.core.domain_types import ClassType, Permission
from shelfwise.infrastructure.database import get_db
from shelfwise.schemas.attendance import AttendanceCreate
from shelfwise.services.handle_attendance import AttendanceHandlers

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    body: AttendanceCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.ATTENDANCE_MARK)),
):
    attendance = await AttendanceHandlers(db).mark_attendance(
        body.patron_barcode,
        body.class_name,
        body.class_date,
        marked_by=actor.actor_id,
        points=body.points,
        class_type=body.class_type.value,
        notes=body.notes,
    )
    return {"message": "Attendance marked successfully", "attendance": attendance}


@router.get("")
async def list_attendance(
    class_date: date | None = Query(None, alias="date"),
    patron_barcode: str | None = Query(None, alias="patronBarcode"),
    class_type: ClassType | None = Query(None, alias="classType"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_actor(Permission.ATTENDANCE_VIEW)),
):
    records = await AttendanceHandlers(db).list_attendance(
        class_date=class_date,
        patron_barcode=patron_barcode,
        class_type=class_type.value if class_type else None,
    )
    return {"count": len(records), "attendance": records}
