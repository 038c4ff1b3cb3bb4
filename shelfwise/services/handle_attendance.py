"""Attendance Handlers - mark class attendance and list the register.

Invariants:
    - At most one attendance per (patron, class_name, class_date)
    - Marking attendance awards its points to the patron and the ledger in the
      same atomic() unit
    - The ledger month is the class date's month, not the marking time's
"""

import logging
import uuid
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.config import Settings, get_settings
from shelfwise.core.activity_ledger import ActivityDelta, event_key
from shelfwise.core.clock import ensure_utc, month_key, utc_now
from shelfwise.core.domain_types import ClassType
from shelfwise.core.errors import (
    ConflictError, ErrorContext, PreconditionFailedError, ValidationError,
)
from shelfwise.infrastructure.database import atomic
from shelfwise.models.attendance import Attendance
from shelfwise.services.lookups import get_patron_or_404
from shelfwise.services.record_activity import award_points, record_activity

logger = logging.getLogger(__name__)


def _attendance_view(a: Attendance) -> dict:
    return {
        "id": str(a.id),
        "patron_barcode": a.patron_barcode,
        "patron_name": a.patron_name,
        "class_type": a.class_type,
        "class_name": a.class_name,
        "class_date": a.class_date.isoformat(),
        "attended_at": ensure_utc(a.attended_at).isoformat(),
        "marked_by": a.marked_by,
        "points": a.points,
        "notes": a.notes,
    }


class AttendanceHandlers:
    """Attendance Register operations."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    async def mark_attendance(
        self,
        patron_barcode: str,
        class_name: str,
        class_date: date,
        marked_by: str,
        points: int | None = None,
        class_type: str = ClassType.LITERACY.value,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        now = ensure_utc(now or utc_now())
        if points is None:
            points = self.settings.attendance_points
        try:
            class_type = ClassType(class_type).value
        except ValueError:
            raise ValidationError(f"Unknown class type '{class_type}'", "class_type")

        async with atomic(self.db):
            patron = await get_patron_or_404(self.db, patron_barcode)
            ctx = ErrorContext(patron_barcode=patron.barcode)
            if not patron.active:
                raise PreconditionFailedError(
                    "Patron is inactive and cannot be marked present",
                    "PATRON_INACTIVE", ctx,
                )

            existing = await self.db.execute(
                select(Attendance.id)
                .where(Attendance.patron_barcode == patron.barcode)
                .where(Attendance.class_name == class_name)
                .where(Attendance.class_date == class_date),
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(
                    "Attendance already marked for this class",
                    "ATTENDANCE_ALREADY_MARKED", ctx,
                )
            if points < 0:
                raise PreconditionFailedError(
                    f"Attendance points cannot be negative (got {points})",
                    "INVALID_POINTS", ctx,
                )

            attendance = Attendance(
                id=uuid.uuid4(),
                patron_id=patron.id,
                patron_barcode=patron.barcode,
                patron_name=patron.display_name,
                class_type=class_type,
                class_name=class_name,
                class_date=class_date,
                attended_at=now,
                marked_by=marked_by,
                points=points,
                notes=notes,
            )
            self.db.add(attendance)
            try:
                await self.db.flush()
            except IntegrityError as e:
                raise ConflictError(
                    "Attendance already marked for this class",
                    "ATTENDANCE_ALREADY_MARKED", ctx,
                ) from e

            await award_points(self.db, patron, points)
            year, month = month_key(class_date)
            await record_activity(
                self.db, patron, year, month, ActivityDelta.attendance(points),
                event_key("attendance", attendance.id),
            )

        logger.info(
            f"Attendance marked for {patron.barcode} at '{class_name}' on {class_date}",
            extra={"patron_barcode": patron.barcode},
        )
        return _attendance_view(attendance)

    async def list_attendance(
        self,
        class_date: date | None = None,
        patron_barcode: str | None = None,
        class_type: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest first."""
        query = select(Attendance).order_by(Attendance.attended_at.desc())
        if class_date:
            query = query.where(Attendance.class_date == class_date)
        if patron_barcode:
            query = query.where(Attendance.patron_barcode == patron_barcode)
        if class_type:
            query = query.where(Attendance.class_type == class_type)
        result = await self.db.execute(query.limit(limit))
        return [_attendance_view(a) for a in result.scalars().all()]
