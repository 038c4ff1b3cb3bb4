"""Summary Handlers - book-summary submission, review and staff creation.

Invariants:
    - At most one summary per (patron_barcode, book_barcode); the unique
      constraint is the authority and a lost race is a DuplicateSummaryError
    - status moves pending -> approved | rejected exactly once, through a
      conditional UPDATE on status = 'pending'
    - Points only ever add: +submission_points on submit, +bonus on approval,
      +submission_points + staff bonus on staff creation
    - Each operation (summary row, patron points, ledger) is one atomic() unit
    - Submissions hold the patron row lock (FOR UPDATE) from before the
      duplicate and cap checks until commit, so two concurrent requests
      cannot both pass the monthly cap

Design Decisions:
    - Check order: content, lookups, duplicate, borrowed history, returned, cap;
      the cheapest and most specific reason reaches the caller first
    - Monthly cap counts submissions in the current UTC calendar month
"""

import logging
import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from shelfwise.config import Settings, get_settings
from shelfwise.core.activity_ledger import ActivityDelta, event_key
from shelfwise.core.clock import ensure_utc, month_key, month_window, utc_now
from shelfwise.core.domain_types import SummaryStatus
from shelfwise.core.enforce_summary import (
    resolve_review, validate_book_returned, validate_borrower_history,
    validate_monthly_cap, validate_staff_bonus, validate_summary_content,
)
from shelfwise.core.errors import (
    ConflictError, DuplicateSummaryError, ErrorContext,
    PreconditionFailedError, ResourceNotFoundError,
)
from shelfwise.infrastructure.database import atomic
from shelfwise.models.book_summary import BookSummary
from shelfwise.models.checkout_record import CheckoutRecord
from shelfwise.models.item import Item
from shelfwise.models.patron import Patron
from shelfwise.models.patron_borrowing import PatronBorrowing
from shelfwise.services.lookups import get_item_or_404, get_patron_or_404
from shelfwise.services.record_activity import award_points, record_activity

logger = logging.getLogger(__name__)


def _summary_view(s: BookSummary) -> dict:
    return {
        "id": str(s.id),
        "patron_barcode": s.patron_barcode,
        "patron_name": s.patron_name,
        "book_barcode": s.book_barcode,
        "book_title": s.book_title,
        "summary": s.summary,
        "rating": s.rating,
        "status": s.status,
        "points": s.points,
        "feedback": s.feedback,
        "reviewed_by": s.reviewed_by,
        "review_date": ensure_utc(s.review_date).isoformat() if s.review_date else None,
        "staff_created": s.staff_created,
        "submitted_at": ensure_utc(s.submitted_at).isoformat(),
    }


class SummaryHandlers:
    """Review Workflow operations."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.policy = (settings or get_settings()).summary_policy()

    # ─── Submission ──────────────────────────────────────────────

    async def submit_summary(
        self,
        patron_barcode: str,
        book_barcode: str,
        summary: str,
        rating: int,
        now: datetime | None = None,
    ) -> dict:
        """Patron submits a summary of a book they borrowed and returned."""
        now = ensure_utc(now or utc_now())
        text = validate_summary_content(summary, rating, self.policy)

        async with atomic(self.db):
            patron = await get_patron_or_404(self.db, patron_barcode)
            item = await get_item_or_404(self.db, book_barcode)
            await self._lock_patron(patron)
            await self._reject_duplicate(patron.barcode, item.barcode)

            borrowed = await self.db.execute(
                select(PatronBorrowing.item_barcode)
                .where(PatronBorrowing.patron_id == patron.id)
                .where(PatronBorrowing.item_barcode == item.barcode),
            )
            validate_borrower_history(item.barcode, borrowed.scalars().all(), patron.barcode)
            validate_book_returned(item.available, item.barcode)
            await self._check_monthly_cap(patron.barcode, now)

            points = self.policy.submission_points
            book_summary = self._new_summary(patron, item, text, rating, now)
            await self._insert(book_summary)

            await award_points(self.db, patron, points)
            year, month = month_key(now)
            await record_activity(
                self.db, patron, year, month, ActivityDelta.summary_submitted(points),
                event_key("summary-submitted", book_summary.id),
            )

        logger.info(
            f"Summary submitted by {patron.barcode} for {item.barcode}",
            extra={
                "patron_barcode": patron.barcode, "item_barcode": item.barcode,
                "summary_id": str(book_summary.id),
            },
        )
        return _summary_view(book_summary)

    async def create_staff_summary(
        self,
        patron_barcode: str,
        book_barcode: str,
        summary: str,
        rating: int,
        staff_bonus: int,
        created_by: str,
        now: datetime | None = None,
    ) -> dict:
        """Staff record a summary on a patron's behalf; approved on creation."""
        now = ensure_utc(now or utc_now())
        text = validate_summary_content(summary, rating, self.policy)
        total = validate_staff_bonus(staff_bonus, self.policy)

        async with atomic(self.db):
            patron = await get_patron_or_404(self.db, patron_barcode)
            item = await get_item_or_404(self.db, book_barcode)
            await self._lock_patron(patron)
            await self._reject_duplicate(patron.barcode, item.barcode)
            await self._check_monthly_cap(patron.barcode, now)

            book_summary = self._new_summary(patron, item, text, rating, now)
            book_summary.status = SummaryStatus.APPROVED.value
            book_summary.points = total
            book_summary.staff_created = True
            book_summary.reviewed_by = created_by
            book_summary.review_date = now
            await self._insert(book_summary)

            await award_points(self.db, patron, total)
            year, month = month_key(now)
            await record_activity(
                self.db, patron, year, month, ActivityDelta.staff_summary(total),
                event_key("summary-staff", book_summary.id),
            )

        logger.info(
            f"Staff summary by {created_by} for {patron.barcode} on {item.barcode} (+{total})",
            extra={
                "patron_barcode": patron.barcode, "item_barcode": item.barcode,
                "summary_id": str(book_summary.id),
            },
        )
        return _summary_view(book_summary)

    # ─── Review ──────────────────────────────────────────────────

    async def review_summary(
        self,
        summary_id: UUID,
        decision: str,
        points: int = 0,
        feedback: str | None = None,
        reviewer: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Approve or reject a pending summary. Awards the bonus exactly once."""
        now = ensure_utc(now or utc_now())

        async with atomic(self.db):
            result = await self.db.execute(
                select(BookSummary)
                .where(BookSummary.id == summary_id)
                .execution_options(populate_existing=True),
            )
            book_summary = result.scalar_one_or_none()
            if not book_summary:
                raise ResourceNotFoundError("BookSummary", str(summary_id))
            ctx = ErrorContext(
                patron_barcode=book_summary.patron_barcode,
                item_barcode=book_summary.book_barcode,
            )

            outcome = resolve_review(book_summary.status, decision, points, self.policy)
            await self._reject_if_borrowed_again(book_summary, ctx)

            values = {
                "status": outcome.status.value,
                "points": outcome.points,
                "feedback": feedback,
                "reviewed_by": reviewer,
                "review_date": now,
            }
            updated = await self.db.execute(
                update(BookSummary)
                .where(BookSummary.id == book_summary.id)
                .where(BookSummary.status == SummaryStatus.PENDING.value)
                .values(**values)
                .execution_options(synchronize_session=False),
            )
            if updated.rowcount != 1:
                raise ConflictError(
                    "This summary has already been reviewed.", "ALREADY_REVIEWED", ctx,
                )
            for name, value in values.items():
                set_committed_value(book_summary, name, value)

            if outcome.status is SummaryStatus.APPROVED:
                patron_result = await self.db.execute(
                    select(Patron).where(Patron.id == book_summary.patron_id),
                )
                patron = patron_result.scalar_one()
                await award_points(self.db, patron, outcome.points)
                year, month = month_key(now)
                await record_activity(
                    self.db, patron, year, month,
                    ActivityDelta.summary_approved(outcome.points),
                    event_key("summary-approved", book_summary.id),
                )

        logger.info(
            f"Summary {book_summary.id} {outcome.status.value} by {reviewer} "
            f"({outcome.points} points)",
            extra={
                "summary_id": str(book_summary.id),
                "patron_barcode": book_summary.patron_barcode,
            },
        )
        return _summary_view(book_summary)

    # ─── Listing ─────────────────────────────────────────────────

    async def list_summaries(
        self,
        status: str | None = None,
        patron_barcode: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest first."""
        query = select(BookSummary).order_by(BookSummary.submitted_at.desc())
        if status:
            query = query.where(BookSummary.status == status)
        if patron_barcode:
            query = query.where(BookSummary.patron_barcode == patron_barcode)
        result = await self.db.execute(query.limit(limit))
        return [_summary_view(s) for s in result.scalars().all()]

    # ─── Internals ───────────────────────────────────────────────

    def _new_summary(
        self, patron: Patron, item: Item, text: str, rating: int, now: datetime,
    ) -> BookSummary:
        return BookSummary(
            id=uuid.uuid4(),
            patron_id=patron.id,
            patron_barcode=patron.barcode,
            patron_name=patron.display_name,
            item_id=item.id,
            book_barcode=item.barcode,
            book_title=item.title,
            summary=text,
            rating=rating,
            status=SummaryStatus.PENDING.value,
            points=0,
            staff_created=False,
            submitted_at=now,
        )

    async def _insert(self, book_summary: BookSummary) -> None:
        self.db.add(book_summary)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise DuplicateSummaryError(
                book_summary.patron_barcode, book_summary.book_barcode,
            ) from e

    async def _reject_duplicate(self, patron_barcode: str, book_barcode: str) -> None:
        result = await self.db.execute(
            select(BookSummary.status, BookSummary.points)
            .where(BookSummary.patron_barcode == patron_barcode)
            .where(BookSummary.book_barcode == book_barcode),
        )
        prior = result.first()
        if prior is not None:
            raise DuplicateSummaryError(
                patron_barcode, book_barcode, prior.status, prior.points,
            )

    async def _lock_patron(self, patron: Patron) -> None:
        """Row-lock the patron so its submissions serialize; the cap count that
        follows then sees every committed summary of a concurrent request."""
        await self.db.execute(
            select(Patron.id).where(Patron.id == patron.id).with_for_update(),
        )

    async def _check_monthly_cap(self, patron_barcode: str, now: datetime) -> None:
        start, end = month_window(*month_key(now))
        result = await self.db.execute(
            select(func.count(BookSummary.id))
            .where(BookSummary.patron_barcode == patron_barcode)
            .where(BookSummary.submitted_at >= start)
            .where(BookSummary.submitted_at < end),
        )
        validate_monthly_cap(result.scalar_one(), patron_barcode, self.policy)

    async def _reject_if_borrowed_again(
        self, book_summary: BookSummary, ctx: ErrorContext,
    ) -> None:
        result = await self.db.execute(
            select(CheckoutRecord.id)
            .where(CheckoutRecord.item_id == book_summary.item_id)
            .where(CheckoutRecord.patron_id == book_summary.patron_id)
            .where(CheckoutRecord.returned_at.is_(None)),
        )
        if result.scalar_one_or_none() is not None:
            raise PreconditionFailedError(
                "The patron has this book checked out again. Review it after it is returned.",
                "BOOK_CHECKED_OUT_AGAIN", ctx,
            )
