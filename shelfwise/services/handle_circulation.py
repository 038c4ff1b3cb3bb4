"""Circulation Handlers - checkout, check-in, renewal, overdue and holds listings.

Invariants:
    - Each write operation is one atomic() unit: item, checkout log, patron flag,
      borrow mirror, points and ledger commit together or not at all
    - Write order is item first, then patron
    - item.available == False  <=>  the item's log ends with an open record
    - patron.has_open_loan == True  <=>  exactly one open record names the patron
    - Availability and loan flags change only through conditional UPDATEs; a
      rowcount of 0 means a concurrent writer won and raises ConcurrencyError
    - Every ledger increment carries an event key derived from the checkout record

Design Decisions:
    - Friendly validation (core/enforce_circulation) runs first so callers get a
      precise reason; the conditional UPDATE stays the authority under races
    - Overdue listing filters in Python with the pure is_overdue rule, never
      comparing timestamps in SQL (SQLite drops tzinfo)
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from shelfwise.config import Settings, get_settings
from shelfwise.core.activity_ledger import ActivityDelta, event_key
from shelfwise.core.clock import ensure_utc, month_key, utc_now
from shelfwise.core.eligibility import PhotoOnFileEligibility
from shelfwise.core.enforce_circulation import (
    compute_due_date, find_open_record, format_borrower_name, is_overdue,
    next_sequence, overdue_days, resolve_contact, validate_bonus_points,
    validate_checkin, validate_checkout, validate_renewal,
)
from shelfwise.core.errors import ConcurrencyError, ErrorContext
from shelfwise.core.repository_protocols import EligibilityCheck
from shelfwise.infrastructure.database import atomic, flush_or_conflict
from shelfwise.models.checkout_record import CheckoutRecord
from shelfwise.models.item import Item
from shelfwise.models.patron import Patron
from shelfwise.models.patron_borrowing import PatronBorrowing
from shelfwise.services.lookups import get_item_or_404, get_patron_or_404
from shelfwise.services.record_activity import award_points, record_activity

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value else None


class CirculationHandlers:
    """Item Ledger and Patron Loan Guard operations."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        eligibility: EligibilityCheck | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.eligibility = eligibility or PhotoOnFileEligibility(
            require_photo=self.settings.require_photo_for_checkout,
        )

    # ─── Checkout ────────────────────────────────────────────────

    async def checkout(
        self,
        item_barcode: str,
        patron_barcode: str,
        due_in_days: int | None = None,
        event_title: str | None = None,
        now: datetime | None = None,
    ) -> dict:
        """Lend an item to a patron. Returns the item and its due date."""
        now = ensure_utc(now or utc_now())
        if due_in_days is None:
            due_in_days = self.settings.default_due_days

        async with atomic(self.db):
            item = await get_item_or_404(self.db, item_barcode)
            patron = await get_patron_or_404(self.db, patron_barcode)
            ctx = ErrorContext(patron_barcode=patron.barcode, item_barcode=item.barcode)

            validate_checkout(
                item.available, patron, self.eligibility.evaluate(patron), item.barcode,
            )
            due_date = compute_due_date(now, due_in_days)

            await self._set_item_available(item, False, ctx)
            history = await self._item_history(item)
            record = CheckoutRecord(
                id=uuid.uuid4(),
                item_id=item.id,
                sequence=next_sequence(history),
                patron_id=patron.id,
                borrower_barcode=patron.barcode,
                borrower_name=format_borrower_name(patron),
                contact_info=resolve_contact(patron),
                event_title=event_title,
                checked_out_at=now,
                due_date=due_date,
            )
            self.db.add(record)
            await flush_or_conflict(
                self.db, "Item was checked out by a concurrent request", ctx,
            )

            await self._set_open_loan(patron, True, ctx)
            self.db.add(PatronBorrowing(
                patron_id=patron.id,
                checkout_record_id=record.id,
                item_barcode=item.barcode,
                item_title=item.title,
                item_subtitle=item.subtitle,
                event_title=event_title,
                checked_out_at=now,
                due_date=due_date,
            ))
            await flush_or_conflict(
                self.db, "Patron started another loan concurrently", ctx,
            )

            year, month = month_key(now)
            await record_activity(
                self.db, patron, year, month, ActivityDelta.checkout(),
                event_key("checkout", record.id),
            )

        logger.info(
            f"Checked out {item.barcode} to {patron.barcode}, due {due_date.isoformat()}",
            extra={"patron_barcode": patron.barcode, "item_barcode": item.barcode},
        )
        return {
            "item": {
                "barcode": item.barcode,
                "title": item.title,
                "subtitle": item.subtitle,
                "available": item.available,
            },
            "patron_barcode": patron.barcode,
            "sequence": record.sequence,
            "due_date": _iso(due_date),
        }

    # ─── Check-in ────────────────────────────────────────────────

    async def check_in(
        self,
        item_barcode: str,
        patron_barcode: str,
        bonus_points: int = 0,
        now: datetime | None = None,
    ) -> dict:
        """Close the open loan, release the patron and award the return bonus."""
        now = ensure_utc(now or utc_now())
        validate_bonus_points(bonus_points)

        async with atomic(self.db):
            item = await get_item_or_404(self.db, item_barcode)
            patron = await get_patron_or_404(self.db, patron_barcode)
            ctx = ErrorContext(patron_barcode=patron.barcode, item_barcode=item.barcode)

            history = await self._item_history(item)
            record = validate_checkin(
                item.available, find_open_record(history), patron.barcode, item.barcode,
            )

            await self._set_item_available(item, True, ctx)
            record.returned_at = now
            await self.db.execute(
                update(PatronBorrowing)
                .where(PatronBorrowing.checkout_record_id == record.id)
                .values(returned_at=now),
            )
            await flush_or_conflict(
                self.db, "Checkout record changed concurrently", ctx,
            )
            await self._set_open_loan(patron, False, ctx)

            await award_points(self.db, patron, bonus_points)
            year, month = month_key(now)
            await record_activity(
                self.db, patron, year, month, ActivityDelta.checkin(bonus_points),
                event_key("checkin", record.id),
            )

        logger.info(
            f"Checked in {item.barcode} from {patron.barcode} (+{bonus_points} points)",
            extra={"patron_barcode": patron.barcode, "item_barcode": item.barcode},
        )
        return {
            "item_barcode": item.barcode,
            "patron_barcode": patron.barcode,
            "returned_at": _iso(now),
            "awarded_points": bonus_points,
            "patron_points": patron.points,
        }

    # ─── Renewal ─────────────────────────────────────────────────

    async def renew(
        self,
        item_barcode: str,
        patron_barcode: str,
        new_due_date: datetime,
        now: datetime | None = None,
    ) -> dict:
        """Move the due date of the patron's open loan of this item."""
        now = ensure_utc(now or utc_now())
        new_due_date = ensure_utc(new_due_date)

        async with atomic(self.db):
            item = await get_item_or_404(self.db, item_barcode)
            patron = await get_patron_or_404(self.db, patron_barcode)
            ctx = ErrorContext(patron_barcode=patron.barcode, item_barcode=item.barcode)

            history = await self._item_history(item)
            record = validate_renewal(
                find_open_record(history), patron.barcode, item.barcode,
                new_due_date, now,
            )
            record.due_date = new_due_date
            record.renewed_at = now
            await self.db.execute(
                update(PatronBorrowing)
                .where(PatronBorrowing.checkout_record_id == record.id)
                .values(due_date=new_due_date, renewed_at=now),
            )
            await flush_or_conflict(
                self.db, "Checkout record changed concurrently", ctx,
            )

            # Touch only: refreshes identity and is_active, no counter moves
            year, month = month_key(now)
            await record_activity(self.db, patron, year, month, ActivityDelta())

        logger.info(
            f"Renewed {item.barcode} for {patron.barcode} until {new_due_date.isoformat()}",
            extra={"patron_barcode": patron.barcode, "item_barcode": item.barcode},
        )
        return {
            "item_barcode": item.barcode,
            "patron_barcode": patron.barcode,
            "due_date": _iso(new_due_date),
            "renewed_at": _iso(now),
        }

    # ─── Listings ────────────────────────────────────────────────

    async def list_overdues(self, now: datetime | None = None) -> list[dict]:
        """Open loans past their due date, most overdue first."""
        now = ensure_utc(now or utc_now())
        result = await self.db.execute(
            select(CheckoutRecord, Item)
            .join(Item, Item.id == CheckoutRecord.item_id)
            .where(CheckoutRecord.returned_at.is_(None)),
        )
        overdues = [
            {
                "item_barcode": item.barcode,
                "title": item.title,
                "subtitle": item.subtitle,
                "borrower_barcode": record.borrower_barcode,
                "borrower_name": record.borrower_name,
                "contact_info": record.contact_info,
                "checked_out_at": _iso(record.checked_out_at),
                "due_date": _iso(record.due_date),
                "overdue_days": overdue_days(record.due_date, now),
            }
            for record, item in result.all()
            if is_overdue(record.due_date, now)
        ]
        overdues.sort(key=lambda o: (-o["overdue_days"], o["item_barcode"]))
        return overdues

    async def list_holds(self) -> list[dict]:
        """Every checkout record of every item, flattened."""
        result = await self.db.execute(
            select(CheckoutRecord, Item)
            .join(Item, Item.id == CheckoutRecord.item_id)
            .order_by(Item.barcode, CheckoutRecord.sequence),
        )
        return [
            {
                "item_barcode": item.barcode,
                "title": item.title,
                "subtitle": item.subtitle,
                "sequence": record.sequence,
                "borrower_barcode": record.borrower_barcode,
                "borrower_name": record.borrower_name,
                "contact_info": record.contact_info,
                "event_title": record.event_title,
                "checked_out_at": _iso(record.checked_out_at),
                "due_date": _iso(record.due_date),
                "renewed_at": _iso(record.renewed_at),
                "returned_at": _iso(record.returned_at),
            }
            for record, item in result.all()
        ]

    # ─── Internals ───────────────────────────────────────────────

    async def _item_history(self, item: Item) -> list[CheckoutRecord]:
        result = await self.db.execute(
            select(CheckoutRecord)
            .where(CheckoutRecord.item_id == item.id)
            .order_by(CheckoutRecord.sequence)
            .execution_options(populate_existing=True),
        )
        return list(result.scalars().all())

    async def _set_item_available(
        self, item: Item, available: bool, ctx: ErrorContext,
    ) -> None:
        """Flip availability only from the opposite state."""
        result = await self.db.execute(
            update(Item)
            .where(Item.id == item.id)
            .where(Item.available.is_(not available))
            .values(available=available)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise ConcurrencyError(
                "Item availability was changed by a concurrent request", ctx,
            )
        set_committed_value(item, "available", available)

    async def _set_open_loan(
        self, patron: Patron, has_open_loan: bool, ctx: ErrorContext,
    ) -> None:
        result = await self.db.execute(
            update(Patron)
            .where(Patron.id == patron.id)
            .where(Patron.has_open_loan.is_(not has_open_loan))
            .values(has_open_loan=has_open_loan)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise ConcurrencyError(
                "Patron loan status was changed by a concurrent request", ctx,
            )
        set_committed_value(patron, "has_open_loan", has_open_loan)
