"""Circulation - checkout, check-in, renewal and listings against a real session.

Tests cover:
    - Checkout writes item flag, open record, patron flag, mirror and ledger together
    - Second borrower on an occupied item and second item for a busy patron conflict
    - Eligibility (photo, inactive, injected check) blocks checkout
    - A stale availability read loses to the conditional UPDATE (ConcurrencyError)
    - Check-in closes the loan, awards points and feeds the ledger once
    - Check-in by a non-borrower conflicts and changes nothing
    - Renewal moves the due date on record and mirror
    - Overdue and holds listings
    - Partial unique index refuses two open records for one item
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from shelfwise.core.errors import (
    ConcurrencyError, ConflictError, PreconditionFailedError, ResourceNotFoundError,
)
from shelfwise.core.repository_protocols import EligibilityVerdict
from shelfwise.models.checkout_record import CheckoutRecord
from shelfwise.models.item import Item
from shelfwise.models.monthly_activity import MonthlyActivity
from shelfwise.models.patron import Patron
from shelfwise.models.patron_borrowing import PatronBorrowing
from shelfwise.services.handle_circulation import CirculationHandlers

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


async def _records(db, item_id):
    result = await db.execute(
        select(CheckoutRecord)
        .where(CheckoutRecord.item_id == item_id)
        .order_by(CheckoutRecord.sequence)
        .execution_options(populate_existing=True),
    )
    return result.scalars().all()


async def _ledger(db, patron_id, year=2026, month=3):
    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.patron_id == patron_id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def _reload(db, obj):
    await db.refresh(obj)
    return obj


# ─── Checkout ────────────────────────────────────────────────────

async def test_checkout_updates_item_patron_log_and_ledger(test_db, make_patron, make_item):
    patron = await make_patron("P1")
    item = await make_item("B1", title="Things Fall Apart")

    result = await CirculationHandlers(test_db).checkout("B1", "P1", due_in_days=14, now=NOW)

    assert result["item"]["available"] is False
    assert result["due_date"] == (NOW + timedelta(days=14)).isoformat()
    assert (await _reload(test_db, item)).available is False
    assert (await _reload(test_db, patron)).has_open_loan is True

    records = await _records(test_db, item.id)
    assert len(records) == 1
    assert records[0].sequence == 1
    assert records[0].borrower_barcode == "P1"
    assert records[0].borrower_name == "Surname1, First1"
    assert records[0].returned_at is None

    mirror = (await test_db.execute(select(PatronBorrowing))).scalar_one()
    assert mirror.checkout_record_id == records[0].id
    assert mirror.item_title == "Things Fall Apart"

    ledger = await _ledger(test_db, patron.id)
    assert ledger.books_checked_out == 1
    assert ledger.is_active is True


async def test_checkout_uses_default_loan_period(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    result = await CirculationHandlers(test_db).checkout("B1", "P1", now=NOW)
    assert result["due_date"] == (NOW + timedelta(days=2)).isoformat()


async def test_second_borrower_on_same_item_conflicts(test_db, make_patron, make_item):
    await make_patron("P1")
    p2 = await make_patron("P2")
    item = await make_item("B1")
    item_id, p2_id = item.id, p2.id
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", due_in_days=14, now=NOW)

    with pytest.raises(ConflictError) as exc:
        await handlers.checkout("B1", "P2", due_in_days=14, now=NOW)

    assert exc.value.code == "ITEM_CHECKED_OUT"
    # the rollback expired every loaded instance; query by key only
    assert len(await _records(test_db, item_id)) == 1
    p2_loan = await test_db.scalar(select(Patron.has_open_loan).where(Patron.id == p2_id))
    assert p2_loan is False


async def test_patron_with_open_loan_cannot_borrow_again(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    b2 = await make_item("B2")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)

    with pytest.raises(ConflictError) as exc:
        await handlers.checkout("B2", "P1", now=NOW)

    assert exc.value.code == "PATRON_HAS_OPEN_LOAN"
    assert (await _reload(test_db, b2)).available is True
    assert await _records(test_db, b2.id) == []


async def test_patron_without_photo_is_refused(test_db, make_patron, make_item):
    await make_patron("P1", photo_public_id=None)
    item = await make_item("B1")

    with pytest.raises(PreconditionFailedError) as exc:
        await CirculationHandlers(test_db).checkout("B1", "P1", now=NOW)

    assert exc.value.code == "PHOTO_REQUIRED"
    assert (await _reload(test_db, item)).available is True


async def test_inactive_patron_is_refused(test_db, make_patron, make_item):
    await make_patron("P1", active=False)
    await make_item("B1")
    with pytest.raises(PreconditionFailedError) as exc:
        await CirculationHandlers(test_db).checkout("B1", "P1", now=NOW)
    assert exc.value.code == "PATRON_INACTIVE"


async def test_injected_eligibility_check_is_used(test_db, make_patron, make_item):
    class _Suspended:
        def evaluate(self, patron):
            return EligibilityVerdict(False, "Library card expired", "CARD_EXPIRED")

    await make_patron("P1")
    await make_item("B1")
    with pytest.raises(PreconditionFailedError) as exc:
        await CirculationHandlers(test_db, eligibility=_Suspended()).checkout(
            "B1", "P1", now=NOW,
        )
    assert exc.value.code == "CARD_EXPIRED"


async def test_unknown_item_is_not_found(test_db, make_patron):
    await make_patron("P1")
    with pytest.raises(ResourceNotFoundError):
        await CirculationHandlers(test_db).checkout("NOPE", "P1", now=NOW)


async def test_zero_day_loan_rejected(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    with pytest.raises(PreconditionFailedError) as exc:
        await CirculationHandlers(test_db).checkout("B1", "P1", due_in_days=0, now=NOW)
    assert exc.value.code == "INVALID_LOAN_PERIOD"


async def test_stale_availability_loses_to_conditional_update(test_db, make_patron, make_item):
    """Another writer flips the item after it was read; the UPDATE ... WHERE wins."""
    patron = await make_patron("P1")
    item = await make_item("B1")
    # item stays cached as available in the identity map
    item_id, patron_id = item.id, patron.id
    await test_db.execute(
        update(Item).where(Item.id == item.id).values(available=False)
        .execution_options(synchronize_session=False),
    )
    await test_db.commit()
    assert item.available is True

    with pytest.raises(ConcurrencyError):
        await CirculationHandlers(test_db).checkout("B1", "P1", now=NOW)

    assert await _records(test_db, item_id) == []
    patron_loan = await test_db.scalar(select(Patron.has_open_loan).where(Patron.id == patron_id))
    assert patron_loan is False


# ─── Check-in ────────────────────────────────────────────────────

async def test_checkin_closes_loan_and_awards_points(test_db, make_patron, make_item):
    patron = await make_patron("P1")
    item = await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", due_in_days=14, now=NOW)

    result = await handlers.check_in("B1", "P1", bonus_points=10, now=NOW + timedelta(days=3))

    assert result["awarded_points"] == 10
    assert result["patron_points"] == 10
    assert (await _reload(test_db, item)).available is True
    patron = await _reload(test_db, patron)
    assert patron.has_open_loan is False
    assert patron.points == 10

    record = (await _records(test_db, item.id))[0]
    assert record.returned_at is not None
    mirror = (await test_db.execute(
        select(PatronBorrowing).execution_options(populate_existing=True),
    )).scalar_one()
    assert mirror.returned_at is not None

    ledger = await _ledger(test_db, patron.id)
    assert ledger.books_checked_out == 1
    assert ledger.books_returned == 1
    assert ledger.total_points == 10
    assert ledger.points_from_books == 10


async def test_checkin_by_non_borrower_conflicts(test_db, make_patron, make_item):
    p1 = await make_patron("P1")
    await make_patron("P2")
    item = await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)

    with pytest.raises(ConflictError) as exc:
        await handlers.check_in("B1", "P2", bonus_points=5, now=NOW)

    assert exc.value.code == "BORROWER_MISMATCH"
    assert (await _reload(test_db, item)).available is False
    assert (await _reload(test_db, p1)).has_open_loan is True


async def test_checkin_of_available_item_conflicts(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    with pytest.raises(ConflictError) as exc:
        await CirculationHandlers(test_db).check_in("B1", "P1", now=NOW)
    assert exc.value.code == "ITEM_NOT_CHECKED_OUT"


async def test_checkin_negative_bonus_rejected(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    with pytest.raises(PreconditionFailedError):
        await CirculationHandlers(test_db).check_in("B1", "P1", bonus_points=-5, now=NOW)


async def test_second_loan_appends_to_log(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_patron("P2")
    item = await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)
    await handlers.check_in("B1", "P1", now=NOW + timedelta(days=1))
    await handlers.checkout("B1", "P2", now=NOW + timedelta(days=2))

    records = await _records(test_db, item.id)
    assert [r.sequence for r in records] == [1, 2]
    assert [r.returned_at is None for r in records] == [False, True]


# ─── Renewal ─────────────────────────────────────────────────────

async def test_renew_moves_due_date(test_db, make_patron, make_item):
    patron = await make_patron("P1")
    item = await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)
    new_due = NOW + timedelta(days=10)

    result = await handlers.renew("B1", "P1", new_due, now=NOW + timedelta(days=1))

    assert result["due_date"] == new_due.isoformat()
    record = (await _records(test_db, item.id))[0]
    assert record.renewed_at is not None
    assert record.due_date.replace(tzinfo=timezone.utc) == new_due
    ledger = await _ledger(test_db, patron.id)
    assert ledger.books_checked_out == 1


async def test_renew_to_past_date_rejected(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)
    with pytest.raises(PreconditionFailedError) as exc:
        await handlers.renew("B1", "P1", NOW - timedelta(days=1), now=NOW)
    assert exc.value.code == "DUE_DATE_IN_PAST"


async def test_renew_by_other_patron_conflicts(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_patron("P2")
    await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)
    with pytest.raises(ConflictError):
        await handlers.renew("B1", "P2", NOW + timedelta(days=5), now=NOW)


# ─── Listings ────────────────────────────────────────────────────

async def test_list_overdues_sorted_by_days_late(test_db, make_patron, make_item):
    for n in (1, 2, 3):
        await make_patron(f"P{n}")
        await make_item(f"B{n}")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", due_in_days=1, now=NOW)
    await handlers.checkout("B2", "P2", due_in_days=5, now=NOW)
    await handlers.checkout("B3", "P3", due_in_days=30, now=NOW)

    overdues = await handlers.list_overdues(now=NOW + timedelta(days=10))

    assert [o["item_barcode"] for o in overdues] == ["B1", "B2"]
    assert [o["overdue_days"] for o in overdues] == [9, 5]
    assert overdues[0]["contact_info"] == "08030000000"


async def test_list_holds_includes_returned_records(test_db, make_patron, make_item):
    await make_patron("P1")
    await make_item("B1")
    handlers = CirculationHandlers(test_db)
    await handlers.checkout("B1", "P1", now=NOW)
    await handlers.check_in("B1", "P1", now=NOW + timedelta(days=1))
    await handlers.checkout("B1", "P1", now=NOW + timedelta(days=2))

    holds = await handlers.list_holds()

    assert [h["sequence"] for h in holds] == [1, 2]
    assert holds[0]["returned_at"] is not None
    assert holds[1]["returned_at"] is None


# ─── Storage invariants ──────────────────────────────────────────

async def test_partial_index_refuses_two_open_records_per_item(test_db, make_patron, make_item):
    p1 = await make_patron("P1")
    p2 = await make_patron("P2")
    item = await make_item("B1")
    for seq, patron in ((1, p1), (2, p2)):
        test_db.add(CheckoutRecord(
            item_id=item.id, sequence=seq, patron_id=patron.id,
            borrower_barcode=patron.barcode, borrower_name="x", contact_info="x",
            checked_out_at=NOW, due_date=NOW,
        ))
    with pytest.raises(IntegrityError):
        await test_db.commit()
    await test_db.rollback()


async def test_partial_index_refuses_two_open_records_per_patron(test_db, make_patron, make_item):
    patron = await make_patron("P1")
    for barcode in ("B1", "B2"):
        item = await make_item(barcode)
        test_db.add(CheckoutRecord(
            item_id=item.id, sequence=1, patron_id=patron.id,
            borrower_barcode=patron.barcode, borrower_name="x", contact_info="x",
            checked_out_at=NOW, due_date=NOW,
        ))
    with pytest.raises(IntegrityError):
        await test_db.commit()
    await test_db.rollback()


async def test_patron_points_never_negative(test_db, make_patron):
    patron = await make_patron("P1")
    with pytest.raises(IntegrityError):
        await test_db.execute(
            update(Patron).where(Patron.id == patron.id).values(points=-1),
        )
    await test_db.rollback()
