"""Engagement Ledger - keyed upsert of monthly counters.

Tests cover:
    - First event creates the row lazily with is_active set
    - Later events add to the stored counters
    - A replayed event key is a no-op
    - An empty delta only touches the row
    - award_points adds in SQL and refuses negatives
"""

import pytest
from sqlalchemy import func, select

from shelfwise.core.activity_ledger import ActivityDelta
from shelfwise.core.errors import PreconditionFailedError, ShelfwiseError
from shelfwise.models.activity_event import ActivityEvent
from shelfwise.models.monthly_activity import MonthlyActivity
from shelfwise.services.record_activity import award_points, record_activity


async def _row(db, patron, year, month):
    result = await db.execute(
        select(MonthlyActivity)
        .where(MonthlyActivity.patron_id == patron.id)
        .where(MonthlyActivity.year == year)
        .where(MonthlyActivity.month == month)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def test_first_event_creates_row(test_db, make_patron):
    patron = await make_patron("P1")

    applied = await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkout(), "checkout:1")
    await test_db.commit()

    assert applied is True
    row = await _row(test_db, patron, 2026, 3)
    assert row.books_checked_out == 1
    assert row.books_returned == 0
    assert row.is_active is True
    assert row.patron_barcode == "P1"
    assert row.patron_name == "First1 Surname1"


async def test_events_add_to_existing_row(test_db, make_patron):
    patron = await make_patron("P1")
    await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkin(10), "checkin:1")
    await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkin(5), "checkin:2")
    await record_activity(test_db, patron, 2026, 3, ActivityDelta.attendance(5), "attendance:1")
    await test_db.commit()

    row = await _row(test_db, patron, 2026, 3)
    assert row.books_returned == 2
    assert row.classes_attended == 1
    assert row.total_points == 20
    assert row.points_from_books == 15
    assert row.points_from_attendance == 5


async def test_replayed_event_key_is_noop(test_db, make_patron):
    patron = await make_patron("P1")
    first = await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkin(10), "checkin:abc")
    second = await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkin(10), "checkin:abc")
    await test_db.commit()

    assert (first, second) == (True, False)
    row = await _row(test_db, patron, 2026, 3)
    assert row.books_returned == 1
    assert row.total_points == 10
    events = await test_db.execute(select(func.count(ActivityEvent.id)))
    assert events.scalar_one() == 1


async def test_months_are_separate_rows(test_db, make_patron):
    patron = await make_patron("P1")
    await record_activity(test_db, patron, 2026, 3, ActivityDelta.checkout(), "checkout:1")
    await record_activity(test_db, patron, 2026, 4, ActivityDelta.checkout(), "checkout:2")
    await test_db.commit()

    assert (await _row(test_db, patron, 2026, 3)).books_checked_out == 1
    assert (await _row(test_db, patron, 2026, 4)).books_checked_out == 1


async def test_empty_delta_touches_row(test_db, make_patron):
    patron = await make_patron("P1")
    await record_activity(test_db, patron, 2026, 5, ActivityDelta())
    await test_db.commit()

    row = await _row(test_db, patron, 2026, 5)
    assert row.is_active is True
    assert row.total_points == 0


async def test_invalid_month_rejected(test_db, make_patron):
    patron = await make_patron("P1")
    with pytest.raises(ValueError):
        await record_activity(test_db, patron, 2026, 13, ActivityDelta.checkout())


async def test_award_points_adds(test_db, make_patron):
    patron = await make_patron("P1", points=5)
    await award_points(test_db, patron, 20)
    await award_points(test_db, patron, 0)
    await test_db.commit()
    assert patron.points == 25


async def test_award_points_refuses_negative(test_db, make_patron):
    patron = await make_patron("P1", points=7)
    with pytest.raises(PreconditionFailedError) as exc:
        await award_points(test_db, patron, -1)

    assert isinstance(exc.value, ShelfwiseError)
    assert exc.value.code == "INVALID_POINTS"
    assert exc.value.http_status == 412
    assert exc.value.context.patron_barcode == "P1"
    assert patron.points == 7
