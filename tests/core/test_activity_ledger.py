"""Engagement Ledger Deltas - tests for delta construction and application.

Tests cover:
    - Event constructors move the documented counters
    - Negative and non-int fields rejected
    - apply_delta adds, never overwrites; empty delta is a pure touch
    - event_key format
"""

import uuid

import pytest

from shelfwise.core.activity_ledger import ActivityDelta, apply_delta, event_key


def test_checkin_delta():
    assert ActivityDelta.checkin(10).increments() == {
        "books_returned": 1, "total_points": 10, "points_from_books": 10,
    }


def test_checkin_without_bonus_only_counts_return():
    assert ActivityDelta.checkin(0).increments() == {"books_returned": 1}


def test_staff_summary_counts_submitted_and_approved():
    inc = ActivityDelta.staff_summary(35).increments()
    assert inc["summaries_submitted"] == 1
    assert inc["summaries_approved"] == 1
    assert inc["total_points"] == 35
    assert inc["points_from_summaries"] == 35


def test_attendance_delta():
    assert ActivityDelta.attendance(5).increments() == {
        "classes_attended": 1, "total_points": 5, "points_from_attendance": 5,
    }


def test_negative_field_rejected():
    with pytest.raises(ValueError):
        ActivityDelta(total_points=-1)


def test_non_int_field_rejected():
    with pytest.raises(TypeError):
        ActivityDelta(books_returned=1.5)
    with pytest.raises(TypeError):
        ActivityDelta(books_returned=True)


def test_empty_delta_is_touch():
    assert ActivityDelta().is_empty
    assert apply_delta({"books_returned": 3}, ActivityDelta()) == {}


def test_apply_delta_adds_to_existing_values():
    current = {"books_returned": 2, "total_points": 15, "points_from_books": None}
    assert apply_delta(current, ActivityDelta.checkin(10)) == {
        "books_returned": 3, "total_points": 25, "points_from_books": 10,
    }


def test_event_key_format():
    fact = uuid.UUID("12345678-1234-5678-1234-567812345678")
    assert event_key("checkin", fact) == "checkin:12345678-1234-5678-1234-567812345678"
