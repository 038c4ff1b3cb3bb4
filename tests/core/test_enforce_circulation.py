"""Circulation Enforcement - tests for the pure checkout, check-in and overdue rules.

Tests cover:
    - find_open_record returns the last open record or None, and refuses corrupt logs
    - validate_checkout check order (eligibility, open loan, availability)
    - validate_checkin / validate_renewal borrower and state checks
    - Overdue predicates and overdue_days rounding
    - Slip formatting (borrower name, contact fallback)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from shelfwise.core.enforce_circulation import (
    NO_CONTACT, compute_due_date, find_open_record, format_borrower_name,
    is_overdue, is_overdue_by_more_than, next_sequence, overdue_days,
    resolve_contact, validate_bonus_points, validate_checkin, validate_checkout,
    validate_renewal,
)
from shelfwise.core.errors import ConflictError, PreconditionFailedError
from shelfwise.core.repository_protocols import EligibilityVerdict

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@dataclass
class _Record:
    sequence: int
    borrower_barcode: str = "P1"
    due_date: datetime = NOW
    returned_at: datetime | None = None


@dataclass
class _Patron:
    barcode: str = "P1"
    firstname: str = "Ada"
    surname: str = "Obi"
    middlename: str | None = None
    phone_number: str | None = None
    parent_phone_number: str | None = None
    active: bool = True
    has_open_loan: bool = False
    photo_public_id: str | None = "photos/p1"


OK = EligibilityVerdict(True)


# ─── Checkout log ────────────────────────────────────────────────

def test_find_open_record_empty_log():
    assert find_open_record([]) is None


def test_find_open_record_returns_last_open():
    history = [_Record(2), _Record(1, returned_at=NOW)]
    assert find_open_record(history).sequence == 2


def test_find_open_record_all_closed():
    assert find_open_record([_Record(1, returned_at=NOW)]) is None


def test_find_open_record_rejects_two_open_records():
    with pytest.raises(RuntimeError):
        find_open_record([_Record(1), _Record(2)])


def test_find_open_record_rejects_open_record_not_last():
    with pytest.raises(RuntimeError):
        find_open_record([_Record(1), _Record(2, returned_at=NOW)])


def test_next_sequence():
    assert next_sequence([]) == 1
    assert next_sequence([_Record(1), _Record(3)]) == 4


def test_borrower_name_and_contact():
    patron = _Patron(middlename="N.", parent_phone_number="0800")
    assert format_borrower_name(patron) == "Obi, Ada N."
    assert format_borrower_name(_Patron()) == "Obi, Ada"
    assert resolve_contact(patron) == "0800"
    assert resolve_contact(_Patron(phone_number="0700", parent_phone_number="0800")) == "0700"
    assert resolve_contact(_Patron()) == NO_CONTACT


# ─── Checkout ────────────────────────────────────────────────────

def test_due_date_adds_days():
    assert compute_due_date(NOW, 2) == NOW + timedelta(days=2)


def test_due_date_rejects_zero_days():
    with pytest.raises(PreconditionFailedError) as exc:
        compute_due_date(NOW, 0)
    assert exc.value.code == "INVALID_LOAN_PERIOD"


def test_checkout_ineligible_patron_fails_first():
    verdict = EligibilityVerdict(False, "no photo", "PHOTO_REQUIRED")
    with pytest.raises(PreconditionFailedError) as exc:
        validate_checkout(False, _Patron(has_open_loan=True), verdict, "I1")
    assert exc.value.code == "PHOTO_REQUIRED"


def test_checkout_patron_with_open_loan_conflicts():
    with pytest.raises(ConflictError) as exc:
        validate_checkout(True, _Patron(has_open_loan=True), OK, "I1")
    assert exc.value.code == "PATRON_HAS_OPEN_LOAN"
    assert exc.value.http_status == 409


def test_checkout_unavailable_item_conflicts():
    with pytest.raises(ConflictError) as exc:
        validate_checkout(False, _Patron(), OK, "I1")
    assert exc.value.code == "ITEM_CHECKED_OUT"


def test_checkout_passes():
    validate_checkout(True, _Patron(), OK, "I1")


# ─── Check-in / renewal ──────────────────────────────────────────

def test_negative_bonus_rejected():
    with pytest.raises(PreconditionFailedError):
        validate_bonus_points(-1)
    validate_bonus_points(0)


def test_checkin_item_not_out():
    with pytest.raises(ConflictError) as exc:
        validate_checkin(True, None, "P1", "I1")
    assert exc.value.code == "ITEM_NOT_CHECKED_OUT"


def test_checkin_by_other_patron_conflicts():
    with pytest.raises(ConflictError) as exc:
        validate_checkin(False, _Record(1, borrower_barcode="P2"), "P1", "I1")
    assert exc.value.code == "BORROWER_MISMATCH"


def test_checkin_returns_open_record():
    record = _Record(1)
    assert validate_checkin(False, record, "P1", "I1") is record


def test_renewal_requires_future_due_date():
    with pytest.raises(PreconditionFailedError) as exc:
        validate_renewal(_Record(1), "P1", "I1", NOW, NOW)
    assert exc.value.code == "DUE_DATE_IN_PAST"


def test_renewal_without_open_record_conflicts():
    with pytest.raises(ConflictError):
        validate_renewal(None, "P1", "I1", NOW + timedelta(days=1), NOW)


def test_renewal_naive_due_date_treated_as_utc():
    record = validate_renewal(
        _Record(1), "P1", "I1", datetime(2026, 3, 11), NOW,
    )
    assert record.sequence == 1


# ─── Overdue ─────────────────────────────────────────────────────

def test_overdue_predicates():
    due = NOW - timedelta(days=31)
    assert is_overdue(due, NOW)
    assert is_overdue_by_more_than(due, NOW, 30)
    assert not is_overdue_by_more_than(NOW - timedelta(days=30), NOW, 30)
    assert not is_overdue(NOW, NOW)


def test_overdue_days_rounds_up():
    assert overdue_days(NOW - timedelta(hours=1), NOW) == 1
    assert overdue_days(NOW - timedelta(days=2, minutes=1), NOW) == 3
    assert overdue_days(NOW + timedelta(days=1), NOW) == 0
