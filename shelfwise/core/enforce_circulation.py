"""Circulation Enforcement - pure rules for checkout, check-in, renewal and overdue.

Invariants:
    - An item's open record, if any, is the last record of its log
    - find_open_record raises if the log holds more than one open record
      (corrupt log must never be "repaired" silently)
    - Overdue is derived from due_date and now, never stored
    - validate_* functions raise typed errors and never mutate their inputs

Design Decisions:
    - Friendly checks here run before the shell's conditional UPDATEs; the
      conditional UPDATE stays the authority under concurrency
"""

import math
from datetime import datetime, timedelta
from typing import Sequence

from shelfwise.core.clock import ensure_utc
from shelfwise.core.errors import (
    ConflictError, ErrorContext, PreconditionFailedError,
)
from shelfwise.core.repository_protocols import (
    CheckoutRecordLike, EligibilityVerdict, PatronLike,
)


NO_CONTACT = "No Phone Number"


# ─── Checkout log ────────────────────────────────────────────────

def count_open_records(history: Sequence[CheckoutRecordLike]) -> int:
    return sum(1 for r in history if r.returned_at is None)


def find_open_record(
    history: Sequence[CheckoutRecordLike],
) -> CheckoutRecordLike | None:
    """Return the open record (always the last one) or None."""
    if not history:
        return None
    ordered = sorted(history, key=lambda r: r.sequence)
    open_count = count_open_records(ordered)
    if open_count > 1:
        raise RuntimeError(f"Checkout log holds {open_count} open records")
    last = ordered[-1]
    if last.returned_at is None:
        return last
    if open_count:
        raise RuntimeError("Open checkout record is not the last log entry")
    return None


def next_sequence(history: Sequence[CheckoutRecordLike]) -> int:
    return max((r.sequence for r in history), default=0) + 1


def format_borrower_name(patron: PatronLike) -> str:
    """'Surname, Firstname Middlename' as printed on circulation slips."""
    return f"{patron.surname}, {patron.firstname} {patron.middlename or ''}".strip()


def resolve_contact(patron: PatronLike) -> str:
    return patron.phone_number or patron.parent_phone_number or NO_CONTACT


# ─── Checkout ────────────────────────────────────────────────────

def compute_due_date(now: datetime, due_in_days: int) -> datetime:
    if due_in_days < 1:
        raise PreconditionFailedError(
            f"Loan period must be at least 1 day (got {due_in_days})",
            "INVALID_LOAN_PERIOD",
        )
    return ensure_utc(now) + timedelta(days=due_in_days)


def validate_checkout(
    item_available: bool,
    patron: PatronLike,
    verdict: EligibilityVerdict,
    item_barcode: str,
) -> None:
    """Eligibility first, then loan guard, then item availability."""
    ctx = ErrorContext(patron_barcode=patron.barcode, item_barcode=item_barcode)
    if not verdict.eligible:
        raise PreconditionFailedError(
            verdict.reason or "Patron is not eligible to borrow", verdict.code, ctx,
        )
    if patron.has_open_loan:
        raise ConflictError(
            "Only one item can be borrowed at a time", "PATRON_HAS_OPEN_LOAN", ctx,
        )
    if not item_available:
        raise ConflictError("Item is already checked out", "ITEM_CHECKED_OUT", ctx)


# ─── Check-in ────────────────────────────────────────────────────

def validate_bonus_points(points: int) -> None:
    if points < 0:
        raise PreconditionFailedError(
            f"Bonus points cannot be negative (got {points})", "INVALID_POINTS",
        )


def validate_checkin(
    item_available: bool,
    open_record: CheckoutRecordLike | None,
    patron_barcode: str,
    item_barcode: str,
) -> CheckoutRecordLike:
    ctx = ErrorContext(patron_barcode=patron_barcode, item_barcode=item_barcode)
    if item_available or open_record is None:
        raise ConflictError("Item is not checked out", "ITEM_NOT_CHECKED_OUT", ctx)
    if open_record.borrower_barcode != patron_barcode:
        raise ConflictError(
            "Item is not checked out by this patron", "BORROWER_MISMATCH", ctx,
        )
    return open_record


# ─── Renewal ─────────────────────────────────────────────────────

def validate_renewal(
    open_record: CheckoutRecordLike | None,
    patron_barcode: str,
    item_barcode: str,
    new_due_date: datetime,
    now: datetime,
) -> CheckoutRecordLike:
    ctx = ErrorContext(patron_barcode=patron_barcode, item_barcode=item_barcode)
    if open_record is None:
        raise ConflictError(
            "Item is not currently checked out", "ITEM_NOT_CHECKED_OUT", ctx,
        )
    if open_record.borrower_barcode != patron_barcode:
        raise ConflictError(
            "Item is not checked out by this patron", "BORROWER_MISMATCH", ctx,
        )
    if ensure_utc(new_due_date) <= ensure_utc(now):
        raise PreconditionFailedError(
            "New due date must be in the future", "DUE_DATE_IN_PAST", ctx,
        )
    return open_record


# ─── Overdue ─────────────────────────────────────────────────────

def is_overdue(due_date: datetime, now: datetime) -> bool:
    return ensure_utc(due_date) < ensure_utc(now)


def is_overdue_by_more_than(due_date: datetime, now: datetime, days: int) -> bool:
    return ensure_utc(now) - ensure_utc(due_date) > timedelta(days=days)


def overdue_days(due_date: datetime, now: datetime) -> int:
    """Whole days late, rounded up; 0 when not overdue."""
    delta = ensure_utc(now) - ensure_utc(due_date)
    if delta <= timedelta(0):
        return 0
    return math.ceil(delta / timedelta(days=1))
