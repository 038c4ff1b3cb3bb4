"""Clock helpers - UTC normalization and calendar-month arithmetic. Pure, no IO.

Invariants:
    - Every datetime leaving this module is timezone-aware UTC
    - month_window(year, month) is half-open: [start, end)
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops tzinfo); convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_key(when: datetime | date) -> tuple[int, int]:
    """(year, month) bucket for a ledger event."""
    if isinstance(when, datetime):
        when = ensure_utc(when)
    return when.year, when.month


def validate_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    if year < 1:
        raise ValueError(f"year must be positive, got {year}")


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """UTC bounds of a calendar month."""
    validate_month(year, month)
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end