"""Review Workflow Enforcement - pure rules for book-summary submission and review.

Invariants:
    - status moves only pending -> approved | rejected, exactly once
    - approved points are within 1..max_approval_bonus; rejected points are 0
    - staff bonus is within 1..max_staff_bonus
    - SummaryPolicy is the single source for the length, rating, cap and point rules
"""

from dataclasses import dataclass
from typing import Iterable

from shelfwise.core.domain_types import SummaryStatus
from shelfwise.core.errors import (
    ConflictError, ErrorContext, PreconditionFailedError,
)


MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class SummaryPolicy:
    min_length: int = 100
    monthly_cap: int = 4
    submission_points: int = 25
    max_approval_bonus: int = 50
    max_staff_bonus: int = 20


DEFAULT_SUMMARY_POLICY = SummaryPolicy()


@dataclass(frozen=True)
class ReviewOutcome:
    status: SummaryStatus
    points: int


def validate_summary_content(
    text: str, rating: int, policy: SummaryPolicy = DEFAULT_SUMMARY_POLICY,
) -> str:
    """Return the trimmed summary text or raise PreconditionFailedError."""
    cleaned = (text or "").strip()
    if len(cleaned) < policy.min_length:
        raise PreconditionFailedError(
            f"Summary must be at least {policy.min_length} characters long.",
            "SUMMARY_TOO_SHORT",
        )
    if not MIN_RATING <= rating <= MAX_RATING:
        raise PreconditionFailedError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}.",
            "INVALID_RATING",
        )
    return cleaned


def validate_borrower_history(
    book_barcode: str, borrowed_barcodes: Iterable[str], patron_barcode: str,
) -> None:
    if book_barcode not in set(borrowed_barcodes):
        raise PreconditionFailedError(
            "You can only submit a summary for a book you have borrowed.",
            "BOOK_NOT_BORROWED",
            ErrorContext(patron_barcode=patron_barcode, item_barcode=book_barcode),
        )


def validate_book_returned(book_available: bool, book_barcode: str) -> None:
    if not book_available:
        raise ConflictError(
            "This book is still checked out. Return it before submitting a summary.",
            "BOOK_NOT_RETURNED",
            ErrorContext(item_barcode=book_barcode),
        )


def validate_monthly_cap(
    submitted_this_month: int, patron_barcode: str,
    policy: SummaryPolicy = DEFAULT_SUMMARY_POLICY,
) -> None:
    if submitted_this_month >= policy.monthly_cap:
        raise PreconditionFailedError(
            f"Monthly limit reached: at most {policy.monthly_cap} summaries per month.",
            "SUMMARY_CAP_REACHED",
            ErrorContext(
                patron_barcode=patron_barcode,
                details={"submitted_this_month": submitted_this_month},
            ),
        )


def resolve_review(
    current_status: str,
    decision: str,
    points: int,
    policy: SummaryPolicy = DEFAULT_SUMMARY_POLICY,
) -> ReviewOutcome:
    """Decide the terminal state and awarded points of a review."""
    if current_status != SummaryStatus.PENDING.value:
        raise ConflictError(
            "This summary has already been reviewed.", "ALREADY_REVIEWED",
            ErrorContext(details={"status": current_status}),
        )
    try:
        target = SummaryStatus(decision)
    except ValueError:
        target = None
    if target not in (SummaryStatus.APPROVED, SummaryStatus.REJECTED):
        raise PreconditionFailedError(
            'Status must be either "approved" or "rejected".', "INVALID_DECISION",
        )
    if target is SummaryStatus.REJECTED:
        return ReviewOutcome(target, 0)
    if not 1 <= points <= policy.max_approval_bonus:
        raise PreconditionFailedError(
            f"Approval points must be between 1 and {policy.max_approval_bonus}.",
            "INVALID_POINTS",
        )
    return ReviewOutcome(target, points)


def validate_staff_bonus(
    bonus: int, policy: SummaryPolicy = DEFAULT_SUMMARY_POLICY,
) -> int:
    """Total points awarded by a staff-created summary."""
    if not 1 <= bonus <= policy.max_staff_bonus:
        raise PreconditionFailedError(
            f"Staff bonus must be between 1 and {policy.max_staff_bonus}.",
            "INVALID_POINTS",
        )
    return policy.submission_points + bonus
