"""Boundary Protocols - contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - Pure rules receive objects through these structural types, never ORM classes

Design Decisions:
    - Protocol over ABC: structural subtyping, ORM models and test doubles both fit
    - EligibilityCheck is the collaborator seam for "may this patron borrow";
      the photo-on-file rule is one implementation (core/eligibility.py)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class PatronLike(Protocol):
    """Fields of a patron record the core rules read."""
    barcode: str
    firstname: str
    surname: str
    middlename: str | None
    phone_number: str | None
    parent_phone_number: str | None
    active: bool
    has_open_loan: bool
    photo_public_id: str | None


class CheckoutRecordLike(Protocol):
    """One entry of an item's checkout log."""
    sequence: int
    borrower_barcode: str
    due_date: datetime
    returned_at: datetime | None


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    reason: str | None = None
    code: str = "PATRON_NOT_ELIGIBLE"


class EligibilityCheck(Protocol):
    """Contract for the identity/eligibility collaborator."""
    def evaluate(self, patron: PatronLike) -> EligibilityVerdict: ...
