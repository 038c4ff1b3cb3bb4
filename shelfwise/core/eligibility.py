"""Checkout eligibility - default implementation of the EligibilityCheck contract.

Invariants:
    - Suspended patrons (active == False) are never eligible
    - With require_photo, a blank or missing photo_public_id is not eligible
"""

from shelfwise.core.repository_protocols import EligibilityVerdict, PatronLike


class PhotoOnFileEligibility:
    """Patron must be active and, optionally, have an identity photo uploaded."""

    def __init__(self, require_photo: bool = True):
        self.require_photo = require_photo

    def evaluate(self, patron: PatronLike) -> EligibilityVerdict:
        if not patron.active:
            return EligibilityVerdict(
                False,
                "Patron is inactive. Please contact the ICT department to reactivate the account.",
                "PATRON_INACTIVE",
            )
        if self.require_photo and not (patron.photo_public_id or "").strip():
            return EligibilityVerdict(
                False, "You must upload a passport photograph", "PHOTO_REQUIRED",
            )
        return EligibilityVerdict(True)
