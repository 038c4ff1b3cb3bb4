"""Book Summary Schemas - submission, staff creation and review bodies.

Invariants:
    - Summary length and rating range are NOT checked here: the review rules
      in core/enforce_summary.py own them and answer with 412, not 400
    - ReviewDecision.status is one of "approved" | "rejected"

Design Decisions:
    - Literal type for the decision over a str enum: Pydantic validates natively
"""

from typing import Literal

from pydantic import BaseModel, Field


class SummarySubmit(BaseModel):
    """Patron submission. patron_barcode is taken from the caller for patrons."""
    patron_barcode: str | None = Field(None, max_length=64)
    book_barcode: str = Field(min_length=1, max_length=64)
    summary: str = Field(max_length=20_000)
    rating: int


class StaffSummaryCreate(BaseModel):
    patron_barcode: str = Field(min_length=1, max_length=64)
    book_barcode: str = Field(min_length=1, max_length=64)
    summary: str = Field(max_length=20_000)
    rating: int
    staff_bonus: int


class ReviewDecision(BaseModel):
    status: Literal["approved", "rejected"]
    points: int = 0
    feedback: str | None = Field(None, max_length=2000)
