"""Circulation Schemas - request bodies for checkout, check-in and renewal.

Invariants:
    - Barcodes are stripped and non-empty
    - due_in_days, when given, is >= 1; bonus_points is >= 0
    - new_due_date must carry a timezone offset (naive datetimes are ambiguous)
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class _BarcodePair(BaseModel):
    item_barcode: str = Field(min_length=1, max_length=64)
    patron_barcode: str = Field(min_length=1, max_length=64)

    @field_validator("item_barcode", "patron_barcode")
    @classmethod
    def strip_barcode(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("barcode cannot be empty or whitespace")
        return v


class CheckoutRequest(_BarcodePair):
    due_in_days: int | None = Field(None, ge=1, le=365)
    event_title: str | None = Field(None, max_length=200)


class CheckinRequest(_BarcodePair):
    bonus_points: int = Field(0, ge=0)


class RenewRequest(_BarcodePair):
    new_due_date: datetime

    @field_validator("new_due_date")
    @classmethod
    def require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("new_due_date must include a timezone offset")
        return v
