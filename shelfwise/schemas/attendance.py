"""Attendance Schemas - request body for marking class attendance."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from shelfwise.core.domain_types import ClassType


class AttendanceCreate(BaseModel):
    patron_barcode: str = Field(min_length=1, max_length=64)
    class_name: str = Field(min_length=1, max_length=200)
    class_date: date
    class_type: ClassType = ClassType.LITERACY
    points: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=2000)

    @field_validator("patron_barcode", "class_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("value cannot be empty or whitespace")
        return v
