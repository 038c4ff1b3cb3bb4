"""Analytics Schemas - request body for an explicit month recompute."""

from pydantic import BaseModel, Field


class RecomputeRequest(BaseModel):
    year: int = Field(ge=2000, le=9999)
    month: int = Field(ge=1, le=12)
    limit: int | None = Field(None, ge=1, le=1000)
