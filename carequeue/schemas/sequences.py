"""Sequence generator schemas."""

from pydantic import BaseModel, Field


class SequenceRequest(BaseModel):
    """Request for the next number of a named sequence."""

    prefix: str = Field(..., min_length=1, max_length=10, pattern=r"^[A-Z][A-Z0-9]*$")
    period: str | None = Field(
        None,
        max_length=20,
        description="Period the counter resets on; defaults to the current YYMM",
    )
    width: int = Field(default=4, ge=1, le=10)


class SequenceResponse(BaseModel):
    """An issued sequence value."""

    name: str
    period: str
    value: int
    formatted: str
