"""Doctor schedule schemas and slot planner types."""

import re
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def time_to_minutes(value: str) -> int:
    """Convert an HH:MM string to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    """Format minutes since midnight as HH:MM."""
    return f"{value // 60:02d}:{value % 60:02d}"


class ScheduleBlock(BaseModel):
    """A recurring weekly block the slot planner works from."""

    doctor_id: UUID | None = None
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str
    slot_duration_minutes: int = 15
    buffer_minutes: int = 5
    max_patients: int | None = None
    is_active: bool = True

    model_config = {"from_attributes": True}


class ScheduleBlockCreate(BaseModel):
    """Schema for configuring a new schedule block."""

    doctor_id: UUID
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["13:00"])
    slot_duration_minutes: int = Field(default=15, ge=0, le=480)
    buffer_minutes: int = Field(default=5, ge=0, le=240)
    max_patients: int | None = Field(None, ge=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        if not TIME_PATTERN.match(v):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return v

    @model_validator(mode="after")
    def validate_block(self) -> "ScheduleBlockCreate":
        """Reject blocks the planner could never step through."""
        if self.slot_duration_minutes + self.buffer_minutes <= 0:
            raise ValueError("slot_duration_minutes + buffer_minutes must be greater than 0")
        if time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleBlockResponse(ScheduleBlock):
    """Schema for schedule block response."""

    id: UUID
    doctor_id: UUID
    created_at: datetime
    updated_at: datetime


class TimeSlot(BaseModel):
    """One bookable time offset."""

    time: str
    available: bool


class AvailableSlotsResponse(BaseModel):
    """Slots for one doctor on one date."""

    doctor_id: UUID
    date: date
    slots: list[TimeSlot]
    available_count: int
    total_count: int
