"""Appointment and OPD queue schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from carequeue.schemas.schedules import TIME_PATTERN


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    IN_CONSULTATION = "IN_CONSULTATION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Bookings in these states no longer hold their slot
TERMINAL_BOOKING_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value)


class QueueStatus(str, Enum):
    """OPD queue entry status enumeration."""

    WAITING = "WAITING"
    IN_CONSULTATION = "IN_CONSULTATION"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class ConsultationType(str, Enum):
    """Consultation type enumeration."""

    NEW = "NEW"
    FOLLOW_UP = "FOLLOW_UP"
    EMERGENCY = "EMERGENCY"


class BookingChannel(str, Enum):
    """Where the booking was taken."""

    COUNTER = "COUNTER"
    PHONE = "PHONE"
    ONLINE = "ONLINE"


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""

    patient_id: UUID
    doctor_id: UUID
    appointment_date: date
    slot_time: str = Field(..., examples=["09:00"])
    consultation_type: ConsultationType = ConsultationType.NEW
    chief_complaint: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    booked_via: BookingChannel = BookingChannel.COUNTER

    @field_validator("slot_time")
    @classmethod
    def validate_slot_time(cls, v: str) -> str:
        """Validate HH:MM format."""
        if not TIME_PATTERN.match(v):
            raise ValueError("Slot time must be in HH:MM 24-hour format")
        return v


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(..., min_length=1, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    hospital_id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_date: date
    slot_time: str
    token_number: str | None
    status: AppointmentStatus
    consultation_type: ConsultationType
    chief_complaint: str | None = None
    notes: str | None = None
    booked_via: str
    confirmed_at: datetime | None = None
    checked_in_at: datetime | None = None
    consultation_start_at: datetime | None = None
    consultation_end_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    appointment_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class CheckInRequest(BaseModel):
    """Schema for checking a patient in at the front desk."""

    chief_complaint: str | None = Field(None, max_length=500)


class QueueSkip(BaseModel):
    """Schema for skipping a waiting patient."""

    reason: str = Field(..., min_length=1, max_length=500)


class QueueEntryResponse(BaseModel):
    """Schema for OPD queue entry response."""

    id: UUID
    hospital_id: UUID
    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    queue_date: date
    token_number: str
    position: int
    status: QueueStatus
    check_in_time: datetime | None = None
    call_time: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    estimated_wait_minutes: int | None = None
    actual_wait_minutes: int | None = None
    skip_reason: str | None = None

    model_config = {"from_attributes": True}


class CheckInResponse(BaseModel):
    """Result of checking a patient in."""

    appointment: AppointmentResponse
    queue_entry: QueueEntryResponse


class QueueStats(BaseModel):
    """Counts for one doctor's queue."""

    waiting: int
    in_consultation: int
    completed: int
    skipped: int


class DoctorQueueResponse(BaseModel):
    """A doctor's queue for one date."""

    doctor_id: UUID
    queue_date: date
    current_patient: QueueEntryResponse | None
    entries: list[QueueEntryResponse]
    stats: QueueStats


class DoctorWaitingCount(BaseModel):
    """Waiting patients for one doctor."""

    doctor_id: UUID
    doctor_name: str
    waiting_count: int


class OpdDashboardResponse(BaseModel):
    """OPD statistics for one date."""

    date: date
    appointments_total: int
    appointments_by_status: dict[str, int]
    queue_total: int
    queue_by_status: dict[str, int]
    doctor_queues: list[DoctorWaitingCount]
