"""Ward, bed and admission schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class WardType(str, Enum):
    """Ward type enumeration."""

    GENERAL = "GENERAL"
    SEMI_PRIVATE = "SEMI_PRIVATE"
    PRIVATE = "PRIVATE"
    ICU = "ICU"
    NICU = "NICU"
    PICU = "PICU"
    CCU = "CCU"
    ISOLATION = "ISOLATION"
    EMERGENCY = "EMERGENCY"


class BedStatus(str, Enum):
    """Bed status enumeration."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    RESERVED = "RESERVED"


class AdmissionStatus(str, Enum):
    """Admission status enumeration."""

    ADMITTED = "ADMITTED"
    TRANSFERRED = "TRANSFERRED"
    DISCHARGED = "DISCHARGED"
    EXPIRED = "EXPIRED"
    LAMA = "LAMA"


class AdmissionType(str, Enum):
    """Admission type enumeration."""

    ELECTIVE = "ELECTIVE"
    EMERGENCY = "EMERGENCY"


class DischargeType(str, Enum):
    """Discharge type enumeration."""

    NORMAL = "Normal"
    LAMA = "LAMA"
    REFERRED = "Referred"
    EXPIRED = "Expired"
    ABSCONDED = "Absconded"


class WardCreate(BaseModel):
    """Schema for creating a ward."""

    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=10)
    type: WardType = WardType.GENERAL
    floor: str | None = Field(None, max_length=20)
    daily_rate: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Ward codes are stored upper case."""
        return v.strip().upper()


class WardResponse(BaseModel):
    """Schema for ward response."""

    id: UUID
    hospital_id: UUID
    name: str
    code: str
    type: WardType
    floor: str | None = None
    daily_rate: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BedCreate(BaseModel):
    """Schema for creating a bed."""

    ward_id: UUID
    bed_number: str = Field(..., min_length=1, max_length=20)
    bed_type: str = Field(default="Regular", max_length=30)
    daily_rate: Decimal | None = Field(None, ge=0)


class BedStatusUpdate(BaseModel):
    """Schema for housekeeping status changes (maintenance, reservation)."""

    status: BedStatus


class BedResponse(BaseModel):
    """Schema for bed response."""

    id: UUID
    ward_id: UUID
    bed_number: str
    bed_type: str
    status: BedStatus
    daily_rate: Decimal | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class AdmissionCreate(BaseModel):
    """Schema for admitting a patient."""

    patient_id: UUID
    admitting_doctor_id: UUID
    attending_doctor_id: UUID | None = None
    bed_id: UUID
    admission_reason: str = Field(..., min_length=1, max_length=1000)
    admission_type: AdmissionType = AdmissionType.ELECTIVE
    chief_complaint: str | None = Field(None, max_length=1000)
    provisional_diagnosis: str | None = Field(None, max_length=1000)
    expected_stay_days: int | None = Field(None, ge=1)
    is_insured: bool = False
    insurance_approval_no: str | None = Field(None, max_length=50)
    source_appointment_id: UUID | None = Field(
        None,
        description="Completed outpatient visit this admission was converted from",
    )


class DischargeRequest(BaseModel):
    """Schema for discharging a patient."""

    discharge_type: DischargeType
    discharge_summary: str | None = None
    discharge_advice: str | None = None
    follow_up_date: date | None = None


class BedTransferRequest(BaseModel):
    """Schema for moving a patient to another bed."""

    to_bed_id: UUID
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)


class AdmissionResponse(BaseModel):
    """Schema for admission response."""

    id: UUID
    hospital_id: UUID
    admission_no: str
    patient_id: UUID
    admitting_doctor_id: UUID
    attending_doctor_id: UUID | None = None
    bed_id: UUID
    source_appointment_id: UUID | None = None
    admission_date: datetime
    admission_type: AdmissionType
    admission_reason: str
    chief_complaint: str | None = None
    provisional_diagnosis: str | None = None
    expected_stay_days: int | None = None
    expected_discharge: datetime | None = None
    is_insured: bool
    insurance_approval_no: str | None = None
    status: AdmissionStatus
    discharge_date: datetime | None = None
    discharge_type: str | None = None
    discharge_summary: str | None = None
    discharge_advice: str | None = None
    follow_up_date: date | None = None

    model_config = {"from_attributes": True}


class AdmissionListResponse(BaseModel):
    """Schema for paginated admission list response."""

    total: int
    page: int
    page_size: int
    items: list[AdmissionResponse]


class BedTransferResponse(BaseModel):
    """Schema for bed transfer audit record."""

    id: UUID
    admission_id: UUID
    from_bed_id: UUID
    to_bed_id: UUID
    transfer_date: datetime
    reason: str | None = None
    notes: str | None = None
    created_by: UUID | None = None

    model_config = {"from_attributes": True}


class WardOccupancy(BaseModel):
    """Live occupancy for one ward."""

    ward_id: UUID
    name: str
    code: str
    type: WardType
    total_beds: int
    occupied_beds: int
    beds_by_status: dict[str, int]
    occupancy_rate: float


class IpdDashboardResponse(BaseModel):
    """IPD statistics for the caller's hospital."""

    total_beds: int
    beds_by_status: dict[str, int]
    currently_admitted: int
    today_admissions: int
    today_discharges: int
    ward_occupancy: list[WardOccupancy]
