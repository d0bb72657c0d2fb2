"""Ward, bed, admission and bed transfer tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
    text,
    true,
)

from carequeue.models.metadata import metadata

wards = Table(
    "wards",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("code", String(10), nullable=False),
    Column("type", String(20), nullable=False, server_default="GENERAL"),
    Column("floor", String(20), nullable=True),
    Column("daily_rate", Numeric(10, 2), nullable=False, server_default=text("0")),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
    Column("updated_by", Uuid, nullable=True),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("hospital_id", "code", name="uq_wards_hospital_code"),
)

beds = Table(
    "beds",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("ward_id", Uuid, ForeignKey("wards.id"), nullable=False, index=True),
    Column("bed_number", String(20), nullable=False),
    Column("bed_type", String(30), nullable=False, server_default="Regular"),
    # Single source of truth for occupancy
    Column("status", String(20), nullable=False, server_default="AVAILABLE"),
    Column("daily_rate", Numeric(10, 2), nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
    Column("updated_by", Uuid, nullable=True),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("ward_id", "bed_number", name="uq_beds_ward_bed_number"),
    CheckConstraint(
        "status IN ('AVAILABLE', 'OCCUPIED', 'MAINTENANCE', 'RESERVED')",
        name="status_check",
    ),
)

admissions = Table(
    "admissions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column("admission_no", String(30), nullable=False, unique=True),
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False, index=True),
    Column("admitting_doctor_id", Uuid, ForeignKey("doctors.id"), nullable=False),
    Column("attending_doctor_id", Uuid, ForeignKey("doctors.id"), nullable=True),
    Column("bed_id", Uuid, ForeignKey("beds.id"), nullable=False),
    Column("source_appointment_id", Uuid, ForeignKey("appointments.id"), nullable=True),
    Column("admission_date", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("admission_type", String(20), nullable=False, server_default="ELECTIVE"),
    Column("admission_reason", Text, nullable=False),
    Column("chief_complaint", Text, nullable=True),
    Column("provisional_diagnosis", Text, nullable=True),
    Column("expected_stay_days", Integer, nullable=True),
    Column("expected_discharge", DateTime(timezone=True), nullable=True),
    Column("is_insured", Boolean, nullable=False, server_default=false()),
    Column("insurance_approval_no", String(50), nullable=True),
    Column("status", String(20), nullable=False, server_default="ADMITTED"),
    # Discharge
    Column("discharge_date", DateTime(timezone=True), nullable=True),
    Column("discharge_type", String(20), nullable=True),
    Column("discharge_summary", Text, nullable=True),
    Column("discharge_advice", Text, nullable=True),
    Column("follow_up_date", Date, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
    Column("updated_by", Uuid, nullable=True),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    CheckConstraint(
        "status IN ('ADMITTED', 'TRANSFERRED', 'DISCHARGED', 'EXPIRED', 'LAMA')",
        name="status_check",
    ),
)

# At most one active admission per bed
_admitted = text("status = 'ADMITTED'")
Index(
    "uq_admissions_one_admitted_per_bed",
    admissions.c.bed_id,
    unique=True,
    postgresql_where=_admitted,
    sqlite_where=_admitted,
)

# Append-only audit trail
bed_transfers = Table(
    "bed_transfers",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("admission_id", Uuid, ForeignKey("admissions.id"), nullable=False, index=True),
    Column("from_bed_id", Uuid, ForeignKey("beds.id"), nullable=False),
    Column("to_bed_id", Uuid, ForeignKey("beds.id"), nullable=False),
    Column("transfer_date", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
)
