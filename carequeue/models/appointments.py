"""Appointment and OPD queue tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from carequeue.models.metadata import metadata

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    # Ownership / references
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False, index=True),
    Column("doctor_id", Uuid, ForeignKey("doctors.id"), nullable=False, index=True),
    # Slot
    Column("appointment_date", Date, nullable=False),
    Column("slot_time", String(5), nullable=False),
    Column("token_number", String(20), nullable=True),
    # Appointment details
    Column("consultation_type", String(20), nullable=False, server_default="NEW"),
    Column("chief_complaint", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("booked_via", String(20), nullable=False, server_default="COUNTER"),
    # Status management
    Column("status", String(20), nullable=False, server_default="SCHEDULED"),
    Column("confirmed_at", DateTime(timezone=True), nullable=True),
    Column("checked_in_at", DateTime(timezone=True), nullable=True),
    Column("consultation_start_at", DateTime(timezone=True), nullable=True),
    Column("consultation_end_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
    Column("updated_by", Uuid, nullable=True),
    # Soft delete (healthcare compliance)
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('SCHEDULED', 'CONFIRMED', 'CHECKED_IN', 'IN_CONSULTATION', "
        "'COMPLETED', 'CANCELLED', 'NO_SHOW')",
        name="status_check",
    ),
)

# One live booking per doctor/date/slot; cancelled and no-show rows free the slot
_live_booking = text(
    "status NOT IN ('CANCELLED', 'NO_SHOW') AND deleted_at IS NULL"
)
Index(
    "uq_appointments_live_slot",
    appointments.c.doctor_id,
    appointments.c.appointment_date,
    appointments.c.slot_time,
    unique=True,
    postgresql_where=_live_booking,
    sqlite_where=_live_booking,
)
Index(
    "ix_appointments_doctor_date",
    appointments.c.doctor_id,
    appointments.c.appointment_date,
)

# OPD queue table
opd_queue = Table(
    "opd_queue",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id"),
        nullable=False,
        unique=True,
    ),
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id"), nullable=False),
    Column("queue_date", Date, nullable=False),
    Column("token_number", String(20), nullable=False),
    Column("position", Integer, nullable=False),
    Column("status", String(20), nullable=False, server_default="WAITING"),
    Column("check_in_time", DateTime(timezone=True), nullable=True),
    Column("call_time", DateTime(timezone=True), nullable=True),
    Column("start_time", DateTime(timezone=True), nullable=True),
    Column("end_time", DateTime(timezone=True), nullable=True),
    Column("estimated_wait_minutes", Integer, nullable=True),
    Column("actual_wait_minutes", Integer, nullable=True),
    Column("skip_reason", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('WAITING', 'IN_CONSULTATION', 'COMPLETED', 'SKIPPED')",
        name="status_check",
    ),
)

_in_consultation = text("status = 'IN_CONSULTATION'")
Index(
    "uq_opd_queue_one_in_consultation",
    opd_queue.c.doctor_id,
    opd_queue.c.queue_date,
    unique=True,
    postgresql_where=_in_consultation,
    sqlite_where=_in_consultation,
)
Index(
    "ix_opd_queue_doctor_date_status",
    opd_queue.c.doctor_id,
    opd_queue.c.queue_date,
    opd_queue.c.status,
)
