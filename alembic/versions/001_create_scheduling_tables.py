"""Create registry, scheduling, OPD queue, IPD and sequence tables.

Revision ID: 001
Revises:
Create Date: 2025-06-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, postgresql.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=False,
    )


def _audit() -> list[sa.Column]:
    return [
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.Column("updated_by", postgresql.UUID(), nullable=True),
        _timestamp("deleted_at", nullable=True),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Patients (registry owned by the front desk, read here)
    op.create_table(
        "patients",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("uhid", sa.VARCHAR(length=30), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("gender", sa.VARCHAR(length=20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("mobile_primary", sa.VARCHAR(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_patients"),
        sa.UniqueConstraint("uhid", name="uq_patients_uhid"),
    )
    op.create_index("ix_patients_hospital_id", "patients", ["hospital_id"])

    # Doctors
    op.create_table(
        "doctors",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("user_id", postgresql.UUID(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("specialization", sa.VARCHAR(length=200), nullable=True),
        sa.Column("consultation_fee", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "avg_consultation_minutes", sa.Integer(), server_default=sa.text("15"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_doctors"),
        sa.UniqueConstraint("user_id", name="uq_doctors_user_id"),
    )
    op.create_index("ix_doctors_hospital_id", "doctors", ["hospital_id"])

    # Weekly schedule blocks
    op.create_table(
        "doctor_schedules",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("end_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), server_default=sa.text("15"), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), server_default=sa.text("5"), nullable=False),
        sa.Column("max_patients", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.Column("updated_by", postgresql.UUID(), nullable=True),
        sa.CheckConstraint(
            "day_of_week BETWEEN 0 AND 6", name="ck_doctor_schedules_day_of_week_range"
        ),
        sa.CheckConstraint(
            "slot_duration_minutes + buffer_minutes > 0", name="ck_doctor_schedules_positive_step"
        ),
        sa.ForeignKeyConstraint(
            ["doctor_id"],
            ["doctors.id"],
            name="fk_doctor_schedules_doctor_id_doctors",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_doctor_schedules"),
    )
    op.create_index("ix_doctor_schedules_hospital_id", "doctor_schedules", ["hospital_id"])
    op.create_index("ix_doctor_schedules_doctor_id", "doctor_schedules", ["doctor_id"])

    # Appointments
    op.create_table(
        "appointments",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("slot_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("token_number", sa.VARCHAR(length=20), nullable=True),
        sa.Column("consultation_type", sa.VARCHAR(length=20), server_default="NEW", nullable=False),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("booked_via", sa.VARCHAR(length=20), server_default="COUNTER", nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="SCHEDULED", nullable=False),
        _timestamp("confirmed_at", nullable=True),
        _timestamp("checked_in_at", nullable=True),
        _timestamp("consultation_start_at", nullable=True),
        _timestamp("consultation_end_at", nullable=True),
        _timestamp("cancelled_at", nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_audit(),
        sa.CheckConstraint(
            "status IN ('SCHEDULED', 'CONFIRMED', 'CHECKED_IN', 'IN_CONSULTATION', "
            "'COMPLETED', 'CANCELLED', 'NO_SHOW')",
            name="ck_appointments_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"], ["patients.id"], name="fk_appointments_patient_id_patients"
        ),
        sa.ForeignKeyConstraint(
            ["doctor_id"], ["doctors.id"], name="fk_appointments_doctor_id_doctors"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
    )
    op.create_index("ix_appointments_hospital_id", "appointments", ["hospital_id"])
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_doctor_id", "appointments", ["doctor_id"])
    op.create_index(
        "ix_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"]
    )
    # One live booking per doctor/date/slot
    op.create_index(
        "uq_appointments_live_slot",
        "appointments",
        ["doctor_id", "appointment_date", "slot_time"],
        unique=True,
        postgresql_where=sa.text(
            "status NOT IN ('CANCELLED', 'NO_SHOW') AND deleted_at IS NULL"
        ),
    )

    # OPD queue
    op.create_table(
        "opd_queue",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("queue_date", sa.Date(), nullable=False),
        sa.Column("token_number", sa.VARCHAR(length=20), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="WAITING", nullable=False),
        _timestamp("check_in_time", nullable=True),
        _timestamp("call_time", nullable=True),
        _timestamp("start_time", nullable=True),
        _timestamp("end_time", nullable=True),
        sa.Column("estimated_wait_minutes", sa.Integer(), nullable=True),
        sa.Column("actual_wait_minutes", sa.Integer(), nullable=True),
        sa.Column("skip_reason", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('WAITING', 'IN_CONSULTATION', 'COMPLETED', 'SKIPPED')",
            name="ck_opd_queue_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["appointment_id"], ["appointments.id"], name="fk_opd_queue_appointment_id_appointments"
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"], ["patients.id"], name="fk_opd_queue_patient_id_patients"
        ),
        sa.ForeignKeyConstraint(
            ["doctor_id"], ["doctors.id"], name="fk_opd_queue_doctor_id_doctors"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_opd_queue"),
        sa.UniqueConstraint("appointment_id", name="uq_opd_queue_appointment_id"),
    )
    op.create_index("ix_opd_queue_hospital_id", "opd_queue", ["hospital_id"])
    op.create_index(
        "ix_opd_queue_doctor_date_status", "opd_queue", ["doctor_id", "queue_date", "status"]
    )
    # At most one patient in consultation per doctor per day
    op.create_index(
        "uq_opd_queue_one_in_consultation",
        "opd_queue",
        ["doctor_id", "queue_date"],
        unique=True,
        postgresql_where=sa.text("status = 'IN_CONSULTATION'"),
    )

    # Wards
    op.create_table(
        "wards",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("code", sa.VARCHAR(length=10), nullable=False),
        sa.Column("type", sa.VARCHAR(length=20), server_default="GENERAL", nullable=False),
        sa.Column("floor", sa.VARCHAR(length=20), nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_audit(),
        sa.PrimaryKeyConstraint("id", name="pk_wards"),
        sa.UniqueConstraint("hospital_id", "code", name="uq_wards_hospital_code"),
    )
    op.create_index("ix_wards_hospital_id", "wards", ["hospital_id"])

    # Beds
    op.create_table(
        "beds",
        _id(),
        sa.Column("ward_id", postgresql.UUID(), nullable=False),
        sa.Column("bed_number", sa.VARCHAR(length=20), nullable=False),
        sa.Column("bed_type", sa.VARCHAR(length=30), server_default="Regular", nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="AVAILABLE", nullable=False),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_audit(),
        sa.CheckConstraint(
            "status IN ('AVAILABLE', 'OCCUPIED', 'MAINTENANCE', 'RESERVED')",
            name="ck_beds_status_check",
        ),
        sa.ForeignKeyConstraint(["ward_id"], ["wards.id"], name="fk_beds_ward_id_wards"),
        sa.PrimaryKeyConstraint("id", name="pk_beds"),
        sa.UniqueConstraint("ward_id", "bed_number", name="uq_beds_ward_bed_number"),
    )
    op.create_index("ix_beds_ward_id", "beds", ["ward_id"])

    # Admissions
    op.create_table(
        "admissions",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("admission_no", sa.VARCHAR(length=30), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("admitting_doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("attending_doctor_id", postgresql.UUID(), nullable=True),
        sa.Column("bed_id", postgresql.UUID(), nullable=False),
        sa.Column("source_appointment_id", postgresql.UUID(), nullable=True),
        _timestamp("admission_date"),
        sa.Column("admission_type", sa.VARCHAR(length=20), server_default="ELECTIVE", nullable=False),
        sa.Column("admission_reason", sa.Text(), nullable=False),
        sa.Column("chief_complaint", sa.Text(), nullable=True),
        sa.Column("provisional_diagnosis", sa.Text(), nullable=True),
        sa.Column("expected_stay_days", sa.Integer(), nullable=True),
        _timestamp("expected_discharge", nullable=True),
        sa.Column("is_insured", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("insurance_approval_no", sa.VARCHAR(length=50), nullable=True),
        sa.Column("status", sa.VARCHAR(length=20), server_default="ADMITTED", nullable=False),
        _timestamp("discharge_date", nullable=True),
        sa.Column("discharge_type", sa.VARCHAR(length=20), nullable=True),
        sa.Column("discharge_summary", sa.Text(), nullable=True),
        sa.Column("discharge_advice", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        *_audit(),
        sa.CheckConstraint(
            "status IN ('ADMITTED', 'TRANSFERRED', 'DISCHARGED', 'EXPIRED', 'LAMA')",
            name="ck_admissions_status_check",
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"], ["patients.id"], name="fk_admissions_patient_id_patients"
        ),
        sa.ForeignKeyConstraint(
            ["admitting_doctor_id"],
            ["doctors.id"],
            name="fk_admissions_admitting_doctor_id_doctors",
        ),
        sa.ForeignKeyConstraint(
            ["attending_doctor_id"],
            ["doctors.id"],
            name="fk_admissions_attending_doctor_id_doctors",
        ),
        sa.ForeignKeyConstraint(["bed_id"], ["beds.id"], name="fk_admissions_bed_id_beds"),
        sa.ForeignKeyConstraint(
            ["source_appointment_id"],
            ["appointments.id"],
            name="fk_admissions_source_appointment_id_appointments",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_admissions"),
        sa.UniqueConstraint("admission_no", name="uq_admissions_admission_no"),
    )
    op.create_index("ix_admissions_hospital_id", "admissions", ["hospital_id"])
    op.create_index("ix_admissions_patient_id", "admissions", ["patient_id"])
    # At most one active admission per bed
    op.create_index(
        "uq_admissions_one_admitted_per_bed",
        "admissions",
        ["bed_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ADMITTED'"),
    )

    # Bed transfers (append-only)
    op.create_table(
        "bed_transfers",
        _id(),
        sa.Column("admission_id", postgresql.UUID(), nullable=False),
        sa.Column("from_bed_id", postgresql.UUID(), nullable=False),
        sa.Column("to_bed_id", postgresql.UUID(), nullable=False),
        _timestamp("transfer_date"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.ForeignKeyConstraint(
            ["admission_id"], ["admissions.id"], name="fk_bed_transfers_admission_id_admissions"
        ),
        sa.ForeignKeyConstraint(
            ["from_bed_id"], ["beds.id"], name="fk_bed_transfers_from_bed_id_beds"
        ),
        sa.ForeignKeyConstraint(["to_bed_id"], ["beds.id"], name="fk_bed_transfers_to_bed_id_beds"),
        sa.PrimaryKeyConstraint("id", name="pk_bed_transfers"),
    )
    op.create_index("ix_bed_transfers_admission_id", "bed_transfers", ["admission_id"])

    # Sequence counters
    op.create_table(
        "sequence_counters",
        _id(),
        sa.Column("hospital_id", postgresql.UUID(), nullable=False),
        sa.Column("sequence_name", sa.VARCHAR(length=80), nullable=False),
        sa.Column("period", sa.VARCHAR(length=20), nullable=False),
        sa.Column("last_seq", sa.BigInteger(), server_default=sa.text("0"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_sequence_counters"),
        sa.UniqueConstraint(
            "hospital_id", "sequence_name", "period", name="uq_sequence_counters_scope"
        ),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("sequence_counters")

    op.drop_index("ix_bed_transfers_admission_id", table_name="bed_transfers")
    op.drop_table("bed_transfers")

    op.drop_index("uq_admissions_one_admitted_per_bed", table_name="admissions")
    op.drop_index("ix_admissions_patient_id", table_name="admissions")
    op.drop_index("ix_admissions_hospital_id", table_name="admissions")
    op.drop_table("admissions")

    op.drop_index("ix_beds_ward_id", table_name="beds")
    op.drop_table("beds")

    op.drop_index("ix_wards_hospital_id", table_name="wards")
    op.drop_table("wards")

    op.drop_index("uq_opd_queue_one_in_consultation", table_name="opd_queue")
    op.drop_index("ix_opd_queue_doctor_date_status", table_name="opd_queue")
    op.drop_index("ix_opd_queue_hospital_id", table_name="opd_queue")
    op.drop_table("opd_queue")

    op.drop_index("uq_appointments_live_slot", table_name="appointments")
    op.drop_index("ix_appointments_doctor_date", table_name="appointments")
    op.drop_index("ix_appointments_doctor_id", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_index("ix_appointments_hospital_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_doctor_schedules_doctor_id", table_name="doctor_schedules")
    op.drop_index("ix_doctor_schedules_hospital_id", table_name="doctor_schedules")
    op.drop_table("doctor_schedules")

    op.drop_index("ix_doctors_hospital_id", table_name="doctors")
    op.drop_table("doctors")

    op.drop_index("ix_patients_hospital_id", table_name="patients")
    op.drop_table("patients")
