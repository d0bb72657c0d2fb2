"""Doctor and doctor schedule tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
    true,
)

from carequeue.models.metadata import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column("user_id", Uuid, nullable=True, unique=True),
    Column("first_name", Text, nullable=False),
    Column("last_name", Text, nullable=True),
    Column("specialization", String(200)),
    Column("consultation_fee", Numeric(10, 2), nullable=False, server_default=text("0")),
    Column("avg_consultation_minutes", Integer, nullable=False, server_default=text("15")),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
)

# Recurring weekly blocks; never deleted, only deactivated
doctor_schedules = Table(
    "doctor_schedules",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # 0 = Sunday ... 6 = Saturday
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", String(5), nullable=False),
    Column("end_time", String(5), nullable=False),
    Column("slot_duration_minutes", Integer, nullable=False, server_default=text("15")),
    Column("buffer_minutes", Integer, nullable=False, server_default=text("5")),
    Column("max_patients", Integer, nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_by", Uuid, nullable=True),
    Column("updated_by", Uuid, nullable=True),
    CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week_range"),
    CheckConstraint("slot_duration_minutes + buffer_minutes > 0", name="positive_step"),
)
