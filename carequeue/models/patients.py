"""Patient directory table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from carequeue.models.metadata import metadata

# Registration is owned by the patient module; this core only reads existence
patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False, index=True),
    Column("uhid", String(30), nullable=False, unique=True),
    Column("first_name", Text, nullable=False),
    Column("last_name", Text, nullable=True),
    Column("gender", String(20)),
    Column("date_of_birth", Date),
    Column("mobile_primary", String(20)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
)
