"""Sequence counter table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    func,
    text,
)

from carequeue.models.metadata import metadata

# One row per (tenant, sequence, period); only ever changed by atomic upsert
sequence_counters = Table(
    "sequence_counters",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("hospital_id", Uuid, nullable=False),
    Column("sequence_name", String(80), nullable=False),
    Column("period", String(20), nullable=False),
    Column("last_seq", BigInteger, nullable=False, server_default=text("0")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint(
        "hospital_id",
        "sequence_name",
        "period",
        name="uq_sequence_counters_scope",
    ),
)
