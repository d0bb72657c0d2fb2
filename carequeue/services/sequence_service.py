"""Sequence generator for tokens, admission numbers and other identifiers."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core import clock
from carequeue.core.exceptions import BadRequestException, SequenceExhaustedException
from carequeue.core.transaction import atomic
from carequeue.models.sequences import sequence_counters
from carequeue.schemas.sequences import SequenceResponse

logger = structlog.get_logger(__name__)

# Issued only through their own operations
RESERVED_SEQUENCES = frozenset({"admission"})

# Dialects with a single-statement upsert that can return the new value
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class SequenceScope:
    """Key a counter is maintained under: tenant, sequence name and period."""

    hospital_id: UUID
    name: str
    period: str

    @property
    def key(self) -> str:
        """Flat representation used in logs."""
        return f"{self.hospital_id}:{self.name}:{self.period}"


def year_month(value: date | datetime) -> str:
    """Two-digit year and month, e.g. ``2506`` for June 2025."""
    return f"{value.year % 100:02d}{value.month:02d}"


def format_token(seq: int, prefix: str = "A") -> str:
    """Format an appointment token, e.g. ``A-001``."""
    return f"{prefix}-{seq:03d}"


def format_period_number(prefix: str, period: str, seq: int, width: int = 4) -> str:
    """Format a period-scoped number, e.g. ``ADM-2506-0001``."""
    return f"{prefix}-{period}-{seq:0{width}d}"


def token_scope(hospital_id: UUID, doctor_id: UUID, on: date) -> SequenceScope:
    """Appointment tokens restart per doctor per day."""
    return SequenceScope(hospital_id, f"token:{doctor_id}", on.isoformat())


def admission_scope(hospital_id: UUID, at: date | datetime) -> SequenceScope:
    """Admission numbers restart per month."""
    return SequenceScope(hospital_id, "admission", year_month(at))


class SequenceService:
    """Issues strictly increasing integers per scope."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def next_in_sequence(self, scope: SequenceScope) -> int:
        """
        Atomically increment and return the counter for a scope.

        The increment joins the caller's open transaction, so the value is
        only published if the caller commits.

        Args:
            scope: Counter scope

        Returns:
            The next value, starting at 1

        Raises:
            SequenceExhaustedException: If the atomic path is unavailable
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            logger.error("sequence_dialect_unsupported", dialect=dialect, scope=scope.key)
            raise SequenceExhaustedException(
                f"Atomic sequence increment is not supported on '{dialect}'"
            )

        stmt = insert(sequence_counters).values(
            hospital_id=scope.hospital_id,
            sequence_name=scope.name,
            period=scope.period,
            last_seq=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                sequence_counters.c.hospital_id,
                sequence_counters.c.sequence_name,
                sequence_counters.c.period,
            ],
            set_={
                "last_seq": sequence_counters.c.last_seq + 1,
                "updated_at": clock.utcnow(),
            },
        ).returning(sequence_counters.c.last_seq)

        try:
            result = await self.db.execute(stmt)
            value = result.scalar_one()
        except DBAPIError as e:
            logger.error("sequence_increment_failed", scope=scope.key, error=str(e))
            raise SequenceExhaustedException() from e

        logger.debug("sequence_issued", scope=scope.key, value=value)
        return int(value)

    async def next_token(self, hospital_id: UUID, doctor_id: UUID, on: date) -> str:
        """Next appointment token for a doctor's day."""
        seq = await self.next_in_sequence(token_scope(hospital_id, doctor_id, on))
        return format_token(seq)

    async def next_admission_no(self, hospital_id: UUID, at: datetime) -> str:
        """Next admission number for the month of ``at``."""
        scope = admission_scope(hospital_id, at)
        seq = await self.next_in_sequence(scope)
        return format_period_number("ADM", scope.period, seq)

    async def issue(
        self,
        hospital_id: UUID,
        name: str,
        prefix: str,
        period: str | None = None,
        width: int = 4,
    ) -> SequenceResponse:
        """
        Issue and commit the next number of a named sequence.

        Used by collaborators outside this service (invoice and patient
        numbers). The period defaults to the current YYMM.

        Raises:
            BadRequestException: If the name belongs to an internal sequence
        """
        if name in RESERVED_SEQUENCES or name.startswith("token:"):
            raise BadRequestException(
                f"Sequence '{name}' is reserved", code="RESERVED_SEQUENCE"
            )

        scope = SequenceScope(hospital_id, name, period or year_month(clock.utcnow()))
        async with atomic(self.db, "issue_sequence"):
            value = await self.next_in_sequence(scope)

        return SequenceResponse(
            name=scope.name,
            period=scope.period,
            value=value,
            formatted=format_period_number(prefix, scope.period, value, width),
        )
