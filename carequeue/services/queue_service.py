"""OPD queue state machine: check-in, call-next, complete and skip."""

from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core import clock
from carequeue.core.exceptions import (
    ConflictException,
    InvalidStatusException,
    NotFoundException,
)
from carequeue.core.security import CallerContext
from carequeue.core.transaction import atomic
from carequeue.models.appointments import appointments, opd_queue
from carequeue.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    CheckInResponse,
    DoctorQueueResponse,
    DoctorWaitingCount,
    OpdDashboardResponse,
    QueueEntryResponse,
    QueueStats,
    QueueStatus,
)
from carequeue.services.directory_service import DirectoryService, doctor_display_name

logger = structlog.get_logger(__name__)

CHECK_IN_ALLOWED = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)

# Rough per-patient consultation time used for the wait estimate at check-in
ESTIMATED_MINUTES_PER_PATIENT = 15


class QueueService:
    """
    Drives a checked-in visit through the doctor's queue.

    Every change for a doctor's queue first row-locks the doctor, so WAITING
    positions stay dense (1..n) and unique. The partial unique index on
    ``opd_queue`` backs the one-patient-in-consultation rule.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.directory = DirectoryService(db)

    async def _get_appointment(self, hospital_id: UUID, appointment_id: UUID) -> Any:
        stmt = select(appointments).where(
            appointments.c.id == appointment_id,
            appointments.c.hospital_id == hospital_id,
            appointments.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return row

    async def _get_entry(self, hospital_id: UUID, queue_id: UUID) -> Any:
        stmt = select(opd_queue).where(
            opd_queue.c.id == queue_id,
            opd_queue.c.hospital_id == hospital_id,
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise NotFoundException("Queue entry not found")
        return row

    async def _count_waiting(self, doctor_id: UUID, queue_date: date) -> int:
        stmt = (
            select(func.count())
            .select_from(opd_queue)
            .where(
                opd_queue.c.doctor_id == doctor_id,
                opd_queue.c.queue_date == queue_date,
                opd_queue.c.status == QueueStatus.WAITING.value,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def _close_gap(self, doctor_id: UUID, queue_date: date, position: int) -> None:
        """Shift WAITING entries behind a departed position forward by one."""
        stmt = (
            update(opd_queue)
            .where(
                opd_queue.c.doctor_id == doctor_id,
                opd_queue.c.queue_date == queue_date,
                opd_queue.c.status == QueueStatus.WAITING.value,
                opd_queue.c.position > position,
            )
            .values(position=opd_queue.c.position - 1, updated_at=clock.utcnow())
        )
        await self.db.execute(stmt)

    async def _in_consultation(self, doctor_id: UUID, queue_date: date) -> bool:
        result = await self.db.execute(
            select(opd_queue.c.id).where(
                opd_queue.c.doctor_id == doctor_id,
                opd_queue.c.queue_date == queue_date,
                opd_queue.c.status == QueueStatus.IN_CONSULTATION.value,
            )
        )
        return result.first() is not None

    async def check_in(
        self,
        caller: CallerContext,
        appointment_id: UUID,
        chief_complaint: str | None = None,
    ) -> CheckInResponse:
        """
        Check a patient in and append them to today's queue of the doctor.

        The entry always joins the queue of the current hospital date, which is
        the queue CallNext serves by default.

        Args:
            caller: Authenticated caller
            appointment_id: Appointment ID
            chief_complaint: Replaces the booked complaint when given

        Returns:
            Updated appointment and the new WAITING queue entry

        Raises:
            NotFoundException: If appointment not found
            InvalidStatusException: Unless SCHEDULED or CONFIRMED
            ConflictException: ALREADY_CHECKED_IN
        """
        try:
            async with atomic(self.db, "check_in"):
                appointment = await self._get_appointment(caller.hospital_id, appointment_id)
                await self.directory.lock_doctor(appointment.doctor_id)

                queued = await self.db.execute(
                    select(opd_queue.c.id).where(opd_queue.c.appointment_id == appointment_id)
                )
                if queued.first():
                    raise ConflictException(
                        "Patient already checked in", code="ALREADY_CHECKED_IN"
                    )

                if appointment.status not in CHECK_IN_ALLOWED:
                    raise InvalidStatusException(
                        f"Cannot check in appointment with status: {appointment.status}"
                    )

                now = clock.utcnow()
                queue_date = clock.today()
                updated = await self.db.execute(
                    update(appointments)
                    .where(
                        appointments.c.id == appointment_id,
                        appointments.c.status.in_(CHECK_IN_ALLOWED),
                    )
                    .values(
                        status=AppointmentStatus.CHECKED_IN.value,
                        chief_complaint=chief_complaint or appointment.chief_complaint,
                        checked_in_at=now,
                        updated_at=now,
                        updated_by=caller.user_id,
                    )
                    .returning(appointments)
                )
                appointment_row = updated.fetchone()
                if not appointment_row:
                    raise InvalidStatusException("Appointment status changed, please retry")

                position = await self._count_waiting(appointment.doctor_id, queue_date) + 1

                created = await self.db.execute(
                    insert(opd_queue)
                    .values(
                        hospital_id=caller.hospital_id,
                        appointment_id=appointment_id,
                        patient_id=appointment.patient_id,
                        doctor_id=appointment.doctor_id,
                        queue_date=queue_date,
                        token_number=appointment.token_number,
                        position=position,
                        estimated_wait_minutes=position * ESTIMATED_MINUTES_PER_PATIENT,
                        status=QueueStatus.WAITING.value,
                        check_in_time=now,
                        created_at=now,
                        updated_at=now,
                    )
                    .returning(opd_queue)
                )
                entry_row = created.fetchone()
        except IntegrityError as e:
            raise ConflictException(
                "Patient already checked in", code="ALREADY_CHECKED_IN"
            ) from e

        logger.info(
            "patient_checked_in",
            appointment_id=str(appointment_id),
            doctor_id=str(appointment_row.doctor_id),
            token_number=entry_row.token_number,
            position=entry_row.position,
        )
        return CheckInResponse(
            appointment=AppointmentResponse.model_validate(dict(appointment_row._mapping)),
            queue_entry=QueueEntryResponse.model_validate(dict(entry_row._mapping)),
        )

    async def call_next(
        self,
        caller: CallerContext,
        doctor_id: UUID,
        queue_date: date | None = None,
    ) -> QueueEntryResponse:
        """
        Move the first WAITING patient into consultation.

        Args:
            caller: Authenticated caller
            doctor_id: Doctor whose queue to advance
            queue_date: Queue date, today in the hospital timezone by default

        Returns:
            The entry now IN_CONSULTATION

        Raises:
            ConflictException: PATIENT_IN_CONSULTATION
            NotFoundException: NO_WAITING_PATIENTS
        """
        queue_date = queue_date or clock.today()
        busy = ConflictException(
            "Please complete current consultation first",
            code="PATIENT_IN_CONSULTATION",
        )

        try:
            async with atomic(self.db, "call_next"):
                await self.directory.require_active_doctor(
                    caller.hospital_id, doctor_id, lock=True
                )

                if await self._in_consultation(doctor_id, queue_date):
                    raise busy

                waiting = await self.db.execute(
                    select(opd_queue)
                    .where(
                        opd_queue.c.hospital_id == caller.hospital_id,
                        opd_queue.c.doctor_id == doctor_id,
                        opd_queue.c.queue_date == queue_date,
                        opd_queue.c.status == QueueStatus.WAITING.value,
                    )
                    .order_by(opd_queue.c.position, opd_queue.c.check_in_time)
                    .limit(1)
                )
                next_entry = waiting.fetchone()
                if not next_entry:
                    raise NotFoundException(
                        "No patients waiting in queue", code="NO_WAITING_PATIENTS"
                    )

                now = clock.utcnow()
                wait_minutes = (
                    clock.minutes_between(now, next_entry.check_in_time)
                    if next_entry.check_in_time
                    else 0
                )

                # Compare-and-set: only a still-WAITING entry can be called
                called = await self.db.execute(
                    update(opd_queue)
                    .where(
                        opd_queue.c.id == next_entry.id,
                        opd_queue.c.status == QueueStatus.WAITING.value,
                    )
                    .values(
                        status=QueueStatus.IN_CONSULTATION.value,
                        call_time=now,
                        start_time=now,
                        actual_wait_minutes=wait_minutes,
                        updated_at=now,
                    )
                    .returning(opd_queue)
                )
                entry_row = called.fetchone()
                if not entry_row:
                    raise busy

                await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == next_entry.appointment_id)
                    .values(
                        status=AppointmentStatus.IN_CONSULTATION.value,
                        consultation_start_at=now,
                        updated_at=now,
                        updated_by=caller.user_id,
                    )
                )
                await self._close_gap(doctor_id, queue_date, next_entry.position)
        except IntegrityError as e:
            raise busy from e

        logger.info(
            "patient_called",
            doctor_id=str(doctor_id),
            queue_id=str(entry_row.id),
            token_number=entry_row.token_number,
            wait_minutes=entry_row.actual_wait_minutes,
        )
        return QueueEntryResponse.model_validate(dict(entry_row._mapping))

    async def complete(self, caller: CallerContext, queue_id: UUID) -> QueueEntryResponse:
        """
        Finish the consultation of a queue entry.

        Raises:
            NotFoundException: If the entry is not in the caller's hospital
            InvalidStatusException: Unless the entry is IN_CONSULTATION
        """
        async with atomic(self.db, "complete_consultation"):
            entry = await self._get_entry(caller.hospital_id, queue_id)

            now = clock.utcnow()
            completed = await self.db.execute(
                update(opd_queue)
                .where(
                    opd_queue.c.id == queue_id,
                    opd_queue.c.status == QueueStatus.IN_CONSULTATION.value,
                )
                .values(
                    status=QueueStatus.COMPLETED.value,
                    end_time=now,
                    updated_at=now,
                )
                .returning(opd_queue)
            )
            entry_row = completed.fetchone()
            if not entry_row:
                raise InvalidStatusException(
                    f"Cannot complete queue entry with status: {entry.status}"
                )

            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == entry.appointment_id)
                .values(
                    status=AppointmentStatus.COMPLETED.value,
                    consultation_end_at=now,
                    updated_at=now,
                    updated_by=caller.user_id,
                )
            )

        logger.info("consultation_completed", queue_id=str(queue_id))
        return QueueEntryResponse.model_validate(dict(entry_row._mapping))

    async def skip(self, caller: CallerContext, queue_id: UUID, reason: str) -> QueueEntryResponse:
        """
        Skip a waiting patient and mark the appointment as a no-show.

        Raises:
            NotFoundException: If the entry is not in the caller's hospital
            InvalidStatusException: Unless the entry is WAITING
        """
        async with atomic(self.db, "skip_patient"):
            entry = await self._get_entry(caller.hospital_id, queue_id)
            await self.directory.lock_doctor(entry.doctor_id)

            entry_row = await self._withdraw(entry, reason)
            if not entry_row:
                raise InvalidStatusException(
                    f"Cannot skip queue entry with status: {entry.status}"
                )

            now = clock.utcnow()
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == entry.appointment_id)
                .values(
                    status=AppointmentStatus.NO_SHOW.value,
                    cancellation_reason=reason,
                    updated_at=now,
                    updated_by=caller.user_id,
                )
            )

        logger.info("patient_skipped", queue_id=str(queue_id), reason=reason)
        return QueueEntryResponse.model_validate(dict(entry_row._mapping))

    async def _withdraw(self, entry: Any, reason: str) -> Any:
        """Mark a WAITING entry SKIPPED and close its gap; None if it was not WAITING."""
        now = clock.utcnow()
        skipped = await self.db.execute(
            update(opd_queue)
            .where(
                opd_queue.c.id == entry.id,
                opd_queue.c.status == QueueStatus.WAITING.value,
            )
            .values(
                status=QueueStatus.SKIPPED.value,
                skip_reason=reason,
                updated_at=now,
            )
            .returning(opd_queue)
        )
        row = skipped.fetchone()
        if row:
            await self._close_gap(entry.doctor_id, entry.queue_date, entry.position)
        return row

    async def withdraw_for_appointment(self, appointment_id: UUID, reason: str) -> None:
        """
        Drop a cancelled appointment's WAITING entry from the queue.

        Runs inside the caller's open transaction.
        """
        result = await self.db.execute(
            select(opd_queue).where(opd_queue.c.appointment_id == appointment_id)
        )
        entry = result.fetchone()
        if not entry:
            return

        await self.directory.lock_doctor(entry.doctor_id)
        await self._withdraw(entry, reason)

    async def get_doctor_queue(
        self,
        hospital_id: UUID,
        doctor_id: UUID,
        queue_date: date | None = None,
    ) -> DoctorQueueResponse:
        """A doctor's queue for one date, WAITING entries by position."""
        queue_date = queue_date or clock.today()
        stmt = (
            select(opd_queue)
            .where(
                opd_queue.c.hospital_id == hospital_id,
                opd_queue.c.doctor_id == doctor_id,
                opd_queue.c.queue_date == queue_date,
            )
            .order_by(opd_queue.c.status, opd_queue.c.position)
        )
        result = await self.db.execute(stmt)
        entries = [QueueEntryResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

        def count(status: QueueStatus) -> int:
            return sum(1 for e in entries if e.status == status)

        current = next((e for e in entries if e.status == QueueStatus.IN_CONSULTATION), None)
        return DoctorQueueResponse(
            doctor_id=doctor_id,
            queue_date=queue_date,
            current_patient=current,
            entries=entries,
            stats=QueueStats(
                waiting=count(QueueStatus.WAITING),
                in_consultation=count(QueueStatus.IN_CONSULTATION),
                completed=count(QueueStatus.COMPLETED),
                skipped=count(QueueStatus.SKIPPED),
            ),
        )

    async def get_dashboard(
        self,
        hospital_id: UUID,
        on: date | None = None,
    ) -> OpdDashboardResponse:
        """Appointment and queue counts for a date, plus per-doctor waiting counts."""
        on = on or clock.today()

        appointment_counts = await self.db.execute(
            select(appointments.c.status, func.count())
            .where(
                appointments.c.hospital_id == hospital_id,
                appointments.c.appointment_date == on,
                appointments.c.deleted_at.is_(None),
            )
            .group_by(appointments.c.status)
        )
        by_appointment_status = {status: n for status, n in appointment_counts.all()}

        queue_counts = await self.db.execute(
            select(opd_queue.c.status, opd_queue.c.doctor_id, func.count())
            .where(
                and_(
                    opd_queue.c.hospital_id == hospital_id,
                    opd_queue.c.queue_date == on,
                )
            )
            .group_by(opd_queue.c.status, opd_queue.c.doctor_id)
        )
        by_queue_status: dict[str, int] = {}
        waiting_by_doctor: dict[UUID, int] = {}
        for status, doctor_id, n in queue_counts.all():
            by_queue_status[status] = by_queue_status.get(status, 0) + n
            if status == QueueStatus.WAITING.value:
                waiting_by_doctor[doctor_id] = n

        doctors = await self.directory.list_active_doctors(hospital_id)
        return OpdDashboardResponse(
            date=on,
            appointments_total=sum(by_appointment_status.values()),
            appointments_by_status=by_appointment_status,
            queue_total=sum(by_queue_status.values()),
            queue_by_status=by_queue_status,
            doctor_queues=[
                DoctorWaitingCount(
                    doctor_id=d["id"],
                    doctor_name=doctor_display_name(d),
                    waiting_count=waiting_by_doctor.get(d["id"], 0),
                )
                for d in doctors
            ],
        )
