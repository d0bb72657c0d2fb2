"""Appointment service for business logic."""

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
from carequeue.models.appointments import appointments
from carequeue.schemas.appointments import (
    TERMINAL_BOOKING_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
)
from carequeue.schemas.schedules import AvailableSlotsResponse
from carequeue.services.directory_service import DirectoryService
from carequeue.services.notification_service import APPOINTMENT_BOOKED, NotificationService
from carequeue.services.queue_service import QueueService
from carequeue.services.schedule_service import ScheduleService
from carequeue.services.sequence_service import SequenceService
from carequeue.services.slot_planner import compute_slots, planner_day_of_week

logger = structlog.get_logger(__name__)

NOT_CANCELLABLE = (
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.IN_CONSULTATION.value,
    AppointmentStatus.NO_SHOW.value,
)


class AppointmentService:
    """Service for booking and managing appointments."""

    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        """Initialize service with database session and optional event publisher."""
        self.db = db
        self.notifications = notifications
        self.directory = DirectoryService(db)
        self.sequences = SequenceService(db)

    def _live_booking_conditions(self, doctor_id: UUID, on: date) -> list[Any]:
        return [
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == on,
            appointments.c.status.notin_(TERMINAL_BOOKING_STATUSES),
            appointments.c.deleted_at.is_(None),
        ]

    async def _slot_taken(self, doctor_id: UUID, on: date, slot_time: str) -> bool:
        """Whether a live booking already holds the slot."""
        stmt = select(appointments.c.id).where(
            *self._live_booking_conditions(doctor_id, on),
            appointments.c.slot_time == slot_time,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def _get_row(self, hospital_id: UUID, appointment_id: UUID) -> Any:
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.hospital_id == hospital_id,
                appointments.c.deleted_at.is_(None),
            )
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")
        return row

    async def book_appointment(
        self,
        caller: CallerContext,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a slot and issue the day's next token for the doctor.

        Args:
            caller: Authenticated caller
            data: Appointment creation data

        Returns:
            Created appointment in SCHEDULED status

        Raises:
            NotFoundException: PATIENT_NOT_FOUND or DOCTOR_NOT_FOUND
            ConflictException: SLOT_UNAVAILABLE
        """
        slot_unavailable = ConflictException(
            "This slot is already booked", code="SLOT_UNAVAILABLE"
        )

        try:
            async with atomic(self.db, "book_appointment"):
                await self.directory.require_patient(caller.hospital_id, data.patient_id)
                await self.directory.require_active_doctor(caller.hospital_id, data.doctor_id)

                if await self._slot_taken(data.doctor_id, data.appointment_date, data.slot_time):
                    raise slot_unavailable

                token = await self.sequences.next_token(
                    caller.hospital_id, data.doctor_id, data.appointment_date
                )

                now = clock.utcnow()
                stmt = (
                    insert(appointments)
                    .values(
                        hospital_id=caller.hospital_id,
                        patient_id=data.patient_id,
                        doctor_id=data.doctor_id,
                        appointment_date=data.appointment_date,
                        slot_time=data.slot_time,
                        token_number=token,
                        consultation_type=data.consultation_type.value,
                        chief_complaint=data.chief_complaint,
                        notes=data.notes,
                        booked_via=data.booked_via.value,
                        status=AppointmentStatus.SCHEDULED.value,
                        created_at=now,
                        updated_at=now,
                        created_by=caller.user_id,
                        updated_by=caller.user_id,
                    )
                    .returning(appointments)
                )
                result = await self.db.execute(stmt)
                row = result.fetchone()
        except IntegrityError as e:
            # Lost the race for the slot to a concurrent booking
            raise slot_unavailable from e

        appointment = AppointmentResponse.model_validate(dict(row._mapping))
        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            doctor_id=str(appointment.doctor_id),
            appointment_date=appointment.appointment_date.isoformat(),
            slot_time=appointment.slot_time,
            token_number=appointment.token_number,
        )

        if self.notifications is not None:
            await self.notifications.publish(
                APPOINTMENT_BOOKED,
                {
                    "appointment_id": appointment.id,
                    "hospital_id": appointment.hospital_id,
                    "patient_id": appointment.patient_id,
                    "doctor_id": appointment.doctor_id,
                    "appointment_date": appointment.appointment_date,
                    "slot_time": appointment.slot_time,
                    "token_number": appointment.token_number,
                },
            )

        return appointment

    async def confirm_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Confirm a scheduled appointment.

        Raises:
            NotFoundException: If appointment not found
            InvalidStatusException: Unless SCHEDULED
        """
        async with atomic(self.db, "confirm_appointment"):
            current = await self._get_row(caller.hospital_id, appointment_id)

            now = clock.utcnow()
            stmt = (
                update(appointments)
                .where(
                    appointments.c.id == appointment_id,
                    appointments.c.status == AppointmentStatus.SCHEDULED.value,
                )
                .values(
                    status=AppointmentStatus.CONFIRMED.value,
                    confirmed_at=now,
                    updated_at=now,
                    updated_by=caller.user_id,
                )
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()

            if not row:
                raise InvalidStatusException(
                    f"Cannot confirm appointment with status: {current.status}"
                )

        logger.info("appointment_confirmed", appointment_id=str(appointment_id))
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def cancel_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
        reason: str,
    ) -> AppointmentResponse:
        """
        Cancel an appointment and free its slot.

        A checked-in patient still waiting is taken off the queue in the same
        transaction.

        Args:
            caller: Authenticated caller
            appointment_id: Appointment ID
            reason: Cancellation reason

        Returns:
            Cancelled appointment

        Raises:
            NotFoundException: If appointment not found
            InvalidStatusException: If the appointment can no longer be cancelled
        """
        async with atomic(self.db, "cancel_appointment"):
            current = await self._get_row(caller.hospital_id, appointment_id)

            if current.status in NOT_CANCELLABLE:
                raise InvalidStatusException(
                    f"Cannot cancel appointment with status: {current.status}"
                )

            # Queue writers lock the doctor before the appointment; keep the same order
            await self.directory.lock_doctor(current.doctor_id)

            now = clock.utcnow()
            stmt = (
                update(appointments)
                .where(
                    appointments.c.id == appointment_id,
                    appointments.c.status == current.status,
                )
                .values(
                    status=AppointmentStatus.CANCELLED.value,
                    cancelled_at=now,
                    cancellation_reason=reason,
                    updated_at=now,
                    updated_by=caller.user_id,
                )
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()

            if not row:
                raise InvalidStatusException("Appointment status changed, please retry")

            if current.status == AppointmentStatus.CHECKED_IN.value:
                await QueueService(self.db).withdraw_for_appointment(appointment_id, reason)

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            previous_status=current.status,
        )
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def get_appointment(
        self,
        hospital_id: UUID,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        row = await self._get_row(hospital_id, appointment_id)
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(
        self,
        hospital_id: UUID,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            hospital_id: Tenant
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        conditions = [
            appointments.c.hospital_id == hospital_id,
            appointments.c.deleted_at.is_(None),
        ]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.appointment_date:
            conditions.append(appointments.c.appointment_date == filters.appointment_date)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_date.desc(), appointments.c.slot_time)
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def get_available_slots(
        self,
        hospital_id: UUID,
        doctor_id: UUID,
        on: date,
    ) -> AvailableSlotsResponse:
        """
        Slots for a doctor on a date, marking the ones live bookings hold.

        Raises:
            NotFoundException: DOCTOR_NOT_FOUND
        """
        await self.directory.require_active_doctor(hospital_id, doctor_id)

        blocks = await ScheduleService(self.db).active_blocks_for_day(
            hospital_id, doctor_id, planner_day_of_week(on.weekday())
        )

        booked_stmt = select(appointments.c.slot_time).where(
            *self._live_booking_conditions(doctor_id, on)
        )
        booked_result = await self.db.execute(booked_stmt)
        booked = {r.slot_time for r in booked_result.fetchall()}

        slots = compute_slots(blocks, booked, planner_day_of_week(on.weekday()))
        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            date=on,
            slots=slots,
            available_count=sum(1 for s in slots if s.available),
            total_count=len(slots),
        )
