"""OPD queue endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.dependencies import CurrentCaller, DatabaseSession
from carequeue.schemas.appointments import (
    CheckInRequest,
    CheckInResponse,
    DoctorQueueResponse,
    OpdDashboardResponse,
    QueueEntryResponse,
    QueueSkip,
)
from carequeue.services.queue_service import QueueService

router = APIRouter()


@router.get(
    "/dashboard",
    response_model=OpdDashboardResponse,
    status_code=status.HTTP_200_OK,
    summary="OPD dashboard",
)
async def get_dashboard(
    caller: CurrentCaller,
    db: DatabaseSession,
    on: date | None = Query(None, alias="date"),
) -> OpdDashboardResponse:
    """
    Appointment and queue statistics for a date (today by default).

    Args:
        caller: Authenticated caller
        db: Database session
        on: Date to report on

    Returns:
        Dashboard counts
    """
    service = QueueService(db)
    return await service.get_dashboard(caller.hospital_id, on)


@router.get(
    "/queue/{doctor_id}",
    response_model=DoctorQueueResponse,
    status_code=status.HTTP_200_OK,
    summary="Doctor queue",
)
async def get_doctor_queue(
    doctor_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    queue_date: date | None = Query(None, alias="date"),
) -> DoctorQueueResponse:
    """A doctor's queue for a date with the patient currently in consultation."""
    service = QueueService(db)
    return await service.get_doctor_queue(caller.hospital_id, doctor_id, queue_date)


@router.post(
    "/check-in/{appointment_id}",
    response_model=CheckInResponse,
    status_code=status.HTTP_200_OK,
    summary="Check in patient",
)
async def check_in(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    data: CheckInRequest | None = None,
) -> CheckInResponse:
    """Check the patient in and add them to today's queue of the doctor."""
    service = QueueService(db)
    chief_complaint = data.chief_complaint if data else None
    return await service.check_in(caller, appointment_id, chief_complaint)


@router.post(
    "/call-next/{doctor_id}",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_200_OK,
    summary="Call next patient",
)
async def call_next(
    doctor_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    queue_date: date | None = Query(None, alias="date"),
) -> QueueEntryResponse:
    """
    Move the first waiting patient into consultation.

    Args:
        doctor_id: Doctor ID
        caller: Authenticated caller
        db: Database session
        queue_date: Queue date, today by default

    Returns:
        The queue entry now in consultation
    """
    service = QueueService(db)
    return await service.call_next(caller, doctor_id, queue_date)


@router.post(
    "/complete/{queue_id}",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete consultation",
)
async def complete_consultation(
    queue_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> QueueEntryResponse:
    """Finish the consultation in progress."""
    service = QueueService(db)
    return await service.complete(caller, queue_id)


@router.post(
    "/skip/{queue_id}",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_200_OK,
    summary="Skip patient",
)
async def skip_patient(
    queue_id: UUID,
    data: QueueSkip,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> QueueEntryResponse:
    """Skip a waiting patient; the appointment becomes a no-show."""
    service = QueueService(db)
    return await service.skip(caller, queue_id, data.reason)
