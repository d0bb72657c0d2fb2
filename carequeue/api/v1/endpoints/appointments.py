"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.dependencies import CurrentCaller, DatabaseSession, Notifications
from carequeue.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    CheckInRequest,
    CheckInResponse,
)
from carequeue.schemas.schedules import AvailableSlotsResponse
from carequeue.services.appointment_service import AppointmentService
from carequeue.services.queue_service import QueueService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
    notifications: Notifications,
) -> AppointmentResponse:
    """
    Book a slot with a doctor and issue a token.

    Args:
        data: Appointment booking data
        caller: Authenticated caller
        db: Database session
        notifications: Event publisher

    Returns:
        Created appointment
    """
    service = AppointmentService(db, notifications)
    return await service.book_appointment(caller, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    appointment_date: date | None = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the hospital's appointments with filtering.

    Args:
        caller: Authenticated caller
        db: Database session
        status_filter: Filter by status
        doctor_id: Filter by doctor ID
        appointment_date: Filter by date
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(caller.hospital_id, filters)


@router.get(
    "/slots/{doctor_id}",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Available slots for a doctor",
)
async def get_available_slots(
    doctor_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    slot_date: date = Query(..., alias="date"),
) -> AvailableSlotsResponse:
    """
    Slots from the doctor's schedule for a date, with booked ones marked unavailable.

    Args:
        doctor_id: Doctor ID
        caller: Authenticated caller
        db: Database session
        slot_date: Date to plan

    Returns:
        Slots and counts
    """
    service = AppointmentService(db)
    return await service.get_available_slots(caller.hospital_id, doctor_id, slot_date)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        caller: Authenticated caller
        db: Database session

    Returns:
        Appointment details
    """
    service = AppointmentService(db)
    return await service.get_appointment(caller.hospital_id, appointment_id)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Confirm a scheduled appointment."""
    service = AppointmentService(db)
    return await service.confirm_appointment(caller, appointment_id)


@router.post(
    "/{appointment_id}/check-in",
    response_model=CheckInResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
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
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Cancel an appointment and free its slot.

    Args:
        appointment_id: Appointment ID
        data: Cancellation reason
        caller: Authenticated caller
        db: Database session

    Returns:
        Cancelled appointment
    """
    service = AppointmentService(db)
    return await service.cancel_appointment(caller, appointment_id, data.reason)
