"""IPD endpoints: wards, beds and admissions."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.dependencies import CurrentCaller, DatabaseSession, Notifications
from carequeue.schemas.ipd import (
    AdmissionCreate,
    AdmissionListResponse,
    AdmissionResponse,
    AdmissionStatus,
    BedCreate,
    BedResponse,
    BedStatus,
    BedStatusUpdate,
    BedTransferRequest,
    BedTransferResponse,
    DischargeRequest,
    IpdDashboardResponse,
    WardCreate,
    WardOccupancy,
    WardResponse,
)
from carequeue.services.ipd_service import IpdService

router = APIRouter()


@router.get(
    "/dashboard",
    response_model=IpdDashboardResponse,
    status_code=status.HTTP_200_OK,
    summary="IPD dashboard",
)
async def get_dashboard(caller: CurrentCaller, db: DatabaseSession) -> IpdDashboardResponse:
    """Bed totals, current admissions and today's movements."""
    service = IpdService(db)
    return await service.get_dashboard(caller.hospital_id)


@router.get(
    "/occupancy",
    response_model=list[WardOccupancy],
    status_code=status.HTTP_200_OK,
    summary="Ward occupancy",
)
async def get_ward_occupancy(caller: CurrentCaller, db: DatabaseSession) -> list[WardOccupancy]:
    """Live bed counts and occupancy rate per active ward."""
    service = IpdService(db)
    return await service.ward_occupancy(caller.hospital_id)


@router.post(
    "/wards",
    response_model=WardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ward",
)
async def create_ward(
    data: WardCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> WardResponse:
    """Create a ward."""
    service = IpdService(db)
    return await service.create_ward(caller, data)


@router.get(
    "/wards",
    response_model=list[WardResponse],
    status_code=status.HTTP_200_OK,
    summary="List wards",
)
async def list_wards(caller: CurrentCaller, db: DatabaseSession) -> list[WardResponse]:
    """List active wards."""
    service = IpdService(db)
    return await service.list_wards(caller.hospital_id)


@router.post(
    "/beds",
    response_model=BedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create bed",
)
async def create_bed(
    data: BedCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> BedResponse:
    """Add a bed to a ward."""
    service = IpdService(db)
    return await service.create_bed(caller, data)


@router.get(
    "/beds",
    response_model=list[BedResponse],
    status_code=status.HTTP_200_OK,
    summary="List beds",
)
async def list_beds(
    caller: CurrentCaller,
    db: DatabaseSession,
    ward_id: UUID | None = Query(None),
    status_filter: BedStatus | None = Query(None, alias="status"),
) -> list[BedResponse]:
    """
    List beds.

    Args:
        caller: Authenticated caller
        db: Database session
        ward_id: Filter by ward
        status_filter: Filter by status

    Returns:
        Matching beds
    """
    service = IpdService(db)
    return await service.list_beds(caller.hospital_id, ward_id, status_filter)


@router.patch(
    "/beds/{bed_id}/status",
    response_model=BedResponse,
    status_code=status.HTTP_200_OK,
    summary="Set bed housekeeping status",
)
async def set_bed_status(
    bed_id: UUID,
    data: BedStatusUpdate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> BedResponse:
    """Move a bed between available, maintenance and reserved."""
    service = IpdService(db)
    return await service.set_bed_status(caller, bed_id, data.status)


@router.post(
    "/admit",
    response_model=AdmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Admit patient",
)
async def admit_patient(
    data: AdmissionCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
    notifications: Notifications,
) -> AdmissionResponse:
    """
    Admit a patient to an available bed.

    Args:
        data: Admission details
        caller: Authenticated caller
        db: Database session
        notifications: Event publisher

    Returns:
        Created admission
    """
    service = IpdService(db, notifications)
    return await service.admit(caller, data)


@router.get(
    "/admissions",
    response_model=AdmissionListResponse,
    status_code=status.HTTP_200_OK,
    summary="List admissions",
)
async def list_admissions(
    caller: CurrentCaller,
    db: DatabaseSession,
    status_filter: AdmissionStatus | None = Query(None, alias="status"),
    patient_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AdmissionListResponse:
    """List admissions, newest first."""
    service = IpdService(db)
    return await service.list_admissions(
        caller.hospital_id,
        status=status_filter,
        patient_id=patient_id,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/admissions/{admission_id}",
    response_model=AdmissionResponse,
    status_code=status.HTTP_200_OK,
    summary="Get admission",
)
async def get_admission(
    admission_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AdmissionResponse:
    """Get an admission by ID."""
    service = IpdService(db)
    return await service.get_admission(caller.hospital_id, admission_id)


@router.get(
    "/admissions/{admission_id}/transfers",
    response_model=list[BedTransferResponse],
    status_code=status.HTTP_200_OK,
    summary="Bed transfer history",
)
async def list_transfers(
    admission_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> list[BedTransferResponse]:
    """Bed transfers of an admission, oldest first."""
    service = IpdService(db)
    return await service.list_transfers(caller.hospital_id, admission_id)


@router.post(
    "/discharge/{admission_id}",
    response_model=AdmissionResponse,
    status_code=status.HTTP_200_OK,
    summary="Discharge patient",
)
async def discharge_patient(
    admission_id: UUID,
    data: DischargeRequest,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> AdmissionResponse:
    """Discharge an admitted patient and free the bed."""
    service = IpdService(db)
    return await service.discharge(caller, admission_id, data)


@router.post(
    "/transfer-bed/{admission_id}",
    response_model=BedTransferResponse,
    status_code=status.HTTP_200_OK,
    summary="Transfer to another bed",
)
async def transfer_bed(
    admission_id: UUID,
    data: BedTransferRequest,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> BedTransferResponse:
    """
    Move an admitted patient to another available bed.

    Args:
        admission_id: Admission ID
        data: Target bed and reason
        caller: Authenticated caller
        db: Database session

    Returns:
        Transfer record
    """
    service = IpdService(db)
    return await service.transfer_bed(caller, admission_id, data)
