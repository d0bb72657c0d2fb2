"""Doctor schedule endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from carequeue.dependencies import CurrentCaller, DatabaseSession
from carequeue.schemas.schedules import ScheduleBlockCreate, ScheduleBlockResponse
from carequeue.services.schedule_service import ScheduleService

router = APIRouter()


@router.post(
    "/",
    response_model=ScheduleBlockResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create schedule block",
)
async def create_schedule_block(
    data: ScheduleBlockCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> ScheduleBlockResponse:
    """
    Add a recurring weekly block to a doctor's schedule.

    Args:
        data: Block definition (day 0 = Sunday, HH:MM times)
        caller: Authenticated caller
        db: Database session

    Returns:
        Created block
    """
    service = ScheduleService(db)
    return await service.create_block(caller, data)


@router.get(
    "/doctor/{doctor_id}",
    response_model=list[ScheduleBlockResponse],
    status_code=status.HTTP_200_OK,
    summary="List doctor schedule",
)
async def list_schedule_blocks(
    doctor_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
    include_inactive: bool = Query(False),
) -> list[ScheduleBlockResponse]:
    """List a doctor's blocks by day and start time."""
    service = ScheduleService(db)
    return await service.list_blocks(caller.hospital_id, doctor_id, include_inactive)


@router.delete(
    "/{block_id}",
    response_model=ScheduleBlockResponse,
    status_code=status.HTTP_200_OK,
    summary="Deactivate schedule block",
)
async def deactivate_schedule_block(
    block_id: UUID,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> ScheduleBlockResponse:
    """Deactivate a block; it stops producing slots but is kept for history."""
    service = ScheduleService(db)
    return await service.deactivate_block(caller, block_id)
