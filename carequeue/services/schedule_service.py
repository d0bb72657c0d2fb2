"""Doctor schedule administration."""

from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core import clock
from carequeue.core.exceptions import NotFoundException
from carequeue.core.security import CallerContext
from carequeue.core.transaction import atomic
from carequeue.models.doctors import doctor_schedules
from carequeue.schemas.schedules import (
    ScheduleBlock,
    ScheduleBlockCreate,
    ScheduleBlockResponse,
)
from carequeue.services.directory_service import DirectoryService

logger = structlog.get_logger(__name__)


class ScheduleService:
    """Service for configuring recurring schedule blocks."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.directory = DirectoryService(db)

    async def create_block(
        self,
        caller: CallerContext,
        data: ScheduleBlockCreate,
    ) -> ScheduleBlockResponse:
        """
        Add a schedule block for a doctor.

        Args:
            caller: Authenticated caller
            data: Validated block

        Returns:
            Created block
        """
        async with atomic(self.db, "create_schedule_block"):
            await self.directory.require_active_doctor(caller.hospital_id, data.doctor_id)

            now = clock.utcnow()
            stmt = (
                insert(doctor_schedules)
                .values(
                    hospital_id=caller.hospital_id,
                    doctor_id=data.doctor_id,
                    day_of_week=data.day_of_week,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    slot_duration_minutes=data.slot_duration_minutes,
                    buffer_minutes=data.buffer_minutes,
                    max_patients=data.max_patients,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    created_by=caller.user_id,
                    updated_by=caller.user_id,
                )
                .returning(doctor_schedules)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()

        logger.info(
            "schedule_block_created",
            doctor_id=str(data.doctor_id),
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        return ScheduleBlockResponse.model_validate(dict(row._mapping))

    async def list_blocks(
        self,
        hospital_id: UUID,
        doctor_id: UUID,
        include_inactive: bool = False,
    ) -> list[ScheduleBlockResponse]:
        """List a doctor's blocks ordered by day and start time."""
        conditions = [
            doctor_schedules.c.hospital_id == hospital_id,
            doctor_schedules.c.doctor_id == doctor_id,
        ]
        if not include_inactive:
            conditions.append(doctor_schedules.c.is_active.is_(True))

        stmt = (
            select(doctor_schedules)
            .where(*conditions)
            .order_by(doctor_schedules.c.day_of_week, doctor_schedules.c.start_time)
        )
        result = await self.db.execute(stmt)
        return [ScheduleBlockResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

    async def active_blocks_for_day(
        self,
        hospital_id: UUID,
        doctor_id: UUID,
        day_of_week: int,
    ) -> list[ScheduleBlock]:
        """Active blocks the slot planner should consider for one weekday."""
        stmt = select(doctor_schedules).where(
            doctor_schedules.c.hospital_id == hospital_id,
            doctor_schedules.c.doctor_id == doctor_id,
            doctor_schedules.c.day_of_week == day_of_week,
            doctor_schedules.c.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return [ScheduleBlock.model_validate(dict(r._mapping)) for r in result.fetchall()]

    async def deactivate_block(
        self,
        caller: CallerContext,
        block_id: UUID,
    ) -> ScheduleBlockResponse:
        """
        Deactivate a block; blocks are never deleted.

        Raises:
            NotFoundException: If the block is not in the caller's hospital
        """
        async with atomic(self.db, "deactivate_schedule_block"):
            stmt = (
                update(doctor_schedules)
                .where(
                    doctor_schedules.c.id == block_id,
                    doctor_schedules.c.hospital_id == caller.hospital_id,
                )
                .values(
                    is_active=False,
                    updated_at=clock.utcnow(),
                    updated_by=caller.user_id,
                )
                .returning(doctor_schedules)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()

            if not row:
                raise NotFoundException("Schedule block not found")

        logger.info("schedule_block_deactivated", block_id=str(block_id))
        return ScheduleBlockResponse.model_validate(dict(row._mapping))
