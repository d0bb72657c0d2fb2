"""Inpatient service: wards, beds, admissions, discharges and bed transfers."""

from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core import clock
from carequeue.core.exceptions import (
    BadRequestException,
    ConflictException,
    InvalidStatusException,
    NotFoundException,
)
from carequeue.core.security import CallerContext
from carequeue.core.transaction import atomic
from carequeue.models.appointments import appointments
from carequeue.models.ipd import admissions, bed_transfers, beds, wards
from carequeue.schemas.appointments import AppointmentStatus
from carequeue.schemas.ipd import (
    AdmissionCreate,
    AdmissionListResponse,
    AdmissionResponse,
    AdmissionStatus,
    BedCreate,
    BedResponse,
    BedStatus,
    BedTransferRequest,
    BedTransferResponse,
    DischargeRequest,
    IpdDashboardResponse,
    WardCreate,
    WardOccupancy,
    WardResponse,
)
from carequeue.services.directory_service import DirectoryService
from carequeue.services.notification_service import ADMISSION_CREATED, NotificationService
from carequeue.services.sequence_service import SequenceService

logger = structlog.get_logger(__name__)

# Statuses housekeeping may set directly; OCCUPIED is owned by admissions
HOUSEKEEPING_STATUSES = (
    BedStatus.AVAILABLE.value,
    BedStatus.MAINTENANCE.value,
    BedStatus.RESERVED.value,
)


def _bed_not_available() -> ConflictException:
    return ConflictException("Bed is not available", code="BED_NOT_AVAILABLE")


class IpdService:
    """
    Bed and admission bookkeeping.

    A bed's ``status`` is the single source of truth for occupancy. Every
    write that changes it also changes the admission that explains it, in one
    transaction, so an OCCUPIED bed always has exactly one ADMITTED admission.
    """

    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        """Initialize service with database session and optional event publisher."""
        self.db = db
        self.notifications = notifications
        self.directory = DirectoryService(db)
        self.sequences = SequenceService(db)

    # Wards and beds

    async def create_ward(self, caller: CallerContext, data: WardCreate) -> WardResponse:
        """
        Create a ward.

        Raises:
            ConflictException: If the code is already used in the hospital
        """
        try:
            async with atomic(self.db, "create_ward"):
                now = clock.utcnow()
                stmt = (
                    insert(wards)
                    .values(
                        hospital_id=caller.hospital_id,
                        name=data.name,
                        code=data.code,
                        type=data.type.value,
                        floor=data.floor,
                        daily_rate=data.daily_rate,
                        created_at=now,
                        updated_at=now,
                        created_by=caller.user_id,
                        updated_by=caller.user_id,
                    )
                    .returning(wards)
                )
                result = await self.db.execute(stmt)
                row = result.fetchone()
        except IntegrityError as e:
            raise ConflictException(
                f"Ward code {data.code} already exists", code="WARD_CODE_EXISTS"
            ) from e

        logger.info("ward_created", ward_id=str(row.id), code=row.code)
        return WardResponse.model_validate(dict(row._mapping))

    async def list_wards(self, hospital_id: UUID) -> list[WardResponse]:
        """Active wards ordered by code."""
        stmt = (
            select(wards)
            .where(
                wards.c.hospital_id == hospital_id,
                wards.c.is_active.is_(True),
                wards.c.deleted_at.is_(None),
            )
            .order_by(wards.c.code)
        )
        result = await self.db.execute(stmt)
        return [WardResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

    async def _require_ward(self, hospital_id: UUID, ward_id: UUID) -> Any:
        stmt = select(wards).where(
            wards.c.id == ward_id,
            wards.c.hospital_id == hospital_id,
            wards.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        ward = result.fetchone()
        if not ward:
            raise NotFoundException("Ward not found", code="WARD_NOT_FOUND")
        return ward

    async def create_bed(self, caller: CallerContext, data: BedCreate) -> BedResponse:
        """
        Add a bed to a ward; new beds start AVAILABLE.

        Raises:
            NotFoundException: WARD_NOT_FOUND
            ConflictException: If the bed number is already used in the ward
        """
        try:
            async with atomic(self.db, "create_bed"):
                await self._require_ward(caller.hospital_id, data.ward_id)

                now = clock.utcnow()
                stmt = (
                    insert(beds)
                    .values(
                        ward_id=data.ward_id,
                        bed_number=data.bed_number,
                        bed_type=data.bed_type,
                        daily_rate=data.daily_rate,
                        status=BedStatus.AVAILABLE.value,
                        created_at=now,
                        updated_at=now,
                        created_by=caller.user_id,
                        updated_by=caller.user_id,
                    )
                    .returning(beds)
                )
                result = await self.db.execute(stmt)
                row = result.fetchone()
        except IntegrityError as e:
            raise ConflictException(
                f"Bed {data.bed_number} already exists in this ward", code="BED_NUMBER_EXISTS"
            ) from e

        logger.info("bed_created", bed_id=str(row.id), ward_id=str(row.ward_id))
        return BedResponse.model_validate(dict(row._mapping))

    def _tenant_beds(self, hospital_id: UUID) -> Any:
        """Beds of the hospital; beds are scoped through their ward."""
        return (
            select(beds)
            .join(wards, beds.c.ward_id == wards.c.id)
            .where(
                wards.c.hospital_id == hospital_id,
                beds.c.deleted_at.is_(None),
            )
        )

    async def list_beds(
        self,
        hospital_id: UUID,
        ward_id: UUID | None = None,
        status: BedStatus | None = None,
    ) -> list[BedResponse]:
        """Active beds, optionally filtered by ward and status."""
        stmt = self._tenant_beds(hospital_id).where(beds.c.is_active.is_(True))
        if ward_id:
            stmt = stmt.where(beds.c.ward_id == ward_id)
        if status:
            stmt = stmt.where(beds.c.status == status.value)

        result = await self.db.execute(stmt.order_by(beds.c.ward_id, beds.c.bed_number))
        return [BedResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

    async def _require_bed(self, hospital_id: UUID, bed_id: UUID) -> Any:
        stmt = self._tenant_beds(hospital_id).where(
            beds.c.id == bed_id,
            beds.c.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        bed = result.fetchone()
        if not bed:
            raise NotFoundException("Bed not found", code="BED_NOT_FOUND")
        return bed

    async def set_bed_status(
        self,
        caller: CallerContext,
        bed_id: UUID,
        status: BedStatus,
    ) -> BedResponse:
        """
        Move a bed between AVAILABLE, MAINTENANCE and RESERVED.

        Raises:
            NotFoundException: BED_NOT_FOUND
            BadRequestException: If asked to set OCCUPIED
            InvalidStatusException: If the bed is occupied
        """
        if status.value not in HOUSEKEEPING_STATUSES:
            raise BadRequestException(
                "Beds become occupied only through admission", code="INVALID_BED_STATUS"
            )

        async with atomic(self.db, "set_bed_status"):
            bed = await self._require_bed(caller.hospital_id, bed_id)

            stmt = (
                update(beds)
                .where(
                    beds.c.id == bed_id,
                    beds.c.status.in_(HOUSEKEEPING_STATUSES),
                )
                .values(status=status.value, updated_at=clock.utcnow(), updated_by=caller.user_id)
                .returning(beds)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            if not row:
                raise InvalidStatusException(f"Cannot change status of a bed that is {bed.status}")

        logger.info("bed_status_changed", bed_id=str(bed_id), old=bed.status, new=status.value)
        return BedResponse.model_validate(dict(row._mapping))

    async def _occupy_bed(self, bed_id: UUID, user_id: UUID) -> None:
        """Compare-and-set AVAILABLE -> OCCUPIED."""
        result = await self.db.execute(
            update(beds)
            .where(beds.c.id == bed_id, beds.c.status == BedStatus.AVAILABLE.value)
            .values(status=BedStatus.OCCUPIED.value, updated_at=clock.utcnow(), updated_by=user_id)
        )
        if result.rowcount != 1:
            raise _bed_not_available()

    async def _release_bed(self, bed_id: UUID, user_id: UUID) -> None:
        """OCCUPIED -> AVAILABLE."""
        await self.db.execute(
            update(beds)
            .where(beds.c.id == bed_id, beds.c.status == BedStatus.OCCUPIED.value)
            .values(status=BedStatus.AVAILABLE.value, updated_at=clock.utcnow(), updated_by=user_id)
        )

    # Admissions

    async def admit(self, caller: CallerContext, data: AdmissionCreate) -> AdmissionResponse:
        """
        Admit a patient to an available bed.

        Args:
            caller: Authenticated caller
            data: Admission details

        Returns:
            Created admission in ADMITTED status

        Raises:
            NotFoundException: BED_NOT_FOUND, PATIENT_NOT_FOUND or DOCTOR_NOT_FOUND
            InvalidStatusException: If the source visit is not completed
            ConflictException: BED_NOT_AVAILABLE
        """
        try:
            async with atomic(self.db, "admit_patient"):
                bed = await self._require_bed(caller.hospital_id, data.bed_id)
                await self.directory.require_patient(caller.hospital_id, data.patient_id)
                await self.directory.require_active_doctor(
                    caller.hospital_id, data.admitting_doctor_id
                )
                if data.attending_doctor_id:
                    await self.directory.require_active_doctor(
                        caller.hospital_id, data.attending_doctor_id
                    )
                if data.source_appointment_id:
                    await self._require_completed_visit(caller.hospital_id, data)

                if bed.status != BedStatus.AVAILABLE.value:
                    raise _bed_not_available()
                await self._occupy_bed(data.bed_id, caller.user_id)

                now = clock.utcnow()
                admission_no = await self.sequences.next_admission_no(caller.hospital_id, now)
                expected_discharge = (
                    now + timedelta(days=data.expected_stay_days)
                    if data.expected_stay_days
                    else None
                )

                stmt = (
                    insert(admissions)
                    .values(
                        hospital_id=caller.hospital_id,
                        admission_no=admission_no,
                        patient_id=data.patient_id,
                        admitting_doctor_id=data.admitting_doctor_id,
                        attending_doctor_id=data.attending_doctor_id or data.admitting_doctor_id,
                        bed_id=data.bed_id,
                        source_appointment_id=data.source_appointment_id,
                        admission_date=now,
                        admission_type=data.admission_type.value,
                        admission_reason=data.admission_reason,
                        chief_complaint=data.chief_complaint,
                        provisional_diagnosis=data.provisional_diagnosis,
                        expected_stay_days=data.expected_stay_days,
                        expected_discharge=expected_discharge,
                        is_insured=data.is_insured,
                        insurance_approval_no=data.insurance_approval_no,
                        status=AdmissionStatus.ADMITTED.value,
                        created_at=now,
                        updated_at=now,
                        created_by=caller.user_id,
                        updated_by=caller.user_id,
                    )
                    .returning(admissions)
                )
                result = await self.db.execute(stmt)
                row = result.fetchone()
        except IntegrityError as e:
            raise _bed_not_available() from e

        admission = AdmissionResponse.model_validate(dict(row._mapping))
        logger.info(
            "patient_admitted",
            admission_id=str(admission.id),
            admission_no=admission.admission_no,
            bed_id=str(admission.bed_id),
        )

        if self.notifications is not None:
            await self.notifications.publish(
                ADMISSION_CREATED,
                {
                    "admission_id": admission.id,
                    "admission_no": admission.admission_no,
                    "hospital_id": admission.hospital_id,
                    "patient_id": admission.patient_id,
                    "bed_id": admission.bed_id,
                    "admission_date": admission.admission_date,
                },
            )

        return admission

    async def _require_completed_visit(self, hospital_id: UUID, data: AdmissionCreate) -> None:
        stmt = select(appointments.c.status, appointments.c.patient_id).where(
            appointments.c.id == data.source_appointment_id,
            appointments.c.hospital_id == hospital_id,
            appointments.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        visit = result.fetchone()
        if not visit or visit.patient_id != data.patient_id:
            raise NotFoundException("Source appointment not found")
        if visit.status != AppointmentStatus.COMPLETED.value:
            raise InvalidStatusException(
                f"Only completed visits can be converted to admissions, got {visit.status}"
            )

    async def _require_admission(self, hospital_id: UUID, admission_id: UUID) -> Any:
        stmt = select(admissions).where(
            admissions.c.id == admission_id,
            admissions.c.hospital_id == hospital_id,
            admissions.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        admission = result.fetchone()
        if not admission:
            raise NotFoundException("Admission not found", code="ADMISSION_NOT_FOUND")
        return admission

    async def discharge(
        self,
        caller: CallerContext,
        admission_id: UUID,
        data: DischargeRequest,
    ) -> AdmissionResponse:
        """
        Discharge an admitted patient and free their bed.

        Raises:
            NotFoundException: ADMISSION_NOT_FOUND
            InvalidStatusException: Unless ADMITTED
        """
        async with atomic(self.db, "discharge_patient"):
            admission = await self._require_admission(caller.hospital_id, admission_id)

            now = clock.utcnow()
            stmt = (
                update(admissions)
                .where(
                    admissions.c.id == admission_id,
                    admissions.c.status == AdmissionStatus.ADMITTED.value,
                )
                .values(
                    status=AdmissionStatus.DISCHARGED.value,
                    discharge_date=now,
                    discharge_type=data.discharge_type.value,
                    discharge_summary=data.discharge_summary,
                    discharge_advice=data.discharge_advice,
                    follow_up_date=data.follow_up_date,
                    updated_at=now,
                    updated_by=caller.user_id,
                )
                .returning(admissions)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            if not row:
                raise InvalidStatusException(
                    f"Cannot discharge admission with status: {admission.status}"
                )

            await self._release_bed(admission.bed_id, caller.user_id)

        logger.info(
            "patient_discharged",
            admission_id=str(admission_id),
            discharge_type=data.discharge_type.value,
            bed_id=str(admission.bed_id),
        )
        return AdmissionResponse.model_validate(dict(row._mapping))

    async def transfer_bed(
        self,
        caller: CallerContext,
        admission_id: UUID,
        data: BedTransferRequest,
    ) -> BedTransferResponse:
        """
        Move an admitted patient to another available bed.

        The transfer record, the admission's bed, and both bed statuses change
        together.

        Raises:
            NotFoundException: ADMISSION_NOT_FOUND or BED_NOT_FOUND
            InvalidStatusException: Unless ADMITTED
            ConflictException: BED_NOT_AVAILABLE
        """
        try:
            async with atomic(self.db, "transfer_bed"):
                admission = await self._require_admission(caller.hospital_id, admission_id)
                if admission.status != AdmissionStatus.ADMITTED.value:
                    raise InvalidStatusException(
                        f"Cannot transfer admission with status: {admission.status}"
                    )

                target = await self._require_bed(caller.hospital_id, data.to_bed_id)
                if target.id == admission.bed_id or target.status != BedStatus.AVAILABLE.value:
                    raise _bed_not_available()

                from_bed_id = admission.bed_id
                now = clock.utcnow()

                await self._occupy_bed(data.to_bed_id, caller.user_id)

                moved = await self.db.execute(
                    update(admissions)
                    .where(
                        admissions.c.id == admission_id,
                        admissions.c.bed_id == from_bed_id,
                        admissions.c.status == AdmissionStatus.ADMITTED.value,
                    )
                    .values(bed_id=data.to_bed_id, updated_at=now, updated_by=caller.user_id)
                )
                if moved.rowcount != 1:
                    raise InvalidStatusException("Admission changed, please retry")

                await self._release_bed(from_bed_id, caller.user_id)

                result = await self.db.execute(
                    insert(bed_transfers)
                    .values(
                        admission_id=admission_id,
                        from_bed_id=from_bed_id,
                        to_bed_id=data.to_bed_id,
                        transfer_date=now,
                        reason=data.reason,
                        notes=data.notes,
                        created_at=now,
                        created_by=caller.user_id,
                    )
                    .returning(bed_transfers)
                )
                row = result.fetchone()
        except IntegrityError as e:
            raise _bed_not_available() from e

        logger.info(
            "bed_transferred",
            admission_id=str(admission_id),
            from_bed_id=str(from_bed_id),
            to_bed_id=str(data.to_bed_id),
        )
        return BedTransferResponse.model_validate(dict(row._mapping))

    async def get_admission(self, hospital_id: UUID, admission_id: UUID) -> AdmissionResponse:
        """
        Get admission by ID.

        Raises:
            NotFoundException: ADMISSION_NOT_FOUND
        """
        row = await self._require_admission(hospital_id, admission_id)
        return AdmissionResponse.model_validate(dict(row._mapping))

    async def list_admissions(
        self,
        hospital_id: UUID,
        status: AdmissionStatus | None = None,
        patient_id: UUID | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> AdmissionListResponse:
        """List admissions, newest first."""
        conditions = [
            admissions.c.hospital_id == hospital_id,
            admissions.c.deleted_at.is_(None),
        ]
        if status:
            conditions.append(admissions.c.status == status.value)
        if patient_id:
            conditions.append(admissions.c.patient_id == patient_id)

        count_stmt = select(func.count()).select_from(admissions).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(admissions)
            .where(and_(*conditions))
            .order_by(admissions.c.admission_date.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await self.db.execute(stmt)
        items = [AdmissionResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

        return AdmissionListResponse(total=total, page=page, page_size=page_size, items=items)

    async def list_transfers(
        self,
        hospital_id: UUID,
        admission_id: UUID,
    ) -> list[BedTransferResponse]:
        """Transfer history of an admission, oldest first."""
        await self._require_admission(hospital_id, admission_id)

        stmt = (
            select(bed_transfers)
            .where(bed_transfers.c.admission_id == admission_id)
            .order_by(bed_transfers.c.transfer_date)
        )
        result = await self.db.execute(stmt)
        return [BedTransferResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

    # Read models

    async def ward_occupancy(self, hospital_id: UUID) -> list[WardOccupancy]:
        """
        Live bed counts per active ward.

        Returns:
            One entry per ward; occupancy_rate is 0.0 for a ward without beds
        """
        ward_rows = (
            await self.db.execute(
                select(wards)
                .where(
                    wards.c.hospital_id == hospital_id,
                    wards.c.is_active.is_(True),
                    wards.c.deleted_at.is_(None),
                )
                .order_by(wards.c.code)
            )
        ).fetchall()

        counts = await self.db.execute(
            select(beds.c.ward_id, beds.c.status, func.count())
            .join(wards, beds.c.ward_id == wards.c.id)
            .where(
                wards.c.hospital_id == hospital_id,
                beds.c.is_active.is_(True),
                beds.c.deleted_at.is_(None),
            )
            .group_by(beds.c.ward_id, beds.c.status)
        )
        by_ward: dict[UUID, dict[str, int]] = {}
        for ward_id, status, n in counts.all():
            by_ward.setdefault(ward_id, {})[status] = n

        occupancy = []
        for ward in ward_rows:
            by_status = by_ward.get(ward.id, {})
            total = sum(by_status.values())
            occupied = by_status.get(BedStatus.OCCUPIED.value, 0)
            occupancy.append(
                WardOccupancy(
                    ward_id=ward.id,
                    name=ward.name,
                    code=ward.code,
                    type=ward.type,
                    total_beds=total,
                    occupied_beds=occupied,
                    beds_by_status=by_status,
                    occupancy_rate=occupied / total if total else 0.0,
                )
            )
        return occupancy

    async def get_dashboard(self, hospital_id: UUID) -> IpdDashboardResponse:
        """Hospital-wide bed and admission counts."""
        occupancy = await self.ward_occupancy(hospital_id)

        beds_by_status: dict[str, int] = {}
        for ward in occupancy:
            for status, n in ward.beds_by_status.items():
                beds_by_status[status] = beds_by_status.get(status, 0) + n

        base = [admissions.c.hospital_id == hospital_id, admissions.c.deleted_at.is_(None)]
        start_of_day = clock.start_of_today()

        async def count(*conditions: Any) -> int:
            stmt = select(func.count()).select_from(admissions).where(*base, *conditions)
            return (await self.db.execute(stmt)).scalar() or 0

        return IpdDashboardResponse(
            total_beds=sum(beds_by_status.values()),
            beds_by_status=beds_by_status,
            currently_admitted=await count(
                admissions.c.status == AdmissionStatus.ADMITTED.value
            ),
            today_admissions=await count(admissions.c.admission_date >= start_of_day),
            today_discharges=await count(admissions.c.discharge_date >= start_of_day),
            ward_occupancy=occupancy,
        )
