"""Patient and doctor existence lookups."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import NotFoundException
from carequeue.models.doctors import doctors
from carequeue.models.patients import patients


class DirectoryService:
    """Read-only view over the patient and doctor registries."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def require_patient(self, hospital_id: UUID, patient_id: UUID) -> dict:
        """
        Get a patient of the hospital that is not soft-deleted.

        Raises:
            NotFoundException: PATIENT_NOT_FOUND
        """
        stmt = select(patients).where(
            patients.c.id == patient_id,
            patients.c.hospital_id == hospital_id,
            patients.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        patient = result.mappings().first()

        if not patient:
            raise NotFoundException("Patient not found", code="PATIENT_NOT_FOUND")
        return dict(patient)

    async def require_active_doctor(
        self,
        hospital_id: UUID,
        doctor_id: UUID,
        lock: bool = False,
    ) -> dict:
        """
        Get an active doctor of the hospital.

        Args:
            hospital_id: Tenant
            doctor_id: Doctor ID
            lock: Take a row lock, serializing queue changes for this doctor

        Raises:
            NotFoundException: DOCTOR_NOT_FOUND
        """
        stmt = select(doctors).where(
            doctors.c.id == doctor_id,
            doctors.c.hospital_id == hospital_id,
            doctors.c.is_active.is_(True),
            doctors.c.deleted_at.is_(None),
        )
        if lock:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        doctor = result.mappings().first()

        if not doctor:
            raise NotFoundException("Doctor not found or inactive", code="DOCTOR_NOT_FOUND")
        return dict(doctor)

    async def lock_doctor(self, doctor_id: UUID) -> None:
        """Row-lock a doctor regardless of status; a no-op on SQLite."""
        stmt = select(doctors.c.id).where(doctors.c.id == doctor_id).with_for_update()
        await self.db.execute(stmt)

    async def list_active_doctors(self, hospital_id: UUID) -> list[dict]:
        """Active doctors of a hospital, ordered by name."""
        stmt = (
            select(doctors)
            .where(
                doctors.c.hospital_id == hospital_id,
                doctors.c.is_active.is_(True),
                doctors.c.deleted_at.is_(None),
            )
            .order_by(doctors.c.first_name, doctors.c.last_name)
        )
        result = await self.db.execute(stmt)
        return [dict(d) for d in result.mappings().all()]


def doctor_display_name(doctor: dict) -> str:
    """Name shown on queue boards."""
    parts = [doctor.get("first_name"), doctor.get("last_name")]
    return "Dr. " + " ".join(p for p in parts if p)
