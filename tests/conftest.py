import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Tests default to a throwaway SQLite file; set TEST_DATABASE_URL to use PostgreSQL
_DB_FILE = Path(tempfile.gettempdir()) / f"carequeue_test_{os.getpid()}.db"
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{_DB_FILE}")

# Safety check: never drop tables in the application database
if os.getenv("DATABASE_URL") == TEST_DATABASE_URL:
    raise RuntimeError("TEST_DATABASE_URL must differ from DATABASE_URL")

os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

from carequeue.core.security import CallerContext, create_access_token  # noqa: E402
from carequeue.database import get_db  # noqa: E402
from carequeue.dependencies import get_notification_service  # noqa: E402
from carequeue.main import app  # noqa: E402
from carequeue.models import (  # noqa: E402
    beds,
    doctor_schedules,
    doctors,
    metadata,
    patients,
    wards,
)
from carequeue.services.notification_service import NotificationService  # noqa: E402

if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# NullPool avoids sharing connections across event loops
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# A Monday; schedule day 1 in Sunday-based numbering
VISIT_DATE = date(2030, 1, 7)
VISIT_DAY_OF_WEEK = 1


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for extra sessions, e.g. to simulate concurrent requests."""
    return TestSessionLocal


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def hospital_id() -> UUID:
    """Tenant every fixture row belongs to."""
    return uuid4()


@pytest.fixture
def caller(hospital_id: UUID) -> CallerContext:
    """Caller context for service-level tests."""
    return CallerContext(hospital_id=hospital_id, user_id=uuid4())


@pytest.fixture
def auth_headers(caller: CallerContext) -> dict:
    """Create authentication headers for testing protected endpoints."""
    token_data = {
        "sub": str(caller.user_id),
        "hospital_id": str(caller.hospital_id),
    }
    token = create_access_token(data=token_data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


async def _insert_patient(db: AsyncSession, hospital_id: UUID, first_name: str) -> UUID:
    patient_id = uuid4()
    await db.execute(
        insert(patients).values(
            id=patient_id,
            hospital_id=hospital_id,
            uhid=f"UHID-{patient_id.hex[:10].upper()}",
            first_name=first_name,
            last_name="Kumar",
            gender="F",
            mobile_primary="+919800000000",
        )
    )
    await db.commit()
    return patient_id


@pytest_asyncio.fixture
async def patient_id(db_session: AsyncSession, hospital_id: UUID) -> UUID:
    """A registered patient."""
    return await _insert_patient(db_session, hospital_id, "Asha")


@pytest_asyncio.fixture
async def other_patient_id(db_session: AsyncSession, hospital_id: UUID) -> UUID:
    """A second registered patient."""
    return await _insert_patient(db_session, hospital_id, "Meera")


@pytest_asyncio.fixture
async def make_patient(db_session: AsyncSession, hospital_id: UUID):
    """Factory for additional patients."""

    async def factory(first_name: str = "Ravi") -> UUID:
        return await _insert_patient(db_session, hospital_id, first_name)

    return factory


@pytest_asyncio.fixture
async def doctor_id(db_session: AsyncSession, hospital_id: UUID) -> UUID:
    """An active doctor with a 09:00-13:00 Monday block of 15 + 5 minute slots."""
    doctor_id = uuid4()
    await db_session.execute(
        insert(doctors).values(
            id=doctor_id,
            hospital_id=hospital_id,
            first_name="Anil",
            last_name="Rao",
            specialization="General Medicine",
            consultation_fee=500,
        )
    )
    await db_session.execute(
        insert(doctor_schedules).values(
            hospital_id=hospital_id,
            doctor_id=doctor_id,
            day_of_week=VISIT_DAY_OF_WEEK,
            start_time="09:00",
            end_time="13:00",
            slot_duration_minutes=15,
            buffer_minutes=5,
        )
    )
    await db_session.commit()
    return doctor_id


@pytest_asyncio.fixture
async def inactive_doctor_id(db_session: AsyncSession, hospital_id: UUID) -> UUID:
    """A doctor who no longer consults."""
    doctor_id = uuid4()
    await db_session.execute(
        insert(doctors).values(
            id=doctor_id,
            hospital_id=hospital_id,
            first_name="Retired",
            is_active=False,
        )
    )
    await db_session.commit()
    return doctor_id


@pytest_asyncio.fixture
async def ward_id(db_session: AsyncSession, hospital_id: UUID) -> UUID:
    """A general ward."""
    ward_id = uuid4()
    await db_session.execute(
        insert(wards).values(
            id=ward_id,
            hospital_id=hospital_id,
            name="General Ward A",
            code="GWA",
            type="GENERAL",
            daily_rate=1500,
        )
    )
    await db_session.commit()
    return ward_id


@pytest_asyncio.fixture
async def bed_ids(db_session: AsyncSession, ward_id: UUID) -> list[UUID]:
    """Three available beds in the general ward."""
    ids = [uuid4() for _ in range(3)]
    for number, bed_id in enumerate(ids, start=1):
        await db_session.execute(
            insert(beds).values(
                id=bed_id,
                ward_id=ward_id,
                bed_number=f"A-{number}",
                status="AVAILABLE",
            )
        )
    await db_session.commit()
    return ids


@pytest.fixture
def booking_payload(patient_id: UUID, doctor_id: UUID) -> dict:
    """Request body for booking the first Monday slot."""
    return {
        "patient_id": str(patient_id),
        "doctor_id": str(doctor_id),
        "appointment_date": VISIT_DATE.isoformat(),
        "slot_time": "09:00",
        "consultation_type": "NEW",
        "chief_complaint": "Fever for three days",
    }


class RecordingNotifications(NotificationService):
    """Publisher that records events instead of sending them to Redis."""

    def __init__(self) -> None:
        super().__init__(None, "test-events", enabled=False)
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event: str, payload: dict) -> bool:
        self.events.append((event, payload))
        return True


@pytest.fixture
def recorded_events(client: AsyncClient) -> list[tuple[str, dict]]:
    """Capture published events for the duration of a test."""
    recorder = RecordingNotifications()
    app.dependency_overrides[get_notification_service] = lambda: recorder
    return recorder.events
