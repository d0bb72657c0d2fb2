"""Tests for event publishing and the atomic unit helper."""

import json
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.exceptions import TransientStoreException
from carequeue.core.transaction import atomic
from carequeue.models.sequences import sequence_counters
from carequeue.services.notification_service import APPOINTMENT_BOOKED, NotificationService
from carequeue.services.sequence_service import SequenceScope, SequenceService


class FakeRedis:
    """In-memory stand-in for the redis client used by the publisher."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[tuple[str, str]] = []
        self.closed = False

    async def publish(self, channel: str, message: str) -> int:
        if self.fail:
            raise ConnectionError("redis down")
        self.messages.append((channel, message))
        return 1

    async def ping(self) -> bool:
        if self.fail:
            raise ConnectionError("redis down")
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_publish_sends_envelope() -> None:
    """Events go out as JSON with name, timestamp and data."""
    fake = FakeRedis()
    service = NotificationService(fake, "carequeue:events")
    appointment_id = uuid4()

    assert await service.publish(APPOINTMENT_BOOKED, {"appointment_id": appointment_id}) is True

    channel, raw = fake.messages[0]
    message = json.loads(raw)
    assert channel == "carequeue:events"
    assert message["event"] == "appointment.booked"
    assert message["data"] == {"appointment_id": str(appointment_id)}
    assert "occurred_at" in message


@pytest.mark.asyncio
async def test_publish_failure_is_not_raised() -> None:
    """A broken broker never fails the caller."""
    service = NotificationService(FakeRedis(fail=True), "carequeue:events")

    assert await service.publish(APPOINTMENT_BOOKED, {}) is False
    assert await service.check_connection() is False


@pytest.mark.asyncio
async def test_disabled_publisher_skips() -> None:
    """Without a client nothing is published."""
    service = NotificationService(None, "carequeue:events")

    assert service.enabled is False
    assert await service.publish(APPOINTMENT_BOOKED, {}) is False


@pytest.mark.asyncio
async def test_close_releases_client() -> None:
    """Closing drops the owned client."""
    fake = FakeRedis()
    service = NotificationService(fake, "carequeue:events")

    await service.close()

    assert fake.closed is True
    assert service.redis is None


@pytest.mark.asyncio
async def test_atomic_rolls_back_and_reports_store_failure(db_session: AsyncSession) -> None:
    """Driver errors roll back the whole unit and surface as retryable."""
    scope = SequenceScope(uuid4(), "invoice", "2506")

    with pytest.raises(TransientStoreException) as exc_info:
        async with atomic(db_session, "test_unit"):
            await SequenceService(db_session).next_in_sequence(scope)
            raise DBAPIError("SELECT 1", {}, Exception("connection reset"))

    assert exc_info.value.status_code == 503
    assert exc_info.value.code == "STORE_UNAVAILABLE"

    result = await db_session.execute(select(sequence_counters))
    assert result.fetchall() == []
