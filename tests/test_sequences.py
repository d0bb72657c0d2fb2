"""Tests for the sequence generator."""

import asyncio
from datetime import date, datetime
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carequeue.core.exceptions import SequenceExhaustedException
from carequeue.services.sequence_service import (
    SequenceScope,
    SequenceService,
    admission_scope,
    format_period_number,
    format_token,
    token_scope,
    year_month,
)


def test_formatters() -> None:
    """Tokens pad to three digits, period numbers to the requested width."""
    assert format_token(1) == "A-001"
    assert format_token(42) == "A-042"
    assert format_token(1000) == "A-1000"
    assert format_period_number("ADM", "2506", 1) == "ADM-2506-0001"
    assert format_period_number("INV", "2512", 77, width=6) == "INV-2512-000077"
    assert year_month(datetime(2025, 6, 15, 10, 30)) == "2506"


def test_scopes() -> None:
    """Tokens are per doctor per day, admission numbers per month."""
    hospital_id, doctor_id = uuid4(), uuid4()

    token = token_scope(hospital_id, doctor_id, date(2025, 6, 2))
    assert token.name == f"token:{doctor_id}"
    assert token.period == "2025-06-02"

    admission = admission_scope(hospital_id, datetime(2025, 6, 30, 23, 0))
    assert admission == SequenceScope(hospital_id, "admission", "2506")


@pytest.mark.asyncio
async def test_sequence_starts_at_one_and_increments(
    db_session: AsyncSession,
    hospital_id: UUID,
) -> None:
    """Consecutive calls in one scope return 1, 2, 3."""
    service = SequenceService(db_session)
    scope = SequenceScope(hospital_id, "invoice", "2506")

    values = [await service.next_in_sequence(scope) for _ in range(3)]
    await db_session.commit()

    assert values == [1, 2, 3]


@pytest.mark.asyncio
async def test_scopes_are_independent(db_session: AsyncSession, hospital_id: UUID) -> None:
    """Different periods, names and tenants each start from 1."""
    service = SequenceService(db_session)

    june = await service.next_in_sequence(SequenceScope(hospital_id, "invoice", "2506"))
    july = await service.next_in_sequence(SequenceScope(hospital_id, "invoice", "2507"))
    other_name = await service.next_in_sequence(SequenceScope(hospital_id, "uhid", "2506"))
    other_tenant = await service.next_in_sequence(SequenceScope(uuid4(), "invoice", "2506"))
    await db_session.commit()

    assert (june, july, other_name, other_tenant) == (1, 1, 1, 1)


@pytest.mark.asyncio
async def test_rolled_back_increment_is_not_published(
    db_session: AsyncSession,
    hospital_id: UUID,
) -> None:
    """A value issued inside a rolled-back transaction is issued again."""
    service = SequenceService(db_session)
    scope = SequenceScope(hospital_id, "invoice", "2506")

    assert await service.next_in_sequence(scope) == 1
    await db_session.rollback()

    assert await service.next_in_sequence(scope) == 1
    await db_session.commit()


@pytest.mark.asyncio
async def test_concurrent_calls_get_distinct_values(
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    hospital_id: UUID,
) -> None:
    """N concurrent issuers get N distinct values ending at initial + N."""
    scope = SequenceScope(hospital_id, "invoice", "2506")

    initial = await SequenceService(db_session).next_in_sequence(scope)
    await db_session.commit()

    async def issue() -> int:
        async with session_factory() as session:
            value = await SequenceService(session).next_in_sequence(scope)
            await session.commit()
            return value

    n = 10
    values = await asyncio.gather(*(issue() for _ in range(n)))

    assert len(set(values)) == n
    assert max(values) == initial + n
    assert min(values) == initial + 1


@pytest.mark.asyncio
async def test_unsupported_dialect_fails_closed(
    db_session: AsyncSession,
    hospital_id: UUID,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Without an atomic upsert there is no fallback."""
    import carequeue.services.sequence_service as module

    monkeypatch.setattr(module, "_UPSERT_INSERTS", {})

    with pytest.raises(SequenceExhaustedException) as exc_info:
        await SequenceService(db_session).next_in_sequence(
            SequenceScope(hospital_id, "invoice", "2506")
        )

    assert exc_info.value.code == "SEQUENCE_EXHAUSTION"
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_next_sequence_endpoint(client: AsyncClient, auth_headers: dict) -> None:
    """Collaborators get the integer and the formatted number."""
    payload = {"prefix": "INV", "period": "2506"}

    first = await client.post("/api/v1/sequences/invoice/next", json=payload, headers=auth_headers)
    second = await client.post("/api/v1/sequences/invoice/next", json=payload, headers=auth_headers)

    assert first.status_code == 200
    assert first.json() == {
        "name": "invoice",
        "period": "2506",
        "value": 1,
        "formatted": "INV-2506-0001",
    }
    assert second.json()["formatted"] == "INV-2506-0002"


@pytest.mark.asyncio
async def test_internal_sequences_are_not_exposed(
    client: AsyncClient,
    auth_headers: dict,
) -> None:
    """Admission numbers can only be consumed by admitting a patient."""
    response = await client.post(
        "/api/v1/sequences/admission/next",
        json={"prefix": "ADM"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "RESERVED_SEQUENCE"


@pytest.mark.asyncio
async def test_sequence_endpoint_requires_auth(client: AsyncClient) -> None:
    """Unauthenticated callers are rejected."""
    response = await client.post("/api/v1/sequences/invoice/next", json={"prefix": "INV"})

    assert response.status_code in (401, 403)
