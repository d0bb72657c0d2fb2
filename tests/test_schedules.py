"""Tests for doctor schedule endpoints."""

from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient


def _block(doctor_id: UUID, **overrides) -> dict:
    block = {
        "doctor_id": str(doctor_id),
        "day_of_week": 3,
        "start_time": "14:00",
        "end_time": "16:00",
        "slot_duration_minutes": 30,
        "buffer_minutes": 0,
    }
    block.update(overrides)
    return block


@pytest.mark.asyncio
async def test_create_and_list_blocks(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
) -> None:
    """New blocks are listed after existing ones, ordered by day."""
    created = await client.post("/api/v1/schedules/", json=_block(doctor_id), headers=auth_headers)

    assert created.status_code == 201
    assert created.json()["is_active"] is True
    assert created.json()["day_of_week"] == 3

    listing = await client.get(f"/api/v1/schedules/doctor/{doctor_id}", headers=auth_headers)
    assert listing.status_code == 200
    assert [(b["day_of_week"], b["start_time"]) for b in listing.json()] == [
        (1, "09:00"),
        (3, "14:00"),
    ]


@pytest.mark.asyncio
async def test_new_block_produces_slots(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
) -> None:
    """A Wednesday block makes the Wednesday bookable."""
    await client.post("/api/v1/schedules/", json=_block(doctor_id), headers=auth_headers)

    response = await client.get(
        f"/api/v1/appointments/slots/{doctor_id}",
        params={"date": "2030-01-09"},
        headers=auth_headers,
    )

    assert [s["time"] for s in response.json()["slots"]] == ["14:00", "14:30", "15:00", "15:30"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"start_time": "16:00", "end_time": "14:00"},
        {"start_time": "2pm"},
        {"slot_duration_minutes": 0, "buffer_minutes": 0},
        {"day_of_week": 7},
    ],
)
async def test_invalid_block_is_rejected(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    overrides: dict,
) -> None:
    """Blocks the planner cannot step through are refused."""
    response = await client.post(
        "/api/v1/schedules/", json=_block(doctor_id, **overrides), headers=auth_headers
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_block_for_unknown_doctor(client: AsyncClient, auth_headers: dict) -> None:
    """Blocks need an active doctor of the caller's hospital."""
    response = await client.post("/api/v1/schedules/", json=_block(uuid4()), headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "DOCTOR_NOT_FOUND"


@pytest.mark.asyncio
async def test_deactivated_block_stops_producing_slots(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    booking_payload: dict,
) -> None:
    """Deactivation keeps the block for history but removes its slots."""
    blocks = await client.get(f"/api/v1/schedules/doctor/{doctor_id}", headers=auth_headers)
    block_id = blocks.json()[0]["id"]

    deactivated = await client.delete(f"/api/v1/schedules/{block_id}", headers=auth_headers)
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    slots = await client.get(
        f"/api/v1/appointments/slots/{doctor_id}",
        params={"date": booking_payload["appointment_date"]},
        headers=auth_headers,
    )
    assert slots.json()["slots"] == []

    active = await client.get(f"/api/v1/schedules/doctor/{doctor_id}", headers=auth_headers)
    assert active.json() == []

    history = await client.get(
        f"/api/v1/schedules/doctor/{doctor_id}",
        params={"include_inactive": True},
        headers=auth_headers,
    )
    assert [b["id"] for b in history.json()] == [block_id]


@pytest.mark.asyncio
async def test_deactivate_unknown_block(client: AsyncClient, auth_headers: dict) -> None:
    """Unknown blocks are a 404."""
    response = await client.delete(f"/api/v1/schedules/{uuid4()}", headers=auth_headers)

    assert response.status_code == 404
