"""Tests for the OPD queue lifecycle."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from carequeue.core import clock
from carequeue.models.appointments import appointments
from carequeue.services.directory_service import DirectoryService
from carequeue.services.queue_service import QueueService

# Queue date of the Monday bookings made by the booking_payload fixture
DATE_PARAMS = {"date": "2030-01-07"}
VISIT_MORNING = datetime(2030, 1, 7, 6, 0, tzinfo=UTC)


@pytest.fixture
def visit_day_clock(monkeypatch: pytest.MonkeyPatch) -> datetime:
    """Run the front desk on the morning of the booked visits."""
    monkeypatch.setattr(clock, "utcnow", lambda: VISIT_MORNING)
    return VISIT_MORNING


async def _book_and_check_in(
    client: AsyncClient,
    headers: dict,
    payload: dict,
    patient_id: UUID,
    slot_time: str,
) -> dict:
    booked = await client.post(
        "/api/v1/appointments/",
        json={**payload, "patient_id": str(patient_id), "slot_time": slot_time},
        headers=headers,
    )
    assert booked.status_code == 201
    checked_in = await client.post(
        f"/api/v1/opd/check-in/{booked.json()['id']}",
        headers=headers,
    )
    assert checked_in.status_code == 200
    return checked_in.json()


@pytest_asyncio.fixture
async def three_waiting(
    visit_day_clock: datetime,
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
    patient_id: UUID,
    other_patient_id: UUID,
    make_patient,
) -> list[dict]:
    """Three checked-in patients in booking order."""
    third_patient_id = await make_patient("Kiran")
    results = []
    for pid, slot in (
        (patient_id, "09:00"),
        (other_patient_id, "09:20"),
        (third_patient_id, "09:40"),
    ):
        results.append(await _book_and_check_in(client, auth_headers, booking_payload, pid, slot))
    return results


async def _queue(client: AsyncClient, headers: dict, doctor_id: UUID) -> dict:
    response = await client.get(f"/api/v1/opd/queue/{doctor_id}", params=DATE_PARAMS, headers=headers)
    assert response.status_code == 200
    return response.json()


def _waiting_positions(queue: dict) -> dict[str, int]:
    return {e["token_number"]: e["position"] for e in queue["entries"] if e["status"] == "WAITING"}


@pytest.mark.asyncio
async def test_check_in_appends_to_queue(three_waiting: list[dict]) -> None:
    """Check-ins take positions 1, 2, 3 and the appointment becomes CHECKED_IN."""
    positions = [r["queue_entry"]["position"] for r in three_waiting]
    tokens = [r["queue_entry"]["token_number"] for r in three_waiting]

    assert positions == [1, 2, 3]
    assert tokens == ["A-001", "A-002", "A-003"]
    assert all(r["appointment"]["status"] == "CHECKED_IN" for r in three_waiting)
    assert all(r["queue_entry"]["status"] == "WAITING" for r in three_waiting)
    assert [r["queue_entry"]["estimated_wait_minutes"] for r in three_waiting] == [15, 30, 45]


@pytest.mark.asyncio
async def test_check_in_twice_is_rejected(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
    patient_id: UUID,
) -> None:
    """An appointment has at most one queue entry."""
    first = await _book_and_check_in(client, auth_headers, booking_payload, patient_id, "09:00")

    response = await client.post(
        f"/api/v1/appointments/{first['appointment']['id']}/check-in",
        headers=auth_headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_CHECKED_IN"


@pytest.mark.asyncio
async def test_cancelled_appointment_cannot_check_in(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
) -> None:
    """Only SCHEDULED or CONFIRMED appointments can be checked in."""
    booked = await client.post("/api/v1/appointments/", json=booking_payload, headers=auth_headers)
    appointment_id = booked.json()["id"]
    await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"reason": "Rescheduled"},
        headers=auth_headers,
    )

    response = await client.post(f"/api/v1/opd/check-in/{appointment_id}", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_check_in_unknown_appointment(client: AsyncClient, auth_headers: dict) -> None:
    """Checking in a missing appointment is a 404."""
    response = await client.post(f"/api/v1/opd/check-in/{uuid4()}", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_call_next_takes_first_in_line(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """Position 1 is called and everyone behind moves up."""
    response = await client.post(
        f"/api/v1/opd/call-next/{doctor_id}", params=DATE_PARAMS, headers=auth_headers
    )

    assert response.status_code == 200
    called = response.json()
    assert called["token_number"] == "A-001"
    assert called["status"] == "IN_CONSULTATION"
    assert called["call_time"] is not None
    assert called["actual_wait_minutes"] >= 0

    queue = await _queue(client, auth_headers, doctor_id)
    assert queue["current_patient"]["id"] == called["id"]
    assert _waiting_positions(queue) == {"A-002": 1, "A-003": 2}

    appointment = await client.get(
        f"/api/v1/appointments/{called['appointment_id']}", headers=auth_headers
    )
    assert appointment.json()["status"] == "IN_CONSULTATION"
    assert appointment.json()["consultation_start_at"] is not None


@pytest.mark.asyncio
async def test_one_patient_in_consultation_at_a_time(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """The current consultation must finish before the next call."""
    url = f"/api/v1/opd/call-next/{doctor_id}"
    await client.post(url, params=DATE_PARAMS, headers=auth_headers)

    response = await client.post(url, params=DATE_PARAMS, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "PATIENT_IN_CONSULTATION"

    queue = await _queue(client, auth_headers, doctor_id)
    assert queue["stats"]["in_consultation"] == 1
    assert queue["stats"]["waiting"] == 2


@pytest.mark.asyncio
async def test_call_next_on_empty_queue(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
) -> None:
    """Nobody waiting is a 404."""
    response = await client.post(
        f"/api/v1/opd/call-next/{doctor_id}", params=DATE_PARAMS, headers=auth_headers
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NO_WAITING_PATIENTS"


@pytest.mark.asyncio
async def test_complete_then_call_next(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """Completing frees the doctor for the next patient."""
    url = f"/api/v1/opd/call-next/{doctor_id}"
    first = (await client.post(url, params=DATE_PARAMS, headers=auth_headers)).json()

    completed = await client.post(f"/api/v1/opd/complete/{first['id']}", headers=auth_headers)
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"
    assert completed.json()["end_time"] is not None

    appointment = await client.get(
        f"/api/v1/appointments/{first['appointment_id']}", headers=auth_headers
    )
    assert appointment.json()["status"] == "COMPLETED"

    second = await client.post(url, params=DATE_PARAMS, headers=auth_headers)
    assert second.status_code == 200
    assert second.json()["token_number"] == "A-002"


@pytest.mark.asyncio
async def test_complete_requires_consultation(
    client: AsyncClient,
    auth_headers: dict,
    three_waiting: list[dict],
) -> None:
    """A WAITING entry cannot jump straight to COMPLETED."""
    queue_id = three_waiting[0]["queue_entry"]["id"]

    response = await client.post(f"/api/v1/opd/complete/{queue_id}", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_skip_marks_no_show_and_closes_gap(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """Skipping the middle patient keeps positions dense."""
    middle = three_waiting[1]

    response = await client.post(
        f"/api/v1/opd/skip/{middle['queue_entry']['id']}",
        json={"reason": "Not present when called"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "SKIPPED"
    assert response.json()["skip_reason"] == "Not present when called"

    queue = await _queue(client, auth_headers, doctor_id)
    assert _waiting_positions(queue) == {"A-001": 1, "A-003": 2}
    assert queue["stats"]["skipped"] == 1

    appointment = await client.get(
        f"/api/v1/appointments/{middle['appointment']['id']}", headers=auth_headers
    )
    assert appointment.json()["status"] == "NO_SHOW"


@pytest.mark.asyncio
async def test_skip_requires_waiting(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """A patient already in consultation cannot be skipped."""
    called = await client.post(
        f"/api/v1/opd/call-next/{doctor_id}", params=DATE_PARAMS, headers=auth_headers
    )

    response = await client.post(
        f"/api/v1/opd/skip/{called.json()['id']}",
        json={"reason": "Too late"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_cancel_checked_in_appointment_leaves_queue(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """Cancelling a checked-in visit withdraws its WAITING entry."""
    first = three_waiting[0]

    cancelled = await client.post(
        f"/api/v1/appointments/{first['appointment']['id']}/cancel",
        json={"reason": "Left before consultation"},
        headers=auth_headers,
    )
    assert cancelled.status_code == 200

    queue = await _queue(client, auth_headers, doctor_id)
    assert _waiting_positions(queue) == {"A-002": 1, "A-003": 2}

    called = await client.post(
        f"/api/v1/opd/call-next/{doctor_id}", params=DATE_PARAMS, headers=auth_headers
    )
    assert called.json()["token_number"] == "A-002"


@pytest.mark.asyncio
async def test_opd_dashboard(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
) -> None:
    """The dashboard counts appointments and queue entries for the date."""
    await client.post(
        f"/api/v1/opd/call-next/{doctor_id}", params=DATE_PARAMS, headers=auth_headers
    )

    response = await client.get("/api/v1/opd/dashboard", params=DATE_PARAMS, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["appointments_total"] == 3
    assert data["appointments_by_status"] == {"CHECKED_IN": 2, "IN_CONSULTATION": 1}
    assert data["queue_by_status"] == {"WAITING": 2, "IN_CONSULTATION": 1}
    assert data["doctor_queues"] == [
        {"doctor_id": str(doctor_id), "doctor_name": "Dr. Anil Rao", "waiting_count": 2}
    ]


@pytest.mark.asyncio
async def test_check_in_joins_todays_queue(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
    doctor_id: UUID,
    patient_id: UUID,
) -> None:
    """Arrivals are filed under the current hospital date, whatever day was booked."""
    checked_in = await _book_and_check_in(
        client, auth_headers, booking_payload, patient_id, "09:00"
    )

    assert checked_in["queue_entry"]["queue_date"] == clock.today().isoformat()
    assert checked_in["queue_entry"]["position"] == 1

    called = await client.post(f"/api/v1/opd/call-next/{doctor_id}", headers=auth_headers)
    assert called.status_code == 200
    assert called.json()["token_number"] == checked_in["queue_entry"]["token_number"]


@pytest.mark.asyncio
async def test_check_in_records_chief_complaint(
    client: AsyncClient,
    auth_headers: dict,
    booking_payload: dict,
    visit_day_clock: datetime,
) -> None:
    """A complaint given at the desk replaces the booked one."""
    booked = await client.post(
        "/api/v1/appointments/",
        json={**booking_payload, "chief_complaint": "Fever"},
        headers=auth_headers,
    )

    response = await client.post(
        f"/api/v1/opd/check-in/{booked.json()['id']}",
        json={"chief_complaint": "Chest pain"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["appointment"]["chief_complaint"] == "Chest pain"
    assert response.json()["queue_entry"]["estimated_wait_minutes"] == 15


@pytest.mark.asyncio
async def test_second_consultation_refused_by_store(
    client: AsyncClient,
    auth_headers: dict,
    doctor_id: UUID,
    three_waiting: list[dict],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The unique consultation index holds even when the service check misses."""

    async def nobody_in_consultation(self, doctor_id, queue_date) -> bool:
        return False

    monkeypatch.setattr(QueueService, "_in_consultation", nobody_in_consultation)
    url = f"/api/v1/opd/call-next/{doctor_id}"
    first = await client.post(url, params=DATE_PARAMS, headers=auth_headers)
    assert first.status_code == 200

    response = await client.post(url, params=DATE_PARAMS, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["code"] == "PATIENT_IN_CONSULTATION"

    queue = await _queue(client, auth_headers, doctor_id)
    assert queue["stats"]["in_consultation"] == 1
    assert queue["stats"]["waiting"] == 2


@pytest.mark.asyncio
async def test_cancel_locks_doctor_before_appointment(
    client: AsyncClient,
    auth_headers: dict,
    three_waiting: list[dict],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Cancel takes the doctor lock first, like every other queue writer."""
    appointment_id = UUID(three_waiting[0]["appointment"]["id"])
    statuses_at_lock: list[str] = []
    original_lock = DirectoryService.lock_doctor

    async def recording_lock(self, doctor_id: UUID) -> None:
        result = await self.db.execute(
            select(appointments.c.status).where(appointments.c.id == appointment_id)
        )
        statuses_at_lock.append(result.scalar_one())
        await original_lock(self, doctor_id)

    monkeypatch.setattr(DirectoryService, "lock_doctor", recording_lock)

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"reason": "Left before consultation"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert statuses_at_lock[0] == "CHECKED_IN"
