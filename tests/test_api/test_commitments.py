"""Tests for program, subscription, commitment and attendance endpoints."""

from httpx import AsyncClient

from mentorloop.clock import FrozenClock
from tests.conftest import (
    ADMIN,
    MENTOR,
    MENTOR_ID,
    OTHER_PARTICIPANT,
    PARTICIPANT,
    RecordingNotifier,
    add_discipline_week,
    test_session,
)

SLOTS = {
    "slot1": {"day_of_week": 1, "time": "06:00"},
    "slot2": {"day_of_week": 4, "time": "06:15"},
}


async def _enroll(client: AsyncClient, **extra) -> dict:  # type: ignore[no-untyped-def]
    async with test_session() as session:
        await add_discipline_week(session)
    resp = await client.post(
        "/api/programs",
        headers=extra.pop("headers", PARTICIPANT),
        json={"mentor_id": MENTOR_ID, **SLOTS, **extra},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestPrograms:
    async def test_enroll(self, client: AsyncClient, seeded: None, notifier: RecordingNotifier) -> None:
        data = await _enroll(client)
        assert data["sessions_created"] == 34
        assert data["commitment"]["kind"] == "PROGRAM"
        assert data["commitment"]["status"] == "ACTIVE"
        assert data["commitment"]["strikes_remaining"] == 3
        assert data["next_session"]["start_at"] == "2026-03-02T06:00:00"
        assert notifier.of_type("program_enrolled")

    async def test_same_day_slots_rejected_by_schema(
        self, client: AsyncClient, seeded: None
    ) -> None:
        resp = await client.post(
            "/api/programs",
            headers=PARTICIPANT,
            json={
                "mentor_id": MENTOR_ID,
                "slot1": {"day_of_week": 1, "time": "06:00"},
                "slot2": {"day_of_week": 1, "time": "07:00"},
            },
        )
        assert resp.status_code == 422

    async def test_already_enrolled(self, client: AsyncClient, seeded: None) -> None:
        await _enroll(client)
        resp = await client.post(
            "/api/programs",
            headers=PARTICIPANT,
            json={
                "mentor_id": MENTOR_ID,
                "slot1": {"day_of_week": 2, "time": "07:00"},
                "slot2": {"day_of_week": 5, "time": "07:00"},
            },
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "ACTIVE_ENROLLMENT_EXISTS"

    async def test_slot_held_by_someone_else(self, client: AsyncClient, seeded: None) -> None:
        await _enroll(client)
        resp = await client.post(
            "/api/programs",
            headers=OTHER_PARTICIPANT,
            json={"mentor_id": MENTOR_ID, **SLOTS},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "MENTOR_SLOT_TAKEN"

    async def test_subscription(self, client: AsyncClient, seeded: None) -> None:
        async with test_session() as session:
            await add_discipline_week(session)
        resp = await client.post(
            "/api/subscriptions", headers=PARTICIPANT, json={"mentor_id": MENTOR_ID, **SLOTS}
        )
        assert resp.status_code == 201
        assert resp.json()["commitment"]["kind"] == "DISCIPLINE_SUBSCRIPTION"
        assert resp.json()["commitment"]["end_date"] == "2026-06-30"

    async def test_my_commitments(self, client: AsyncClient, seeded: None) -> None:
        await _enroll(client, total_weeks=2)
        resp = await client.get("/api/commitments/me", headers=PARTICIPANT)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["commitment"]["total_weeks"] == 2
        assert data[0]["sessions_attended"] == 0
        assert data[0]["next_session"]["start_at"] == "2026-03-02T06:00:00"

        resp = await client.get("/api/commitments/me", headers=OTHER_PARTICIPANT)
        assert resp.json() == []


class TestAttendanceFlow:
    async def test_three_strikes(self, client: AsyncClient, seeded: None, clock: FrozenClock) -> None:
        data = await _enroll(client)
        first_id = data["next_session"]["id"]
        clock.advance(days=30)

        for offset, expected in ((0, ("ACTIVE", 2)), (1, ("ACTIVE", 1)), (2, ("SUSPENDED", 0))):
            resp = await client.post(
                f"/api/bookings/{first_id + offset}/attendance",
                headers=MENTOR,
                json={"present": False},
            )
            assert resp.status_code == 200, resp.text
            body = resp.json()
            assert (body["enrollment_status"], body["strikes_remaining"]) == expected

        assert body["cancelled_sessions"] == 31
        resp = await client.get("/api/commitments/me", headers=PARTICIPANT)
        assert resp.json() == []

    async def test_mark_twice(self, client: AsyncClient, seeded: None, clock: FrozenClock) -> None:
        data = await _enroll(client)
        booking_id = data["next_session"]["id"]
        clock.advance(hours=3)
        url = f"/api/bookings/{booking_id}/attendance"
        assert (await client.post(url, headers=MENTOR, json={"present": True})).status_code == 200
        resp = await client.post(url, headers=MENTOR, json={"present": False})
        assert resp.status_code == 409
        assert resp.json()["code"] == "ATTENDANCE_ALREADY_RECORDED"

    async def test_participant_cannot_mark(self, client: AsyncClient, seeded: None) -> None:
        data = await _enroll(client)
        resp = await client.post(
            f"/api/bookings/{data['next_session']['id']}/attendance",
            headers=PARTICIPANT,
            json={"present": True},
        )
        assert resp.status_code == 403


class TestLifecycle:
    async def test_reschedule(self, client: AsyncClient, seeded: None) -> None:
        data = await _enroll(client, total_weeks=3)
        resp = await client.post(
            f"/api/commitments/{data['commitment']['id']}/reschedule",
            headers=PARTICIPANT,
            json={
                "slot1": {"day_of_week": 2, "time": "07:00"},
                "slot2": {"day_of_week": 5, "time": "07:15"},
            },
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["sessions_created"] == 6
        assert body["commitment"]["day1"] == 2
        assert body["next_session"]["start_at"] == "2026-03-03T07:00:00"

    async def test_withdraw(self, client: AsyncClient, seeded: None) -> None:
        data = await _enroll(client)
        url = f"/api/commitments/{data['commitment']['id']}/withdraw"
        resp = await client.post(url, headers=OTHER_PARTICIPANT)
        assert resp.status_code == 403
        resp = await client.post(url, headers=PARTICIPANT)
        assert resp.status_code == 200
        assert resp.json()["status"] == "DROPPED"

    async def test_graduate(self, client: AsyncClient, seeded: None, clock: FrozenClock) -> None:
        data = await _enroll(client, total_weeks=1)
        clock.advance(weeks=2)
        assert (await client.post("/api/commitments/graduate", headers=MENTOR)).status_code == 403
        resp = await client.post("/api/commitments/graduate", headers=ADMIN)
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()] == [data["commitment"]["id"]]
        assert resp.json()[0]["status"] == "GRADUATED"

    async def test_unknown_commitment(self, client: AsyncClient, seeded: None) -> None:
        resp = await client.post("/api/commitments/999/withdraw", headers=PARTICIPANT)
        assert resp.status_code == 404
        assert resp.json()["code"] == "COMMITMENT_NOT_FOUND"
