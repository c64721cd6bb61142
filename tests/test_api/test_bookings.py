"""Tests for slot and booking API endpoints."""

from datetime import time

from httpx import AsyncClient

from mentorloop.clock import FrozenClock
from mentorloop.models.enums import CallType, Role
from tests.conftest import (
    ADMIN,
    MENTOR,
    MENTOR_ID,
    OTHER_MENTOR_ID,
    OTHER_PARTICIPANT,
    OTHER_PARTICIPANT_ID,
    PARTICIPANT,
    PARTICIPANT_ID,
    RecordingNotifier,
    RecordingRewardLedger,
    add_discipline_week,
    add_window,
    headers,
    test_session,
)


async def _mentorship_windows() -> None:
    async with test_session() as session:
        await add_window(session, CallType.MENTORSHIP, 2, time(10, 0), time(12, 0))
        await add_window(
            session, CallType.MENTORSHIP, 2, time(10, 0), time(12, 0), mentor_id=OTHER_MENTOR_ID
        )


async def _request(client: AsyncClient, start_at: str = "2026-03-03T10:00:00", **extra) -> dict:  # type: ignore[no-untyped-def]
    resp = await client.post(
        "/api/bookings",
        headers=extra.pop("headers", PARTICIPANT),
        json={"mentor_id": extra.pop("mentor_id", MENTOR_ID), "call_type": "MENTORSHIP",
              "start_at": start_at, **extra},
    )
    return {"status": resp.status_code, "body": resp.json()}


class TestSlots:
    async def test_month_slots(self, client: AsyncClient, seeded: None) -> None:
        await _mentorship_windows()
        resp = await client.get(
            f"/api/mentors/{MENTOR_ID}/slots",
            headers=PARTICIPANT,
            params={"call_type": "MENTORSHIP", "month": "2026-03"},
        )
        assert resp.status_code == 200
        data = resp.json()
        # five Tuesdays in March 2026, two slots each
        assert len(data["slots"]) == 10
        assert data["slots"][0]["instant"] == "2026-03-03T10:00:00"
        assert data["slots"][0]["label"] == "Tuesday 03 Mar 2026, 10:00"
        assert data["reason"] is None

    async def test_defaults_to_current_month(self, client: AsyncClient, seeded: None) -> None:
        await _mentorship_windows()
        resp = await client.get(
            f"/api/mentors/{MENTOR_ID}/slots",
            headers=PARTICIPANT,
            params={"call_type": "MENTORSHIP"},
        )
        assert resp.json()["start_date"] == "2026-03-01"
        assert resp.json()["end_date"] == "2026-03-31"

    async def test_no_availability(self, client: AsyncClient, seeded: None) -> None:
        resp = await client.get(
            f"/api/mentors/{MENTOR_ID}/slots",
            headers=PARTICIPANT,
            params={"call_type": "DISCIPLINE", "start": "2026-03-02", "end": "2026-03-08"},
        )
        assert resp.status_code == 200
        assert resp.json()["slots"] == []
        assert resp.json()["reason"] == "NO_AVAILABILITY"

    async def test_booked_slot_disappears(self, client: AsyncClient, seeded: None) -> None:
        await _mentorship_windows()
        await _request(client)
        resp = await client.get(
            f"/api/mentors/{MENTOR_ID}/slots",
            headers=OTHER_PARTICIPANT,
            params={"call_type": "MENTORSHIP", "start": "2026-03-03", "end": "2026-03-03"},
        )
        assert [s["instant"] for s in resp.json()["slots"]] == ["2026-03-03T11:00:00"]

    async def test_bad_month(self, client: AsyncClient, seeded: None) -> None:
        resp = await client.get(
            f"/api/mentors/{MENTOR_ID}/slots",
            headers=PARTICIPANT,
            params={"call_type": "MENTORSHIP", "month": "2026-15"},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_MONTH"


class TestBookings:
    async def test_request_then_confirm(
        self, client: AsyncClient, seeded: None, notifier: RecordingNotifier
    ) -> None:
        created = await _request(client, notes="career advice")
        assert created["status"] == 201
        booking = created["body"]
        assert booking["status"] == "PENDING"
        assert booking["kind"] == "MENTORSHIP_REQUEST"
        assert booking["participant_id"] == PARTICIPANT_ID
        assert booking["notes"] == "career advice"

        resp = await client.post(f"/api/bookings/{booking['id']}/confirm", headers=MENTOR)
        assert resp.status_code == 200
        assert resp.json()["status"] == "CONFIRMED"
        assert [e[1] for e in notifier.events] == ["booking_requested", "booking_confirmed"]

    async def test_mentor_conflict(self, client: AsyncClient, seeded: None) -> None:
        await _request(client)
        second = await _request(client, headers=OTHER_PARTICIPANT)
        assert second["status"] == 409
        assert second["body"]["code"] == "MENTOR_SLOT_TAKEN"
        assert "suggestion" in second["body"]["details"]

    async def test_participant_conflict(self, client: AsyncClient, seeded: None) -> None:
        await _request(client, mentor_id=OTHER_MENTOR_ID)
        second = await _request(client)
        assert second["status"] == 409
        assert second["body"]["code"] == "PARTICIPANT_TIME_CONFLICT"
        assert "Bruno Mentor" in second["body"]["detail"]

    async def test_offset_start_is_stored_as_local_time(
        self, client: AsyncClient, seeded: None
    ) -> None:
        created = await _request(client, start_at="2026-03-03T16:00:00+00:00")
        assert created["status"] == 201
        assert created["body"]["start_at"] == "2026-03-03T10:00:00"

        clash = await _request(client, headers=OTHER_PARTICIPANT)
        assert clash["status"] == 409
        assert clash["body"]["code"] == "MENTOR_SLOT_TAKEN"

    async def test_booking_for_someone_else_denied(self, client: AsyncClient, seeded: None) -> None:
        created = await _request(client, headers=OTHER_PARTICIPANT, participant_id=PARTICIPANT_ID)
        assert created["status"] == 403

    async def test_admin_books_on_behalf(self, client: AsyncClient, seeded: None) -> None:
        created = await _request(client, headers=ADMIN, participant_id=PARTICIPANT_ID)
        assert created["status"] == 201
        assert created["body"]["participant_id"] == PARTICIPANT_ID

    async def test_discipline_booking(self, client: AsyncClient, seeded: None) -> None:
        async with test_session() as session:
            await add_discipline_week(session)
        resp = await client.post(
            "/api/bookings",
            headers=PARTICIPANT,
            json={"mentor_id": MENTOR_ID, "call_type": "DISCIPLINE", "start_at": "2026-03-03T06:00:00"},
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "CONFIRMED"
        assert resp.json()["duration_minutes"] == 15

    async def test_cancel(self, client: AsyncClient, seeded: None) -> None:
        booking = (await _request(client))["body"]
        resp = await client.post(
            f"/api/bookings/{booking['id']}/cancel", headers=PARTICIPANT, json={"reason": "ill"}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"
        assert resp.json()["cancel_reason"] == "ill"

        resp = await client.post(f"/api/bookings/{booking['id']}/cancel", headers=PARTICIPANT)
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_TRANSITION"

    async def test_complete_mentorship(
        self, client: AsyncClient, seeded: None, clock: FrozenClock, rewards: RecordingRewardLedger
    ) -> None:
        booking = (await _request(client))["body"]
        await client.post(f"/api/bookings/{booking['id']}/confirm", headers=MENTOR)
        clock.advance(days=2)
        resp = await client.post(f"/api/bookings/{booking['id']}/complete", headers=MENTOR)
        assert resp.status_code == 200
        assert resp.json()["status"] == "COMPLETED"
        assert rewards.credits[0][:2] == (PARTICIPANT_ID, 25)

    async def test_expire_sweep_is_admin_only(
        self, client: AsyncClient, seeded: None, clock: FrozenClock
    ) -> None:
        booking = (await _request(client))["body"]
        clock.advance(days=3)
        resp = await client.post("/api/bookings/expire", headers=MENTOR)
        assert resp.status_code == 403
        resp = await client.post("/api/bookings/expire", headers=ADMIN)
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == [booking["id"]]
        assert resp.json()[0]["status"] == "EXPIRED"

    async def test_missing_booking(self, client: AsyncClient, seeded: None) -> None:
        resp = await client.post("/api/bookings/999/confirm", headers=MENTOR)
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Booking 999 not found", "code": "BOOKING_NOT_FOUND"}

    async def test_wrong_mentor_cannot_confirm(self, client: AsyncClient, seeded: None) -> None:
        booking = (await _request(client))["body"]
        resp = await client.post(
            f"/api/bookings/{booking['id']}/confirm",
            headers=headers(OTHER_MENTOR_ID, Role.MENTOR),
        )
        assert resp.status_code == 403


class TestAgenda:
    async def test_participant_sees_only_own_sessions(
        self, client: AsyncClient, seeded: None
    ) -> None:
        mine = (await _request(client))["body"]
        await _request(client, start_at="2026-03-03T11:00:00", headers=OTHER_PARTICIPANT)

        resp = await client.get("/api/bookings", headers=PARTICIPANT)
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == [mine["id"]]

        resp = await client.get(
            "/api/bookings", headers=PARTICIPANT, params={"participant_id": OTHER_PARTICIPANT_ID}
        )
        assert resp.status_code == 403

    async def test_mentor_pending_requests_for_a_day(
        self, client: AsyncClient, seeded: None
    ) -> None:
        first = (await _request(client))["body"]
        second = (
            await _request(client, start_at="2026-03-03T11:00:00", headers=OTHER_PARTICIPANT)
        )["body"]
        await _request(client, start_at="2026-03-05T10:00:00")
        await client.post(f"/api/bookings/{second['id']}/confirm", headers=MENTOR)

        resp = await client.get(
            "/api/bookings",
            headers=MENTOR,
            params={"start": "2026-03-03", "end": "2026-03-03", "status": "PENDING"},
        )
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == [first["id"]]

        resp = await client.get("/api/bookings", headers=MENTOR)
        assert len(resp.json()) == 3

    async def test_mentor_cannot_read_another_agenda(
        self, client: AsyncClient, seeded: None
    ) -> None:
        resp = await client.get(
            "/api/bookings", headers=MENTOR, params={"mentor_id": OTHER_MENTOR_ID}
        )
        assert resp.status_code == 403

    async def test_admin_filters_by_participant(self, client: AsyncClient, seeded: None) -> None:
        await _request(client)
        await _request(client, mentor_id=OTHER_MENTOR_ID, start_at="2026-03-04T10:00:00")
        resp = await client.get(
            "/api/bookings", headers=ADMIN, params={"participant_id": PARTICIPANT_ID}
        )
        assert {b["mentor_id"] for b in resp.json()} == {MENTOR_ID, OTHER_MENTOR_ID}

    async def test_lapsed_request_listed_as_expired(
        self, client: AsyncClient, seeded: None, clock: FrozenClock
    ) -> None:
        await _request(client)
        clock.advance(days=3)
        resp = await client.get("/api/bookings", headers=PARTICIPANT)
        assert [b["status"] for b in resp.json()] == ["EXPIRED"]

    async def test_reversed_range(self, client: AsyncClient, seeded: None) -> None:
        resp = await client.get(
            "/api/bookings", headers=MENTOR, params={"start": "2026-03-05", "end": "2026-03-03"}
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_DATE_RANGE"
