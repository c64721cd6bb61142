"""Reservation transaction manager: the only way a single booking is written.

Every precondition is re-checked while holding the mentor's and the
participant's timeline locks, so an earlier slot read is never trusted.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import get_settings
from mentorloop.errors import (
    InvalidTransitionError,
    MentorSlotTakenError,
    NotFoundError,
    ParticipantTimeConflictError,
    PermissionDeniedError,
    PolicyViolationError,
    SchedulingError,
    ValidationError,
)
from mentorloop.models.availability import AvailabilityWindow
from mentorloop.models.booking import Booking
from mentorloop.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingKind,
    BookingStatus,
    CallType,
)
from mentorloop.models.user import User
from mentorloop.principal import AuthenticatedPrincipal, ensure_mentor_of
from mentorloop.scheduling.availability import (
    exceptions_intersecting,
    get_mentor,
    is_blacked_out,
    list_windows,
)
from mentorloop.scheduling.collaborators import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_EXPIRED,
    BOOKING_REQUESTED,
    Notifier,
    RewardLedger,
)
from mentorloop.scheduling.intervals import day_of_week, slot_minutes, within_window
from mentorloop.scheduling.ledger import (
    expire_stale_requests,
    find_mentor_conflict,
    find_participant_conflict,
    user_name,
)
from mentorloop.scheduling.locks import (
    TimelineLocks,
    mentor_key,
    participant_key,
    timeline_locks,
)

logger = logging.getLogger(__name__)


def normalize_duration(call_type: CallType, duration_minutes: int | None) -> int:
    """Apply the call type's duration policy to a requested duration."""
    settings = get_settings()
    if call_type == CallType.DISCIPLINE:
        fixed = settings.discipline_slot_minutes
        if duration_minutes not in (None, fixed):
            raise ValidationError(
                f"Discipline calls always last {fixed} minutes", code="INVALID_DURATION"
            )
        return fixed
    if duration_minutes is None:
        return slot_minutes(call_type, settings)
    if not 0 < duration_minutes <= settings.max_session_minutes:
        raise ValidationError(
            f"Duration must be between 1 and {settings.max_session_minutes} minutes",
            code="INVALID_DURATION",
        )
    return duration_minutes


def fits_any_window(
    start_at: datetime, duration_minutes: int, windows: list[AvailabilityWindow]
) -> bool:
    dow = day_of_week(start_at.date())
    return any(
        w.day_of_week == dow and within_window(start_at, duration_minutes, w.start_time, w.end_time)
        for w in windows
    )


async def get_participant(session: AsyncSession, participant_id: int) -> User:
    participant = await session.get(User, participant_id)
    if participant is None or not participant.is_active:
        raise NotFoundError(
            f"Participant {participant_id} not found", code="PARTICIPANT_NOT_FOUND"
        )
    return participant


async def ensure_interval_free(
    session: AsyncSession,
    mentor_id: int,
    participant_id: int,
    start_at: datetime,
    duration_minutes: int,
    now: datetime,
) -> None:
    """Raise unless both timelines are free over ``[start_at, start_at + duration)``."""
    clash = await find_mentor_conflict(session, mentor_id, start_at, duration_minutes, now)
    if clash is not None:
        raise MentorSlotTakenError(
            details={"start_at": start_at.isoformat(), "conflicting_booking_id": clash.id}
        )
    clash = await find_participant_conflict(
        session, participant_id, start_at, duration_minutes, now
    )
    if clash is not None:
        raise ParticipantTimeConflictError(
            await user_name(session, clash.mentor_id),
            details={"start_at": start_at.isoformat(), "conflicting_booking_id": clash.id},
        )


async def commit_or_conflict(session: AsyncSession) -> None:
    """Commit, translating a lost uniqueness race into a slot-taken conflict."""
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning("Concurrent writer claimed the same start instant first")
        raise MentorSlotTakenError() from None


async def reserve(
    session: AsyncSession,
    mentor_id: int,
    participant_id: int,
    call_type: CallType,
    start_at: datetime,
    now: datetime,
    notifier: Notifier,
    duration_minutes: int | None = None,
    notes: str | None = None,
    locks: TimelineLocks = timeline_locks,
) -> Booking:
    """Reserve one interval for a participant with a mentor.

    Mentorship requests start PENDING with a confirmation deadline;
    discipline calls are CONFIRMED immediately.
    """
    duration = normalize_duration(call_type, duration_minutes)
    if start_at.second or start_at.microsecond:
        raise ValidationError("Start time must be minute-aligned", code="INVALID_START")
    if mentor_id == participant_id:
        raise ValidationError("Mentors cannot book themselves", code="SELF_BOOKING")
    if start_at <= now:
        raise PolicyViolationError("Sessions cannot be booked in the past", code="START_IN_PAST")

    async with locks.hold(mentor_key(mentor_id), participant_key(participant_id)):
        try:
            await get_mentor(session, mentor_id)
            await get_participant(session, participant_id)
            await expire_stale_requests(session, now, mentor_id, participant_id)

            day = start_at.date()
            if is_blacked_out(day, await exceptions_intersecting(session, mentor_id, day, day)):
                raise PolicyViolationError(
                    f"Mentor is unavailable on {day.isoformat()}", code="MENTOR_UNAVAILABLE"
                )
            if call_type == CallType.DISCIPLINE:
                windows = await list_windows(session, mentor_id, CallType.DISCIPLINE)
                if not fits_any_window(start_at, duration, windows):
                    raise PolicyViolationError(
                        "Discipline calls must fall inside the mentor's discipline availability",
                        code="OUTSIDE_AVAILABILITY",
                    )

            await ensure_interval_free(session, mentor_id, participant_id, start_at, duration, now)

            if call_type == CallType.MENTORSHIP:
                ttl = timedelta(hours=get_settings().mentorship_request_ttl_hours)
                booking = Booking(
                    kind=BookingKind.MENTORSHIP_REQUEST,
                    status=BookingStatus.PENDING,
                    expires_at=min(now + ttl, start_at),
                )
            else:
                booking = Booking(kind=BookingKind.CALL_BOOKING, status=BookingStatus.CONFIRMED)
            booking.call_type = call_type
            booking.mentor_id = mentor_id
            booking.participant_id = participant_id
            booking.start_at = start_at
            booking.duration_minutes = duration
            booking.notes = notes
            booking.created_at = now
            session.add(booking)
            await commit_or_conflict(session)
        except SchedulingError:
            await session.rollback()
            raise

    await session.refresh(booking)
    logger.info(
        "Reserved %s booking %s: mentor=%s participant=%s at %s (%d min)",
        call_type.value,
        booking.id,
        mentor_id,
        participant_id,
        start_at,
        duration,
    )
    await notifier.notify(
        mentor_id,
        BOOKING_REQUESTED,
        {"booking_id": booking.id, "participant_id": participant_id, "start_at": start_at.isoformat()},
    )
    return booking


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
    return booking


async def confirm_booking(
    session: AsyncSession,
    booking_id: int,
    principal: AuthenticatedPrincipal,
    now: datetime,
    notifier: Notifier,
) -> Booking:
    """Mentor accepts a pending request before its deadline."""
    booking = await get_booking(session, booking_id)
    ensure_mentor_of(principal, booking.mentor_id)
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransitionError(
            f"Only pending bookings can be confirmed (booking is {booking.status.value})"
        )
    if booking.expires_at is not None and booking.expires_at <= now:
        booking.status = BookingStatus.EXPIRED
        await session.commit()
        raise InvalidTransitionError("The request expired before it was confirmed")

    booking.status = BookingStatus.CONFIRMED
    booking.expires_at = None
    await session.commit()
    await notifier.notify(
        booking.participant_id,
        BOOKING_CONFIRMED,
        {"booking_id": booking.id, "start_at": booking.start_at.isoformat()},
    )
    return booking


async def cancel_booking(
    session: AsyncSession,
    booking_id: int,
    principal: AuthenticatedPrincipal,
    notifier: Notifier,
    reason: str | None = None,
) -> Booking:
    """Either party (or an admin) withdraws an active booking."""
    booking = await get_booking(session, booking_id)
    if not principal.is_admin and principal.id not in (booking.mentor_id, booking.participant_id):
        raise PermissionDeniedError("Only the mentor or the participant can cancel this booking")
    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise InvalidTransitionError(
            f"Only active bookings can be cancelled (booking is {booking.status.value})"
        )

    booking.status = BookingStatus.CANCELLED
    booking.cancel_reason = reason
    await session.commit()

    counterpart = (
        booking.participant_id if principal.id == booking.mentor_id else booking.mentor_id
    )
    await notifier.notify(
        counterpart,
        BOOKING_CANCELLED,
        {"booking_id": booking.id, "start_at": booking.start_at.isoformat(), "reason": reason},
    )
    return booking


async def complete_booking(
    session: AsyncSession,
    booking_id: int,
    principal: AuthenticatedPrincipal,
    now: datetime,
    rewards: RewardLedger,
) -> Booking:
    """Mentor closes a confirmed mentorship request once it has taken place."""
    booking = await get_booking(session, booking_id)
    ensure_mentor_of(principal, booking.mentor_id)
    if booking.kind != BookingKind.MENTORSHIP_REQUEST:
        raise InvalidTransitionError("Call bookings are closed by recording attendance")
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidTransitionError(
            f"Only confirmed sessions can be completed (booking is {booking.status.value})"
        )
    if booking.start_at > now:
        raise PolicyViolationError(
            "A session cannot be completed before it starts", code="SESSION_NOT_STARTED"
        )

    booking.status = BookingStatus.COMPLETED
    booking.completed_at = now
    await session.commit()
    await rewards.credit(
        booking.participant_id,
        get_settings().reward_points_mentorship,
        f"mentorship session {booking.id} completed",
    )
    return booking


async def expire_requests(
    session: AsyncSession, now: datetime, notifier: Notifier
) -> list[Booking]:
    """Sweep every overdue pending request to EXPIRED and tell the participants."""
    stale = await expire_stale_requests(session, now)
    await session.commit()
    for booking in stale:
        await notifier.notify(
            booking.participant_id,
            BOOKING_EXPIRED,
            {"booking_id": booking.id, "start_at": booking.start_at.isoformat()},
        )
    return stale
