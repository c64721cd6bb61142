"""Booking API routes: reservations, request lifecycle, attendance."""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.api.deps import get_clock, get_notifier, get_principal, get_reward_ledger
from mentorloop.clock import Clock
from mentorloop.database import get_db
from mentorloop.errors import ValidationError
from mentorloop.models.booking import Booking
from mentorloop.models.enums import BookingStatus, Role
from mentorloop.principal import (
    AuthenticatedPrincipal,
    ensure_acts_for,
    ensure_admin,
    ensure_mentor_of,
)
from mentorloop.scheduling.attendance import record_attendance
from mentorloop.scheduling.collaborators import Notifier, RewardLedger
from mentorloop.scheduling.ledger import list_bookings
from mentorloop.scheduling.reservations import (
    cancel_booking,
    complete_booking,
    confirm_booking,
    expire_requests,
    reserve,
)
from mentorloop.schemas.booking import (
    AttendanceCreate,
    AttendanceRead,
    BookingCancel,
    BookingCreate,
    BookingRead,
)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingRead])
async def get_bookings(
    mentor_id: int | None = None,
    participant_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    status: BookingStatus | None = None,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> list[Booking]:
    """The caller's agenda.

    Mentors see their own schedule and participants their own sessions;
    admins may filter by any mentor or participant.
    """
    if principal.role == Role.MENTOR:
        mentor_id = mentor_id or principal.id
        ensure_mentor_of(principal, mentor_id)
    elif principal.role == Role.PARTICIPANT:
        participant_id = participant_id or principal.id
        ensure_acts_for(principal, participant_id)
    if start is not None and end is not None and start > end:
        raise ValidationError("end must not be before start", code="INVALID_DATE_RANGE")
    return await list_bookings(
        session, clock.now(), mentor_id, participant_id, start, end, status
    )


@router.post("", response_model=BookingRead, status_code=201)
async def create_booking(
    body: BookingCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> Booking:
    """Reserve a slot.

    Mentorship requests are created PENDING and must be confirmed by the
    mentor; discipline calls are confirmed straight away.
    """
    participant_id = body.participant_id or principal.id
    ensure_acts_for(principal, participant_id)
    return await reserve(
        session,
        body.mentor_id,
        participant_id,
        body.call_type,
        body.start_at,
        clock.now(),
        notifier,
        duration_minutes=body.duration_minutes,
        notes=body.notes,
    )


@router.post("/expire", response_model=list[BookingRead])
async def expire_pending_requests(
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> list[Booking]:
    ensure_admin(principal)
    return await expire_requests(session, clock.now(), notifier)


@router.post("/{booking_id}/confirm", response_model=BookingRead)
async def confirm(
    booking_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> Booking:
    return await confirm_booking(session, booking_id, principal, clock.now(), notifier)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel(
    booking_id: int,
    body: BookingCancel | None = None,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    notifier: Notifier = Depends(get_notifier),
) -> Booking:
    reason = body.reason if body else None
    return await cancel_booking(session, booking_id, principal, notifier, reason)


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete(
    booking_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    rewards: RewardLedger = Depends(get_reward_ledger),
) -> Booking:
    return await complete_booking(session, booking_id, principal, clock.now(), rewards)


@router.post("/{booking_id}/attendance", response_model=AttendanceRead)
async def mark_attendance(
    booking_id: int,
    body: AttendanceCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
    rewards: RewardLedger = Depends(get_reward_ledger),
) -> AttendanceRead:
    """Record whether the participant showed up.

    An absence counts against the session's program or subscription and may
    suspend it, cancelling every remaining session.
    """
    outcome = await record_attendance(
        session, booking_id, body.present, principal, clock.now(), notifier, rewards
    )
    return AttendanceRead(
        booking_id=outcome.booking.id,
        attendance=outcome.booking.attendance,
        enrollment_status=outcome.enrollment_status.value if outcome.enrollment_status else None,
        strikes_remaining=outcome.strikes_remaining,
        missed_calls_count=outcome.missed_calls_count,
        cancelled_sessions=len(outcome.cancelled_booking_ids),
    )
