"""Attendance state machine: PENDING -> PRESENT | ABSENT, once per session."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import get_settings
from mentorloop.errors import (
    AttendanceAlreadyRecordedError,
    InvalidTransitionError,
    PolicyViolationError,
)
from mentorloop.models.booking import Booking
from mentorloop.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    Attendance,
    BookingStatus,
    CommitmentStatus,
)
from mentorloop.principal import AuthenticatedPrincipal, ensure_mentor_of
from mentorloop.scheduling.collaborators import COMMITMENT_SUSPENDED, Notifier, RewardLedger
from mentorloop.scheduling.commitments import (
    cancel_remaining_sessions,
    get_commitment,
    policy_for,
)
from mentorloop.scheduling.locks import TimelineLocks, mentor_key, timeline_locks
from mentorloop.scheduling.reservations import get_booking

logger = logging.getLogger(__name__)


@dataclass
class AttendanceOutcome:
    booking: Booking
    enrollment_status: CommitmentStatus | None = None
    strikes_remaining: int | None = None
    missed_calls_count: int | None = None
    cancelled_booking_ids: list[int] = field(default_factory=list)
    suspended: bool = False  # suspended by this very absence


async def record_attendance(
    session: AsyncSession,
    booking_id: int,
    present: bool,
    principal: AuthenticatedPrincipal,
    now: datetime,
    notifier: Notifier,
    rewards: RewardLedger,
    locks: TimelineLocks = timeline_locks,
) -> AttendanceOutcome:
    """Mark a session attended or missed.

    An absence counts as a strike against the session's commitment; reaching
    the commitment's limit suspends it and cancels every remaining session.
    Marking a session twice is rejected.
    """
    booking = await get_booking(session, booking_id)
    ensure_mentor_of(principal, booking.mentor_id)

    async with locks.hold(mentor_key(booking.mentor_id)):
        await session.refresh(booking)
        if booking.attendance != Attendance.PENDING:
            raise AttendanceAlreadyRecordedError(
                f"Attendance for booking {booking.id} was already recorded "
                f"as {booking.attendance.value}",
                details={"attendance": booking.attendance.value},
            )
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise InvalidTransitionError(
                f"Attendance cannot be recorded for a {booking.status.value.lower()} booking"
            )
        if booking.expires_at is not None and booking.expires_at <= now:
            # an unconfirmed request lapses at its deadline, never later than its start
            booking.status = BookingStatus.EXPIRED
            await session.commit()
            raise InvalidTransitionError("The request expired before it was confirmed")
        if now < booking.start_at:
            raise PolicyViolationError(
                "Attendance can only be recorded once the session has started",
                code="SESSION_NOT_STARTED",
            )

        booking.attendance = Attendance.PRESENT if present else Attendance.ABSENT
        booking.status = BookingStatus.COMPLETED
        booking.completed_at = now
        outcome = AttendanceOutcome(booking=booking)

        if booking.commitment_id is not None:
            commitment = await get_commitment(session, booking.commitment_id)
            if not present and commitment.status == CommitmentStatus.ACTIVE:
                if policy_for(commitment).register_absence(commitment):
                    commitment.status = CommitmentStatus.SUSPENDED
                    commitment.status_reason = (
                        f"{commitment.missed_calls_count} missed calls "
                        f"(limit {commitment.max_missed_allowed})"
                    )
                    cancelled = await cancel_remaining_sessions(session, commitment, "suspended")
                    outcome.cancelled_booking_ids = [b.id for b in cancelled]
                    outcome.suspended = True
                commitment.updated_at = now
            outcome.enrollment_status = commitment.status
            outcome.strikes_remaining = commitment.strikes_remaining
            outcome.missed_calls_count = commitment.missed_calls_count

        await session.commit()

    logger.info(
        "Attendance for booking %s: %s (commitment=%s status=%s)",
        booking.id,
        booking.attendance.value,
        booking.commitment_id,
        outcome.enrollment_status.value if outcome.enrollment_status else None,
    )

    if present:
        await rewards.credit(
            booking.participant_id,
            get_settings().reward_points_attended,
            f"attended session {booking.id}",
        )
    if outcome.suspended:
        logger.warning(
            "Commitment %s suspended after %s missed calls; %d session(s) cancelled",
            booking.commitment_id,
            outcome.missed_calls_count,
            len(outcome.cancelled_booking_ids),
        )
        payload = {
            "commitment_id": booking.commitment_id,
            "missed_calls_count": outcome.missed_calls_count,
            "cancelled_sessions": len(outcome.cancelled_booking_ids),
        }
        await notifier.notify(booking.participant_id, COMMITMENT_SUSPENDED, payload)
        await notifier.notify(booking.mentor_id, COMMITMENT_SUSPENDED, payload)
    return outcome
