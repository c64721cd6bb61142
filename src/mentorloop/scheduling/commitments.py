"""Recurring commitments: strike policy and lifecycle shared by programs and subscriptions."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.errors import InvalidTransitionError, NotFoundError
from mentorloop.models.booking import Booking
from mentorloop.models.commitment import RecurringCommitment
from mentorloop.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    Attendance,
    BookingStatus,
    CommitmentKind,
    CommitmentStatus,
)
from mentorloop.principal import AuthenticatedPrincipal, ensure_acts_for
from mentorloop.scheduling.collaborators import BOOKING_CANCELLED, Notifier

logger = logging.getLogger(__name__)


class AttendancePolicy(ABC):
    """Decides what an absence does to a recurring commitment."""

    @abstractmethod
    def register_absence(self, commitment: RecurringCommitment) -> bool:
        """Record one absence; return True if the commitment must be suspended."""
        ...


class StrikePolicy(AttendancePolicy):
    """N strikes and out, N taken from the commitment's ``max_missed_allowed``."""

    def register_absence(self, commitment: RecurringCommitment) -> bool:
        commitment.missed_calls_count += 1
        return commitment.missed_calls_count >= commitment.max_missed_allowed


POLICIES: dict[CommitmentKind, AttendancePolicy] = {
    CommitmentKind.PROGRAM: StrikePolicy(),
    CommitmentKind.DISCIPLINE_SUBSCRIPTION: StrikePolicy(),
}


def policy_for(commitment: RecurringCommitment) -> AttendancePolicy:
    return POLICIES[commitment.kind]


async def get_commitment(session: AsyncSession, commitment_id: int) -> RecurringCommitment:
    commitment = await session.get(RecurringCommitment, commitment_id)
    if commitment is None:
        raise NotFoundError(
            f"Commitment {commitment_id} not found", code="COMMITMENT_NOT_FOUND"
        )
    return commitment


async def active_commitment(
    session: AsyncSession, participant_id: int, kind: CommitmentKind
) -> RecurringCommitment | None:
    result = await session.execute(
        select(RecurringCommitment).where(
            RecurringCommitment.participant_id == participant_id,
            RecurringCommitment.kind == kind,
            RecurringCommitment.status == CommitmentStatus.ACTIVE,
        )
    )
    return result.scalars().first()


async def cancel_remaining_sessions(
    session: AsyncSession,
    commitment: RecurringCommitment,
    reason: str,
    after: datetime | None = None,
) -> list[Booking]:
    """Cancel every undecided active session of a commitment (optionally only after ``after``).

    Does not commit.
    """
    stmt = select(Booking).where(
        Booking.commitment_id == commitment.id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.attendance == Attendance.PENDING,
    )
    if after is not None:
        stmt = stmt.where(Booking.start_at > after)
    result = await session.execute(stmt.order_by(Booking.start_at))
    bookings = list(result.scalars().all())
    for booking in bookings:
        booking.status = BookingStatus.CANCELLED
        booking.cancel_reason = reason
    return bookings


async def next_session(
    session: AsyncSession, commitment_id: int, now: datetime
) -> Booking | None:
    result = await session.execute(
        select(Booking)
        .where(
            Booking.commitment_id == commitment_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.start_at > now,
        )
        .order_by(Booking.start_at)
        .limit(1)
    )
    return result.scalars().first()


async def withdraw_commitment(
    session: AsyncSession,
    commitment_id: int,
    principal: AuthenticatedPrincipal,
    now: datetime,
    notifier: Notifier,
) -> RecurringCommitment:
    """Participant leaves voluntarily: DROPPED, upcoming sessions cancelled."""
    commitment = await get_commitment(session, commitment_id)
    ensure_acts_for(principal, commitment.participant_id)
    if commitment.status != CommitmentStatus.ACTIVE:
        raise InvalidTransitionError(
            f"Only active commitments can be withdrawn (status is {commitment.status.value})"
        )

    cancelled = await cancel_remaining_sessions(session, commitment, "withdrawn", after=now)
    commitment.status = CommitmentStatus.DROPPED
    commitment.status_reason = "withdrawn by participant"
    commitment.end_date = now.date()
    await session.commit()

    logger.info(
        "Commitment %s dropped; %d upcoming session(s) cancelled", commitment.id, len(cancelled)
    )
    if cancelled:
        await notifier.notify(
            commitment.mentor_id,
            BOOKING_CANCELLED,
            {
                "commitment_id": commitment.id,
                "booking_ids": [b.id for b in cancelled],
                "reason": "withdrawn",
            },
        )
    return commitment


async def graduate_finished(session: AsyncSession, now: datetime) -> list[RecurringCommitment]:
    """Close every active commitment whose end date has been reached."""
    result = await session.execute(
        select(RecurringCommitment).where(
            RecurringCommitment.status == CommitmentStatus.ACTIVE,
            RecurringCommitment.end_date <= now.date(),
        )
    )
    finished = list(result.scalars().all())
    for commitment in finished:
        commitment.status = CommitmentStatus.GRADUATED
        commitment.status_reason = "end date reached"
    await session.commit()
    if finished:
        logger.info("Graduated %d commitment(s)", len(finished))
    return finished


@dataclass
class CommitmentSummary:
    commitment: RecurringCommitment
    next_session: Booking | None
    sessions_attended: int
    sessions_missed: int


async def participant_commitments(
    session: AsyncSession, participant_id: int, now: datetime
) -> list[CommitmentSummary]:
    """Active commitments of a participant with their progress and next session."""
    result = await session.execute(
        select(RecurringCommitment)
        .where(
            RecurringCommitment.participant_id == participant_id,
            RecurringCommitment.status == CommitmentStatus.ACTIVE,
        )
        .order_by(RecurringCommitment.start_date)
    )
    summaries = []
    for commitment in result.scalars().all():
        bookings = await session.execute(
            select(Booking.attendance).where(Booking.commitment_id == commitment.id)
        )
        marks = list(bookings.scalars().all())
        summaries.append(
            CommitmentSummary(
                commitment=commitment,
                next_session=await next_session(session, commitment.id, now),
                sessions_attended=marks.count(Attendance.PRESENT),
                sessions_missed=marks.count(Attendance.ABSENT),
            )
        )
    return summaries
