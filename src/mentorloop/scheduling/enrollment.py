"""Program enrollment generator: deterministic multi-week batches of discipline calls.

A batch is all-or-nothing. Each generated instant must be unique within the
batch and must pass the same mentor/participant overlap check that a single
reservation goes through, inside the same transaction.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import get_settings
from mentorloop.errors import (
    DuplicateBatchInstantError,
    InvalidTransitionError,
    PolicyViolationError,
    SchedulingError,
    ValidationError,
)
from mentorloop.models.booking import Booking
from mentorloop.models.commitment import (
    DisciplineSubscription,
    ProgramEnrollment,
    RecurringCommitment,
)
from mentorloop.models.enums import (
    Attendance,
    BookingKind,
    BookingStatus,
    CallType,
    CommitmentKind,
    CommitmentStatus,
)
from mentorloop.principal import AuthenticatedPrincipal, ensure_acts_for
from mentorloop.scheduling.availability import get_mentor, list_windows
from mentorloop.scheduling.collaborators import (
    COMMITMENT_RESCHEDULED,
    PROGRAM_ENROLLED,
    Notifier,
)
from mentorloop.scheduling.commitments import (
    active_commitment,
    cancel_remaining_sessions,
    get_commitment,
    next_session,
)
from mentorloop.scheduling.intervals import (
    DAY_NAMES,
    next_occurrence,
    validate_day_of_week,
    within_window,
)
from mentorloop.scheduling.ledger import expire_stale_requests
from mentorloop.scheduling.locks import (
    TimelineLocks,
    mentor_key,
    participant_key,
    timeline_locks,
)
from mentorloop.scheduling.reservations import (
    commit_or_conflict,
    ensure_interval_free,
    get_participant,
)

logger = logging.getLogger(__name__)

MAX_WEEKS = 104


@dataclass(frozen=True)
class WeeklySlot:
    day_of_week: int  # 0=Sunday
    time: time

    def describe(self) -> str:
        return f"{DAY_NAMES[self.day_of_week]} {self.time:%H:%M}"


@dataclass
class EnrollmentResult:
    commitment: RecurringCommitment
    sessions_created: int
    next_session: Booking | None


def first_instant(now: datetime, slot: WeeklySlot) -> datetime:
    """Earliest occurrence of ``slot`` strictly after ``now``."""
    day = next_occurrence(now.date(), slot.day_of_week)
    instant = datetime.combine(day, slot.time)
    if instant <= now:
        instant += timedelta(weeks=1)
    return instant


def generate_schedule(
    now: datetime,
    slots: list[WeeklySlot],
    weeks: int,
    first_week_number: int = 1,
    until: date | None = None,
) -> list[tuple[int, datetime]]:
    """``(week_number, instant)`` pairs for every slot in each of ``weeks`` weeks.

    Raises DuplicateBatchInstantError if two generated instants coincide.
    """
    seen: set[datetime] = set()
    schedule: list[tuple[int, datetime]] = []
    for week in range(weeks):
        for slot in slots:
            instant = first_instant(now, slot) + timedelta(weeks=week)
            if until is not None and instant.date() >= until:
                continue
            if instant in seen:
                raise DuplicateBatchInstantError(
                    f"Duplicate date generated: {instant.isoformat()}",
                    details={"instant": instant.isoformat(), "week_number": first_week_number + week},
                )
            seen.add(instant)
            schedule.append((first_week_number + week, instant))
    schedule.sort(key=lambda item: item[1])
    return schedule


def validate_slots(slot1: WeeklySlot, slot2: WeeklySlot) -> None:
    validate_day_of_week(slot1.day_of_week)
    validate_day_of_week(slot2.day_of_week)
    if slot1.day_of_week == slot2.day_of_week:
        raise ValidationError("The two weekly slots must be on different days", code="SAME_DAY_SLOTS")


async def _ensure_slots_in_availability(
    session: AsyncSession, mentor_id: int, slots: list[WeeklySlot]
) -> None:
    windows = await list_windows(session, mentor_id, CallType.DISCIPLINE)
    duration = get_settings().discipline_slot_minutes
    for slot in slots:
        instant = datetime.combine(date.min, slot.time)
        if not any(
            w.day_of_week == slot.day_of_week
            and within_window(instant, duration, w.start_time, w.end_time)
            for w in windows
        ):
            raise PolicyViolationError(
                f"{slot.describe()} is outside the mentor's discipline availability",
                code="OUTSIDE_AVAILABILITY",
                details={"slot": slot.describe()},
            )


async def _write_sessions(
    session: AsyncSession,
    commitment: RecurringCommitment,
    schedule: list[tuple[int, datetime]],
    now: datetime,
) -> int:
    duration = get_settings().discipline_slot_minutes
    for _, instant in schedule:
        await ensure_interval_free(
            session, commitment.mentor_id, commitment.participant_id, instant, duration, now
        )
    for week_number, instant in schedule:
        session.add(
            Booking(
                kind=BookingKind.CALL_BOOKING,
                call_type=CallType.DISCIPLINE,
                mentor_id=commitment.mentor_id,
                participant_id=commitment.participant_id,
                start_at=instant,
                duration_minutes=duration,
                status=BookingStatus.PENDING,
                attendance=Attendance.PENDING,
                commitment_id=commitment.id,
                week_number=week_number,
                created_at=now,
            )
        )
    return len(schedule)


async def _create_commitment(
    session: AsyncSession,
    model: type[RecurringCommitment],
    kind: CommitmentKind,
    participant_id: int,
    mentor_id: int,
    slot1: WeeklySlot,
    slot2: WeeklySlot,
    total_weeks: int,
    end_date: date,
    now: datetime,
    notifier: Notifier,
    locks: TimelineLocks,
) -> EnrollmentResult:
    validate_slots(slot1, slot2)
    if not 1 <= total_weeks <= MAX_WEEKS:
        raise ValidationError(
            f"total_weeks must be between 1 and {MAX_WEEKS}", code="INVALID_TOTAL_WEEKS"
        )
    slots = [slot1, slot2]
    # Subscriptions are bounded by end_date rather than by a whole number of weeks
    until = end_date if kind == CommitmentKind.DISCIPLINE_SUBSCRIPTION else None
    schedule = generate_schedule(now, slots, total_weeks, until=until)
    end_date = max(end_date, schedule[-1][1].date() + timedelta(days=1))

    async with locks.hold(mentor_key(mentor_id), participant_key(participant_id)):
        try:
            await get_mentor(session, mentor_id)
            await get_participant(session, participant_id)
            if await active_commitment(session, participant_id, kind) is not None:
                raise PolicyViolationError(
                    "Participant already has an active commitment of this kind; "
                    "finish or withdraw from it first",
                    code="ACTIVE_ENROLLMENT_EXISTS",
                )
            await _ensure_slots_in_availability(session, mentor_id, slots)
            await expire_stale_requests(session, now, mentor_id, participant_id)

            commitment = model(
                participant_id=participant_id,
                mentor_id=mentor_id,
                start_date=now.date(),
                end_date=end_date,
                total_weeks=total_weeks,
                day1=slot1.day_of_week,
                time1=slot1.time,
                day2=slot2.day_of_week,
                time2=slot2.time,
                missed_calls_count=0,
                max_missed_allowed=get_settings().max_missed_allowed,
                status=CommitmentStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            session.add(commitment)
            await session.flush()
            created = await _write_sessions(session, commitment, schedule, now)
            await commit_or_conflict(session)
        except SchedulingError:
            await session.rollback()
            raise

    upcoming = await next_session(session, commitment.id, now)
    logger.info(
        "Created %s %s for participant %s with mentor %s: %d sessions (%s, %s)",
        kind.value,
        commitment.id,
        participant_id,
        mentor_id,
        created,
        slot1.describe(),
        slot2.describe(),
    )
    await notifier.notify(
        participant_id,
        PROGRAM_ENROLLED,
        {
            "commitment_id": commitment.id,
            "kind": kind.value,
            "sessions": created,
            "next_session": upcoming.start_at.isoformat() if upcoming else None,
        },
    )
    return EnrollmentResult(commitment=commitment, sessions_created=created, next_session=upcoming)


async def enroll_program(
    session: AsyncSession,
    participant_id: int,
    mentor_id: int,
    slot1: WeeklySlot,
    slot2: WeeklySlot,
    now: datetime,
    notifier: Notifier,
    total_weeks: int | None = None,
    locks: TimelineLocks = timeline_locks,
) -> EnrollmentResult:
    """Enroll a participant in an N-week program with two weekly discipline calls."""
    total_weeks = total_weeks or get_settings().program_default_weeks
    return await _create_commitment(
        session,
        ProgramEnrollment,
        CommitmentKind.PROGRAM,
        participant_id,
        mentor_id,
        slot1,
        slot2,
        total_weeks,
        now.date() + timedelta(weeks=total_weeks),
        now,
        notifier,
        locks,
    )


async def subscribe_discipline(
    session: AsyncSession,
    participant_id: int,
    mentor_id: int,
    slot1: WeeklySlot,
    slot2: WeeklySlot,
    now: datetime,
    notifier: Notifier,
    locks: TimelineLocks = timeline_locks,
) -> EnrollmentResult:
    """Two fixed weekly discipline calls for the configured number of days."""
    days = get_settings().subscription_days
    return await _create_commitment(
        session,
        DisciplineSubscription,
        CommitmentKind.DISCIPLINE_SUBSCRIPTION,
        participant_id,
        mentor_id,
        slot1,
        slot2,
        math.ceil(days / 7),
        now.date() + timedelta(days=days),
        now,
        notifier,
        locks,
    )


async def reschedule_commitment(
    session: AsyncSession,
    commitment_id: int,
    slot1: WeeklySlot,
    slot2: WeeklySlot,
    principal: AuthenticatedPrincipal,
    now: datetime,
    notifier: Notifier,
    mentor_id: int | None = None,
    locks: TimelineLocks = timeline_locks,
) -> EnrollmentResult:
    """Regenerate the remaining weeks on new weekly slots, optionally with a new mentor.

    Weeks already covered by attended sessions (two per week) are kept; every
    upcoming undecided session is cancelled and replaced.
    """
    validate_slots(slot1, slot2)
    commitment = await get_commitment(session, commitment_id)
    ensure_acts_for(principal, commitment.participant_id)
    if commitment.status != CommitmentStatus.ACTIVE:
        raise InvalidTransitionError(
            f"Only active commitments can be rescheduled (status is {commitment.status.value})"
        )

    target_mentor = mentor_id or commitment.mentor_id
    keys = {mentor_key(commitment.mentor_id), mentor_key(target_mentor)}
    async with locks.hold(*keys, participant_key(commitment.participant_id)):
        try:
            await get_mentor(session, target_mentor)
            await expire_stale_requests(session, now, target_mentor, commitment.participant_id)
            attended = await session.execute(
                select(Booking.id).where(
                    Booking.commitment_id == commitment.id,
                    Booking.attendance == Attendance.PRESENT,
                )
            )
            weeks_done = len(attended.scalars().all()) // 2
            weeks_left = commitment.total_weeks - weeks_done
            if weeks_left <= 0:
                raise PolicyViolationError(
                    "All weeks of this commitment are already complete", code="PROGRAM_COMPLETE"
                )
            await _ensure_slots_in_availability(session, target_mentor, [slot1, slot2])
            schedule = generate_schedule(
                now, [slot1, slot2], weeks_left, first_week_number=weeks_done + 1
            )

            cancelled = await cancel_remaining_sessions(
                session, commitment, "rescheduled", after=now
            )
            previous_mentor = commitment.mentor_id
            commitment.mentor_id = target_mentor
            commitment.day1, commitment.time1 = slot1.day_of_week, slot1.time
            commitment.day2, commitment.time2 = slot2.day_of_week, slot2.time
            commitment.end_date = max(commitment.end_date, schedule[-1][1].date() + timedelta(days=1))
            commitment.updated_at = now
            await session.flush()
            created = await _write_sessions(session, commitment, schedule, now)
            await commit_or_conflict(session)
        except SchedulingError:
            await session.rollback()
            raise

    upcoming = await next_session(session, commitment.id, now)
    logger.info(
        "Rescheduled commitment %s: %d cancelled, %d created (weeks %d-%d)",
        commitment.id,
        len(cancelled),
        created,
        weeks_done + 1,
        commitment.total_weeks,
    )
    payload = {
        "commitment_id": commitment.id,
        "sessions": created,
        "next_session": upcoming.start_at.isoformat() if upcoming else None,
    }
    await notifier.notify(commitment.participant_id, COMMITMENT_RESCHEDULED, payload)
    for mid in {previous_mentor, target_mentor}:
        await notifier.notify(mid, COMMITMENT_RESCHEDULED, payload)
    return EnrollmentResult(commitment=commitment, sessions_created=created, next_session=upcoming)
