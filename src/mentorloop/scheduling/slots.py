"""Slot resolution: free bookable instants for a mentor, call type and date range.

Read-only. Composes weekly windows, blackout exceptions and the booking
ledger; the reservation path re-validates everything it relies on.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import get_settings
from mentorloop.errors import ValidationError
from mentorloop.models.enums import CallType
from mentorloop.scheduling.availability import (
    exceptions_intersecting,
    get_mentor,
    is_blacked_out,
    list_windows,
)
from mentorloop.scheduling.intervals import (
    candidate_starts,
    day_of_week,
    iter_dates,
    overlaps,
    slot_label,
    slot_minutes,
)
from mentorloop.scheduling.ledger import (
    active_bookings_for_mentor,
    active_bookings_for_participant,
)

logger = logging.getLogger(__name__)

NO_AVAILABILITY = "NO_AVAILABILITY"
NO_FREE_SLOTS = "NO_FREE_SLOTS"


@dataclass
class Slot:
    instant: datetime
    label: str
    duration_minutes: int


@dataclass
class SlotResolution:
    mentor_id: int
    call_type: CallType
    start_date: date
    end_date: date
    slots: list[Slot] = field(default_factory=list)
    reason: str | None = None
    message: str | None = None


def month_range(month: str) -> tuple[date, date]:
    """``YYYY-MM`` to the first and last day of that month."""
    try:
        year, mon = (int(part) for part in month.split("-"))
        first = date(year, mon, 1)
    except ValueError:
        raise ValidationError(
            f"Invalid month {month!r} (expected YYYY-MM)", code="INVALID_MONTH"
        ) from None
    next_first = date(year + mon // 12, mon % 12 + 1, 1)
    return first, next_first - timedelta(days=1)


def validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError("end must not be before start", code="INVALID_DATE_RANGE")
    max_days = get_settings().max_slot_range_days
    if (end_date - start_date).days + 1 > max_days:
        raise ValidationError(
            f"Date range may span at most {max_days} days", code="DATE_RANGE_TOO_LONG"
        )


async def resolve_slots(
    session: AsyncSession,
    mentor_id: int,
    call_type: CallType,
    start_date: date,
    end_date: date,
    now: datetime,
    participant_id: int | None = None,
) -> SlotResolution:
    """Compute the mentor's free slots of ``call_type`` between two dates (inclusive).

    A date inside any blackout exception yields nothing, regardless of the
    weekly pattern. Candidates in the past, or whose interval overlaps an
    active booking of either kind, are dropped. When ``participant_id`` is
    given, that participant's own active bookings are excluded as well.
    """
    validate_range(start_date, end_date)
    await get_mentor(session, mentor_id)
    resolution = SlotResolution(
        mentor_id=mentor_id, call_type=call_type, start_date=start_date, end_date=end_date
    )

    windows = await list_windows(session, mentor_id, call_type)
    if not windows:
        resolution.reason = NO_AVAILABILITY
        resolution.message = f"Mentor has no {call_type.value.lower()} availability configured"
        return resolution

    exceptions = await exceptions_intersecting(session, mentor_id, start_date, end_date)
    range_start = datetime.combine(start_date, time.min)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min)
    busy = [
        (b.start_at, b.end_at)
        for b in await active_bookings_for_mentor(session, mentor_id, range_start, range_end, now)
    ]
    if participant_id is not None:
        busy.extend(
            (b.start_at, b.end_at)
            for b in await active_bookings_for_participant(
                session, participant_id, range_start, range_end, now
            )
        )

    step = slot_minutes(call_type)
    duration = timedelta(minutes=step)
    for day in iter_dates(start_date, end_date):
        if is_blacked_out(day, exceptions):
            continue
        dow = day_of_week(day)
        for window in windows:
            if window.day_of_week != dow:
                continue
            for instant in candidate_starts(day, window.start_time, window.end_time, step):
                if instant <= now:
                    continue
                end = instant + duration
                if any(overlaps(instant, end, b_start, b_end) for b_start, b_end in busy):
                    continue
                resolution.slots.append(Slot(instant, slot_label(instant), step))

    resolution.slots.sort(key=lambda s: s.instant)
    if not resolution.slots:
        resolution.reason = NO_FREE_SLOTS
        resolution.message = "No free slots in the requested range"
    logger.debug(
        "Resolved %d %s slots for mentor %s between %s and %s",
        len(resolution.slots),
        call_type.value,
        mentor_id,
        start_date,
        end_date,
    )
    return resolution
