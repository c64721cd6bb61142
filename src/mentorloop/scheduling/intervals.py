"""Pure time and interval helpers shared by slot resolution and booking checks.

Day-of-week numbering everywhere in the service is 0=Sunday … 6=Saturday.
All intervals are half-open: ``[start, end)``.
"""

import re
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from mentorloop.config import Settings, get_settings
from mentorloop.errors import ValidationError
from mentorloop.models.enums import CallType

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True if ``[a_start, a_end)`` and ``[b_start, b_end)`` share any instant."""
    return a_start < b_end and b_start < a_end


def day_of_week(d: date) -> int:
    """Sunday-based weekday index for ``d``."""
    return (d.weekday() + 1) % 7


def validate_day_of_week(value: int) -> int:
    if not isinstance(value, int) or not 0 <= value <= 6:
        raise ValidationError(
            f"Invalid day of week {value!r} (expected 0-6, 0=Sunday)",
            code="INVALID_DAY_OF_WEEK",
        )
    return value


def parse_time(value: str | time) -> time:
    """Parse an ``HH:MM`` string (minute precision) into a ``time``."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(
            f"Invalid time {value!r} (expected HH:MM)",
            code="INVALID_TIME_FORMAT",
        )
    return time(int(match.group(1)), int(match.group(2)))


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every calendar date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def next_occurrence(start: date, target_dow: int, weeks_offset: int = 0) -> date:
    """First date on/after ``start`` falling on ``target_dow``, shifted by whole weeks."""
    days_until = (target_dow - day_of_week(start)) % 7
    return start + timedelta(days=days_until + weeks_offset * 7)


def slot_minutes(call_type: CallType, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if call_type == CallType.DISCIPLINE:
        return settings.discipline_slot_minutes
    return settings.mentorship_slot_minutes


def candidate_starts(
    day: date, window_start: time, window_end: time, step_minutes: int
) -> Iterator[datetime]:
    """Start instants stepping through a window; each slot fits entirely inside it."""
    current = datetime.combine(day, window_start)
    end = datetime.combine(day, window_end)
    step = timedelta(minutes=step_minutes)
    while current + step <= end:
        yield current
        current += step


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


def within_window(start: datetime, duration_minutes: int, window_start: time, window_end: time) -> bool:
    """True if ``[start, start + duration)`` lies inside the same-day window."""
    begin = minutes_of(start.time())
    return minutes_of(window_start) <= begin and begin + duration_minutes <= minutes_of(window_end)


def slot_label(instant: datetime) -> str:
    """Human-readable local label, e.g. ``Monday 02 Mar 2026, 06:15``."""
    return f"{DAY_NAMES[day_of_week(instant.date())]} {instant:%d %b %Y, %H:%M}"
