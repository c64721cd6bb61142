"""Availability and exception stores: weekly windows and date-range blackouts."""

import logging
from collections import defaultdict
from datetime import date, datetime, time

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import Settings, get_settings
from mentorloop.errors import (
    AvailabilityInUseError,
    ExceptionOverlapsBookingsError,
    NotFoundError,
    PolicyViolationError,
    ValidationError,
)
from mentorloop.models.availability import AvailabilityException, AvailabilityWindow
from mentorloop.models.booking import Booking
from mentorloop.models.enums import ACTIVE_BOOKING_STATUSES, BookingStatus, CallType, Role
from mentorloop.models.user import User
from mentorloop.scheduling.collaborators import BOOKING_CANCELLED, Notifier
from mentorloop.scheduling.intervals import (
    DAY_NAMES,
    day_of_week,
    minutes_of,
    validate_day_of_week,
)
from mentorloop.scheduling.ledger import user_name
from mentorloop.scheduling.locks import TimelineLocks, mentor_key, timeline_locks
from mentorloop.schemas.availability import WindowSpec

logger = logging.getLogger(__name__)


async def get_mentor(session: AsyncSession, mentor_id: int) -> User:
    mentor = await session.get(User, mentor_id)
    if mentor is None or mentor.role != Role.MENTOR or not mentor.is_active:
        raise NotFoundError(f"Mentor {mentor_id} not found", code="MENTOR_NOT_FOUND")
    return mentor


def validate_windows(
    call_type: CallType,
    windows: list[WindowSpec],
    only_day: int | None = None,
    settings: Settings | None = None,
) -> None:
    """Check a full replacement set before anything is written."""
    settings = settings or get_settings()
    by_day: dict[int, list[WindowSpec]] = defaultdict(list)
    for w in windows:
        validate_day_of_week(w.day_of_week)
        if w.start_time >= w.end_time:
            raise ValidationError(
                f"Window {w.start_time:%H:%M}-{w.end_time:%H:%M} must start before it ends",
                code="INVALID_WINDOW",
            )
        if only_day is not None and w.day_of_week != only_day:
            raise ValidationError(
                f"Window for {DAY_NAMES[w.day_of_week]} sent while replacing "
                f"{DAY_NAMES[only_day]}",
                code="INVALID_WINDOW",
            )
        if call_type == CallType.DISCIPLINE and (
            w.start_time < settings.discipline_window_start
            or w.end_time > settings.discipline_window_end
        ):
            raise PolicyViolationError(
                f"Discipline windows must lie within "
                f"{settings.discipline_window_start:%H:%M}-{settings.discipline_window_end:%H:%M}",
                code="DISCIPLINE_WINDOW_OUT_OF_BOUNDS",
                details={"start_time": f"{w.start_time:%H:%M}", "end_time": f"{w.end_time:%H:%M}"},
            )
        by_day[w.day_of_week].append(w)

    for day, day_windows in by_day.items():
        day_windows.sort(key=lambda w: w.start_time)
        for prev, cur in zip(day_windows, day_windows[1:]):
            if cur.start_time < prev.end_time:
                raise ValidationError(
                    f"Windows on {DAY_NAMES[day]} overlap "
                    f"({prev.start_time:%H:%M}-{prev.end_time:%H:%M} and "
                    f"{cur.start_time:%H:%M}-{cur.end_time:%H:%M})",
                    code="OVERLAPPING_WINDOWS",
                )


async def replace_windows(
    session: AsyncSession,
    mentor_id: int,
    call_type: CallType,
    windows: list[WindowSpec],
    only_day: int | None = None,
) -> list[AvailabilityWindow]:
    """Replace the mentor's whole window set for a call type (or for one day of it)."""
    validate_windows(call_type, windows, only_day)
    await get_mentor(session, mentor_id)

    stmt = delete(AvailabilityWindow).where(
        AvailabilityWindow.mentor_id == mentor_id,
        AvailabilityWindow.call_type == call_type,
    )
    if only_day is not None:
        stmt = stmt.where(AvailabilityWindow.day_of_week == only_day)
    await session.execute(stmt)

    rows = []
    for w in windows:
        row = AvailabilityWindow(
            mentor_id=mentor_id,
            call_type=call_type,
            day_of_week=w.day_of_week,
            start_time=w.start_time,
            end_time=w.end_time,
            is_active=True,
        )
        session.add(row)
        rows.append(row)

    await session.commit()
    logger.info(
        "Replaced %s windows for mentor %s (day=%s): %d windows",
        call_type.value,
        mentor_id,
        only_day,
        len(rows),
    )
    return await list_windows(session, mentor_id, call_type)


async def list_windows(
    session: AsyncSession,
    mentor_id: int,
    call_type: CallType | None = None,
    active_only: bool = True,
) -> list[AvailabilityWindow]:
    stmt = select(AvailabilityWindow).where(AvailabilityWindow.mentor_id == mentor_id)
    if call_type is not None:
        stmt = stmt.where(AvailabilityWindow.call_type == call_type)
    if active_only:
        stmt = stmt.where(AvailabilityWindow.is_active.is_(True))
    stmt = stmt.order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _starts_inside(booking: Booking, day: int, start: time, end: time) -> bool:
    begin = minutes_of(booking.start_at.time())
    return (
        day_of_week(booking.start_at.date()) == day
        and minutes_of(start) <= begin < minutes_of(end)
    )


async def get_window(session: AsyncSession, window_id: int) -> AvailabilityWindow:
    window = await session.get(AvailabilityWindow, window_id)
    if window is None:
        raise NotFoundError(f"Availability window {window_id} not found", code="WINDOW_NOT_FOUND")
    return window


async def delete_window(
    session: AsyncSession,
    window_id: int,
    now: datetime,
    locks: TimelineLocks = timeline_locks,
) -> None:
    """Delete a weekly window unless future active bookings still sit inside it."""
    window = await get_window(session, window_id)

    async with locks.hold(mentor_key(window.mentor_id)):
        result = await session.execute(
            select(Booking)
            .where(
                Booking.mentor_id == window.mentor_id,
                Booking.call_type == window.call_type,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_at >= now,
            )
            .order_by(Booking.start_at)
        )
        blocking = [
            b
            for b in result.scalars().all()
            if _starts_inside(b, window.day_of_week, window.start_time, window.end_time)
        ]
        if blocking:
            raise AvailabilityInUseError(
                f"{len(blocking)} upcoming booking(s) fall inside this window; "
                "cancel or move them before deleting it",
                details={"bookings": await _describe(session, blocking)},
            )

        await session.delete(window)
        await session.commit()
    logger.info("Deleted availability window %s of mentor %s", window_id, window.mentor_id)


async def _describe(session: AsyncSession, bookings: list[Booking]) -> list[dict[str, object]]:
    return [
        {
            "booking_id": b.id,
            "participant": await user_name(session, b.participant_id),
            "start_at": b.start_at.isoformat(),
            "status": b.status.value,
        }
        for b in bookings
    ]


async def create_exception(
    session: AsyncSession,
    mentor_id: int,
    start_date: date,
    end_date: date,
    reason: str,
    now: datetime,
    notifier: Notifier,
    description: str | None = None,
    cancel_sessions: bool = False,
    locks: TimelineLocks = timeline_locks,
) -> AvailabilityException:
    """Block out an inclusive date range.

    Active upcoming bookings inside the range make this a conflict, unless
    ``cancel_sessions`` is set, in which case they are cancelled together with
    the exception's creation and their participants are notified.
    """
    if start_date > end_date:
        raise ValidationError("end_date must not be before start_date", code="INVALID_DATE_RANGE")
    await get_mentor(session, mentor_id)

    async with locks.hold(mentor_key(mentor_id)):
        result = await session.execute(
            select(Booking)
            .where(
                Booking.mentor_id == mentor_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_at >= max(now, datetime.combine(start_date, time.min)),
                Booking.start_at <= datetime.combine(end_date, time.max),
            )
            .order_by(Booking.start_at)
        )
        affected = list(result.scalars().all())

        if affected and not cancel_sessions:
            raise ExceptionOverlapsBookingsError(
                f"There are {len(affected)} active session(s) in this period",
                details={
                    "require_confirmation": True,
                    "bookings": await _describe(session, affected),
                },
            )

        for booking in affected:
            booking.status = BookingStatus.CANCELLED
            booking.cancel_reason = f"Cancelled automatically: {reason}"

        exception = AvailabilityException(
            mentor_id=mentor_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            description=description,
            created_at=now,
        )
        session.add(exception)
        await session.commit()
    await session.refresh(exception)

    for booking in affected:
        await notifier.notify(
            booking.participant_id,
            BOOKING_CANCELLED,
            {"booking_id": booking.id, "start_at": booking.start_at.isoformat(), "reason": reason},
        )
    if affected:
        logger.info(
            "Exception %s for mentor %s cancelled %d session(s)",
            exception.id,
            mentor_id,
            len(affected),
        )
    return exception


async def list_exceptions(session: AsyncSession, mentor_id: int) -> list[AvailabilityException]:
    result = await session.execute(
        select(AvailabilityException)
        .where(AvailabilityException.mentor_id == mentor_id)
        .order_by(AvailabilityException.start_date.desc())
    )
    return list(result.scalars().all())


async def get_exception(session: AsyncSession, exception_id: int) -> AvailabilityException:
    exception = await session.get(AvailabilityException, exception_id)
    if exception is None:
        raise NotFoundError(f"Exception {exception_id} not found", code="EXCEPTION_NOT_FOUND")
    return exception


async def delete_exception(session: AsyncSession, exception_id: int) -> None:
    exception = await get_exception(session, exception_id)
    await session.delete(exception)
    await session.commit()


async def exceptions_intersecting(
    session: AsyncSession, mentor_id: int, start: date, end: date
) -> list[AvailabilityException]:
    """Exceptions whose inclusive range touches ``[start, end]``."""
    result = await session.execute(
        select(AvailabilityException).where(
            AvailabilityException.mentor_id == mentor_id,
            AvailabilityException.start_date <= end,
            AvailabilityException.end_date >= start,
        )
    )
    return list(result.scalars().all())


def is_blacked_out(day: date, exceptions: list[AvailabilityException]) -> bool:
    return any(e.start_date <= day <= e.end_date for e in exceptions)
