"""Booking ledger queries: the single source of truth for reserved time."""

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from mentorloop.config import get_settings
from mentorloop.models.booking import Booking
from mentorloop.models.enums import ACTIVE_BOOKING_STATUSES, BookingKind, BookingStatus
from mentorloop.models.user import User
from mentorloop.scheduling.intervals import overlaps

logger = logging.getLogger(__name__)


def _is_active(now: datetime) -> tuple[ColumnElement[bool], ...]:
    """SQL filter for bookings that still occupy their interval at ``now``."""
    return (
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        or_(Booking.expires_at.is_(None), Booking.expires_at > now),
    )


async def _active_in_range(
    session: AsyncSession,
    column: InstrumentedAttribute[int],
    owner_id: int,
    start: datetime,
    end: datetime,
    now: datetime,
) -> list[Booking]:
    # Any booking starting up to one max-length session before ``start`` may
    # still reach into the range; the exact check happens in Python.
    lookback = timedelta(minutes=get_settings().max_session_minutes)
    stmt = (
        select(Booking)
        .where(
            column == owner_id,
            Booking.start_at >= start - lookback,
            Booking.start_at < end,
            *_is_active(now),
        )
        .order_by(Booking.start_at)
    )
    result = await session.execute(stmt)
    return [b for b in result.scalars().all() if overlaps(b.start_at, b.end_at, start, end)]


async def active_bookings_for_mentor(
    session: AsyncSession, mentor_id: int, start: datetime, end: datetime, now: datetime
) -> list[Booking]:
    """Active bookings (both kinds) whose interval intersects ``[start, end)``."""
    return await _active_in_range(session, Booking.mentor_id, mentor_id, start, end, now)


async def active_bookings_for_participant(
    session: AsyncSession, participant_id: int, start: datetime, end: datetime, now: datetime
) -> list[Booking]:
    return await _active_in_range(
        session, Booking.participant_id, participant_id, start, end, now
    )


async def find_mentor_conflict(
    session: AsyncSession, mentor_id: int, start: datetime, duration_minutes: int, now: datetime
) -> Booking | None:
    end = start + timedelta(minutes=duration_minutes)
    bookings = await active_bookings_for_mentor(session, mentor_id, start, end, now)
    return bookings[0] if bookings else None


async def find_participant_conflict(
    session: AsyncSession,
    participant_id: int,
    start: datetime,
    duration_minutes: int,
    now: datetime,
) -> Booking | None:
    end = start + timedelta(minutes=duration_minutes)
    bookings = await active_bookings_for_participant(session, participant_id, start, end, now)
    return bookings[0] if bookings else None


async def user_name(session: AsyncSession, user_id: int) -> str:
    user = await session.get(User, user_id)
    return user.name if user is not None else f"user #{user_id}"


async def expire_stale_requests(
    session: AsyncSession,
    now: datetime,
    mentor_id: int | None = None,
    participant_id: int | None = None,
) -> list[Booking]:
    """Move pending mentorship requests past their deadline to EXPIRED.

    Does not commit; callers fold this into their own transaction.
    """
    conditions = [
        Booking.kind == BookingKind.MENTORSHIP_REQUEST,
        Booking.status == BookingStatus.PENDING,
        Booking.expires_at.is_not(None),
        Booking.expires_at <= now,
    ]
    owners = []
    if mentor_id is not None:
        owners.append(Booking.mentor_id == mentor_id)
    if participant_id is not None:
        owners.append(Booking.participant_id == participant_id)
    if owners:
        conditions.append(or_(*owners))
    result = await session.execute(select(Booking).where(*conditions))
    stale = list(result.scalars().all())
    for booking in stale:
        booking.status = BookingStatus.EXPIRED
    if stale:
        logger.info("Expired %d stale mentorship requests", len(stale))
    return stale


async def list_bookings(
    session: AsyncSession,
    now: datetime,
    mentor_id: int | None = None,
    participant_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    """Bookings of a mentor and/or participant, oldest first.

    ``start`` and ``end`` are inclusive calendar dates on ``start_at``.
    Lapsed requests on the listed timelines are expired first so they never
    show up as pending.
    """
    if await expire_stale_requests(session, now, mentor_id, participant_id):
        await session.commit()

    stmt = select(Booking)
    if mentor_id is not None:
        stmt = stmt.where(Booking.mentor_id == mentor_id)
    if participant_id is not None:
        stmt = stmt.where(Booking.participant_id == participant_id)
    if start is not None:
        stmt = stmt.where(Booking.start_at >= datetime.combine(start, time.min))
    if end is not None:
        stmt = stmt.where(Booking.start_at <= datetime.combine(end, time.max))
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    result = await session.execute(stmt.order_by(Booking.start_at, Booking.id))
    return list(result.scalars().all())
