"""Availability API routes: weekly windows and blackout exceptions per mentor."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.api.deps import get_clock, get_notifier, get_principal
from mentorloop.clock import Clock
from mentorloop.database import get_db
from mentorloop.models.availability import AvailabilityException, AvailabilityWindow
from mentorloop.models.enums import CallType
from mentorloop.principal import AuthenticatedPrincipal, ensure_mentor_of
from mentorloop.scheduling import availability as service
from mentorloop.scheduling.collaborators import Notifier
from mentorloop.schemas.availability import (
    AvailabilityWindowRead,
    ExceptionCreate,
    ExceptionRead,
    WindowSetReplace,
)

router = APIRouter(prefix="/api", tags=["availability"])


@router.get("/mentors/{mentor_id}/availability", response_model=list[AvailabilityWindowRead])
async def list_availability(
    mentor_id: int,
    call_type: CallType | None = None,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> list[AvailabilityWindow]:
    await service.get_mentor(session, mentor_id)
    return await service.list_windows(session, mentor_id, call_type)


@router.put(
    "/mentors/{mentor_id}/availability/{call_type}",
    response_model=list[AvailabilityWindowRead],
)
async def replace_availability(
    mentor_id: int,
    call_type: CallType,
    body: WindowSetReplace,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> list[AvailabilityWindow]:
    """Replace the mentor's windows for one call type.

    With ``day_of_week`` set only that day is replaced; the other days keep
    their windows.
    """
    ensure_mentor_of(principal, mentor_id)
    return await service.replace_windows(
        session, mentor_id, call_type, body.windows, body.day_of_week
    )


@router.delete("/availability/{window_id}", status_code=204)
async def delete_availability_window(
    window_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> None:
    """Delete one window. Refused while upcoming sessions still fall inside it."""
    window = await service.get_window(session, window_id)
    ensure_mentor_of(principal, window.mentor_id)
    await service.delete_window(session, window_id, clock.now())


@router.get("/mentors/{mentor_id}/exceptions", response_model=list[ExceptionRead])
async def list_mentor_exceptions(
    mentor_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> list[AvailabilityException]:
    await service.get_mentor(session, mentor_id)
    return await service.list_exceptions(session, mentor_id)


@router.post("/mentors/{mentor_id}/exceptions", response_model=ExceptionRead, status_code=201)
async def create_mentor_exception(
    mentor_id: int,
    body: ExceptionCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> AvailabilityException:
    """Block out a date range.

    Returns 409 with the affected sessions when the range covers active
    bookings; resend with ``cancel_sessions`` to cancel them.
    """
    ensure_mentor_of(principal, mentor_id)
    return await service.create_exception(
        session,
        mentor_id,
        body.start_date,
        body.end_date,
        body.reason,
        clock.now(),
        notifier,
        description=body.description,
        cancel_sessions=body.cancel_sessions,
    )


@router.delete("/exceptions/{exception_id}", status_code=204)
async def delete_mentor_exception(
    exception_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> None:
    exception = await service.get_exception(session, exception_id)
    ensure_mentor_of(principal, exception.mentor_id)
    await service.delete_exception(session, exception_id)
