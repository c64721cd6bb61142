"""Slot resolution API: free, bookable instants of a mentor."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.api.deps import get_clock, get_principal
from mentorloop.clock import Clock
from mentorloop.database import get_db
from mentorloop.errors import ValidationError
from mentorloop.models.enums import CallType, Role
from mentorloop.principal import AuthenticatedPrincipal
from mentorloop.scheduling.slots import month_range, resolve_slots
from mentorloop.schemas.booking import SlotListRead

router = APIRouter(prefix="/api/mentors", tags=["slots"])


@router.get("/{mentor_id}/slots", response_model=SlotListRead)
async def get_slots(
    mentor_id: int,
    call_type: CallType,
    month: str | None = Query(default=None, description="YYYY-MM"),
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> SlotListRead:
    """Free slots for a month (``month``) or an explicit ``start``/``end`` range.

    Defaults to the current month. For a participant the slots also skip
    times at which they already have a session.
    """
    if month is not None and (start is not None or end is not None):
        raise ValidationError("Use either month or start/end, not both", code="INVALID_DATE_RANGE")
    if month is not None:
        start, end = month_range(month)
    elif start is None or end is None:
        if start is not None or end is not None:
            raise ValidationError("start and end must be given together", code="INVALID_DATE_RANGE")
        start, end = month_range(f"{clock.today():%Y-%m}")

    participant_id = principal.id if principal.role == Role.PARTICIPANT else None
    resolution = await resolve_slots(
        session, mentor_id, call_type, start, end, clock.now(), participant_id=participant_id
    )
    return SlotListRead.model_validate(resolution)
