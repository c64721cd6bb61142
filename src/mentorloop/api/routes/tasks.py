"""Task postponement and mentor alert API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.api.deps import get_clock, get_notifier, get_principal
from mentorloop.clock import Clock
from mentorloop.database import get_db
from mentorloop.errors import PermissionDeniedError
from mentorloop.models.enums import Role
from mentorloop.models.task import MentorAlert
from mentorloop.principal import AuthenticatedPrincipal
from mentorloop.scheduling.collaborators import Notifier
from mentorloop.scheduling.postponement import list_alerts, mark_alerts_read, postpone_task
from mentorloop.schemas.task import (
    AlertsMarkedRead,
    AlertsMarkRead,
    MentorAlertRead,
    PostponeCreate,
    PostponeRead,
    TaskRead,
)

router = APIRouter(prefix="/api", tags=["tasks"])


def _require_mentor(principal: AuthenticatedPrincipal) -> None:
    if principal.role != Role.MENTOR:
        raise PermissionDeniedError("Only mentors have alerts")


@router.post("/tasks/{task_id}/postpone", response_model=PostponeRead)
async def postpone(
    task_id: int,
    body: PostponeCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> PostponeRead:
    result = await postpone_task(session, task_id, body.days, principal, clock.now(), notifier)
    return PostponeRead(
        task=TaskRead.model_validate(result.task),
        postpone_count=result.task.postpone_count,
        mentor_notified=result.mentor_notified,
        message=result.message,
    )


@router.get("/alerts", response_model=list[MentorAlertRead])
async def get_alerts(
    unread_only: bool = False,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> list[MentorAlert]:
    _require_mentor(principal)
    return await list_alerts(session, principal.id, unread_only=unread_only)


@router.post("/alerts/read", response_model=AlertsMarkedRead)
async def read_alerts(
    body: AlertsMarkRead,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> AlertsMarkedRead:
    _require_mentor(principal)
    updated = await mark_alerts_read(session, principal.id, body.alert_id)
    return AlertsMarkedRead(updated=updated)
