"""Task postponement escalation.

Each postponement pushes the due date and bumps a counter. The first
postponement that takes the counter past the threshold raises one alert for
the assigned mentor; later postponements stay silent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.config import get_settings
from mentorloop.errors import NotFoundError, ValidationError
from mentorloop.models.task import MentorAlert, Task
from mentorloop.principal import AuthenticatedPrincipal, ensure_acts_for
from mentorloop.scheduling.collaborators import TASK_POSTPONE_ALERT, Notifier
from mentorloop.scheduling.ledger import user_name

logger = logging.getLogger(__name__)

MAX_POSTPONE_DAYS = 30


@dataclass
class PostponeResult:
    task: Task
    mentor_notified: bool
    alert: MentorAlert | None
    message: str


def _user_message(task: Task, threshold: int) -> str:
    message = f"Task rescheduled for {task.due_date:%A %d %B %Y}"
    if task.mentor_id is None or task.postpone_count < threshold:
        return message + ". Remember that consistency is key to reaching your goals."
    if task.postpone_count == threshold:
        return message + ". Careful: if you postpone it once more, your mentor will be notified."
    return message + ". Your mentor has been notified so they can support you."


async def postpone_task(
    session: AsyncSession,
    task_id: int,
    days: int,
    principal: AuthenticatedPrincipal,
    now: datetime,
    notifier: Notifier,
) -> PostponeResult:
    if not 1 <= days <= MAX_POSTPONE_DAYS:
        raise ValidationError(
            f"days must be between 1 and {MAX_POSTPONE_DAYS}", code="INVALID_POSTPONE_DAYS"
        )
    task = await session.get(Task, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
    ensure_acts_for(principal, task.participant_id)

    threshold = get_settings().postpone_alert_threshold
    if task.original_due_date is None:
        task.original_due_date = task.due_date
    task.due_date = task.due_date + timedelta(days=days)
    task.postpone_count += 1
    task.updated_at = now

    alert = None
    if task.postpone_count > threshold and not task.alerted and task.mentor_id is not None:
        participant = await user_name(session, task.participant_id)
        area = f" in {task.area}" if task.area else ""
        alert = MentorAlert(
            mentor_id=task.mentor_id,
            participant_id=task.participant_id,
            task_id=task.id,
            alert_type="RISK_ALERT",
            message=(
                f"{participant} keeps postponing the task \"{task.title}\"{area}. "
                f"It has been postponed {task.postpone_count} times."
            ),
            created_at=now,
        )
        session.add(alert)
        task.alerted = True

    await session.commit()

    if alert is not None:
        await session.refresh(alert)
        logger.info(
            "Postpone alert %s raised for mentor %s (task %s)", alert.id, alert.mentor_id, task.id
        )
        await notifier.notify(
            alert.mentor_id,
            TASK_POSTPONE_ALERT,
            {"alert_id": alert.id, "task_id": task.id, "message": alert.message},
        )
    return PostponeResult(
        task=task,
        mentor_notified=alert is not None,
        alert=alert,
        message=_user_message(task, threshold),
    )


async def list_alerts(
    session: AsyncSession, mentor_id: int, unread_only: bool = False, limit: int = 50
) -> list[MentorAlert]:
    stmt = select(MentorAlert).where(MentorAlert.mentor_id == mentor_id)
    if unread_only:
        stmt = stmt.where(MentorAlert.read.is_(False))
    stmt = stmt.order_by(MentorAlert.created_at.desc(), MentorAlert.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_alerts_read(
    session: AsyncSession, mentor_id: int, alert_id: int | None = None
) -> int:
    """Mark one alert (or all of the mentor's unread alerts) as read."""
    stmt = update(MentorAlert).where(
        MentorAlert.mentor_id == mentor_id, MentorAlert.read.is_(False)
    )
    if alert_id is not None:
        stmt = stmt.where(MentorAlert.id == alert_id)
    result = await session.execute(stmt.values(read=True))
    await session.commit()
    if alert_id is not None and result.rowcount == 0:
        alert = await session.get(MentorAlert, alert_id)
        if alert is None or alert.mentor_id != mentor_id:
            raise NotFoundError(f"Alert {alert_id} not found", code="ALERT_NOT_FOUND")
    return result.rowcount
