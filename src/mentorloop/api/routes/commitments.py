"""Program enrollment and discipline subscription API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentorloop.api.deps import get_clock, get_notifier, get_principal
from mentorloop.clock import Clock
from mentorloop.database import get_db
from mentorloop.models.commitment import RecurringCommitment
from mentorloop.principal import AuthenticatedPrincipal, ensure_acts_for, ensure_admin
from mentorloop.scheduling.collaborators import Notifier
from mentorloop.scheduling.commitments import (
    graduate_finished,
    participant_commitments,
    withdraw_commitment,
)
from mentorloop.scheduling.enrollment import (
    WeeklySlot,
    enroll_program,
    reschedule_commitment,
    subscribe_discipline,
)
from mentorloop.schemas.commitment import (
    CommitmentRead,
    CommitmentSummaryRead,
    EnrollmentRead,
    ProgramEnrollCreate,
    RescheduleCreate,
    SubscriptionCreate,
    WeeklySlotIn,
)

router = APIRouter(prefix="/api", tags=["commitments"])


def _slot(body: WeeklySlotIn) -> WeeklySlot:
    return WeeklySlot(day_of_week=body.day_of_week, time=body.time)


@router.post("/programs", response_model=EnrollmentRead, status_code=201)
async def create_program_enrollment(
    body: ProgramEnrollCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> EnrollmentRead:
    """Enroll in a program: two weekly discipline calls for ``total_weeks`` weeks.

    Every session is created up front in one transaction; any clash rolls
    the whole enrollment back.
    """
    participant_id = body.participant_id or principal.id
    ensure_acts_for(principal, participant_id)
    result = await enroll_program(
        session,
        participant_id,
        body.mentor_id,
        _slot(body.slot1),
        _slot(body.slot2),
        clock.now(),
        notifier,
        total_weeks=body.total_weeks,
    )
    return EnrollmentRead.model_validate(result)


@router.post("/subscriptions", response_model=EnrollmentRead, status_code=201)
async def create_discipline_subscription(
    body: SubscriptionCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> EnrollmentRead:
    participant_id = body.participant_id or principal.id
    ensure_acts_for(principal, participant_id)
    result = await subscribe_discipline(
        session,
        participant_id,
        body.mentor_id,
        _slot(body.slot1),
        _slot(body.slot2),
        clock.now(),
        notifier,
    )
    return EnrollmentRead.model_validate(result)


@router.get("/commitments/me", response_model=list[CommitmentSummaryRead])
async def my_commitments(
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> list[CommitmentSummaryRead]:
    summaries = await participant_commitments(session, principal.id, clock.now())
    return [CommitmentSummaryRead.model_validate(s) for s in summaries]


@router.post("/commitments/graduate", response_model=list[CommitmentRead])
async def graduate(
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
) -> list[RecurringCommitment]:
    ensure_admin(principal)
    return await graduate_finished(session, clock.now())


@router.post("/commitments/{commitment_id}/reschedule", response_model=EnrollmentRead)
async def reschedule(
    commitment_id: int,
    body: RescheduleCreate,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> EnrollmentRead:
    """Move the remaining weeks to new weekly slots, optionally with another mentor."""
    result = await reschedule_commitment(
        session,
        commitment_id,
        _slot(body.slot1),
        _slot(body.slot2),
        principal,
        clock.now(),
        notifier,
        mentor_id=body.mentor_id,
    )
    return EnrollmentRead.model_validate(result)


@router.post("/commitments/{commitment_id}/withdraw", response_model=CommitmentRead)
async def withdraw(
    commitment_id: int,
    session: AsyncSession = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> RecurringCommitment:
    return await withdraw_commitment(session, commitment_id, principal, clock.now(), notifier)
