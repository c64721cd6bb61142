from datetime import date, datetime, time

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from mentorloop.database import Base
from mentorloop.models.enums import CommitmentKind, CommitmentStatus


class RecurringCommitment(Base):
    """A participant's fixed-length recurring commitment with a strike policy.

    Program enrollments and discipline subscriptions share this table and the
    same attendance state machine; only their lifecycle defaults differ.
    """

    __tablename__ = "commitments"

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[CommitmentKind] = mapped_column(
        Enum(CommitmentKind, native_enum=False, length=30)
    )
    participant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    mentor_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    start_date: Mapped[date]
    end_date: Mapped[date]
    total_weeks: Mapped[int]
    day1: Mapped[int]  # 0=Sunday, 6=Saturday
    time1: Mapped[time]
    day2: Mapped[int]
    time2: Mapped[time]
    missed_calls_count: Mapped[int] = mapped_column(default=0)
    max_missed_allowed: Mapped[int] = mapped_column(default=3)
    status: Mapped[CommitmentStatus] = mapped_column(
        Enum(CommitmentStatus, native_enum=False, length=20), default=CommitmentStatus.ACTIVE
    )
    status_reason: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"polymorphic_on": "kind"}

    @property
    def strikes_remaining(self) -> int:
        return max(self.max_missed_allowed - self.missed_calls_count, 0)


class ProgramEnrollment(RecurringCommitment):
    __mapper_args__ = {"polymorphic_identity": CommitmentKind.PROGRAM}


class DisciplineSubscription(RecurringCommitment):
    __mapper_args__ = {"polymorphic_identity": CommitmentKind.DISCIPLINE_SUBSCRIPTION}
