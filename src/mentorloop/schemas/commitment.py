from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator, model_validator

from mentorloop.models.enums import CommitmentKind, CommitmentStatus
from mentorloop.schemas.availability import minute_precision
from mentorloop.schemas.booking import BookingRead


class WeeklySlotIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday
    time: time

    @field_validator("time")
    @classmethod
    def _whole_minute(cls, value: time) -> time:
        return minute_precision(value)


class _TwoSlots(BaseModel):
    mentor_id: int
    participant_id: int | None = None  # defaults to the caller
    slot1: WeeklySlotIn
    slot2: WeeklySlotIn

    @model_validator(mode="after")
    def _different_days(self) -> "_TwoSlots":
        if self.slot1.day_of_week == self.slot2.day_of_week:
            raise ValueError("slot1 and slot2 must be on different days")
        return self


class ProgramEnrollCreate(_TwoSlots):
    total_weeks: int | None = Field(default=None, ge=1, le=104)


class SubscriptionCreate(_TwoSlots):
    pass


class RescheduleCreate(BaseModel):
    slot1: WeeklySlotIn
    slot2: WeeklySlotIn
    mentor_id: int | None = None


class CommitmentRead(BaseModel):
    id: int
    kind: CommitmentKind
    participant_id: int
    mentor_id: int
    start_date: date
    end_date: date
    total_weeks: int
    day1: int
    time1: time
    day2: int
    time2: time
    missed_calls_count: int
    max_missed_allowed: int
    strikes_remaining: int
    status: CommitmentStatus
    status_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentRead(BaseModel):
    commitment: CommitmentRead
    sessions_created: int
    next_session: BookingRead | None = None

    model_config = {"from_attributes": True}


class CommitmentSummaryRead(BaseModel):
    commitment: CommitmentRead
    next_session: BookingRead | None = None
    sessions_attended: int
    sessions_missed: int

    model_config = {"from_attributes": True}
