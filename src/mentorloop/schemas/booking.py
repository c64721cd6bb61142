from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from mentorloop.clock import to_local
from mentorloop.models.enums import Attendance, BookingKind, BookingStatus, CallType


class BookingCreate(BaseModel):
    mentor_id: int
    participant_id: int | None = None  # defaults to the caller
    call_type: CallType
    start_at: datetime  # local wall-clock, minute precision; offsets are converted
    duration_minutes: int | None = Field(default=None, gt=0)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("start_at")
    @classmethod
    def _local_start(cls, value: datetime) -> datetime:
        return to_local(value)


class BookingRead(BaseModel):
    id: int
    kind: BookingKind
    call_type: CallType
    mentor_id: int
    participant_id: int
    start_at: datetime
    duration_minutes: int
    status: BookingStatus
    attendance: Attendance
    commitment_id: int | None = None
    week_number: int | None = None
    notes: str | None = None
    expires_at: datetime | None = None
    cancel_reason: str | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class SlotRead(BaseModel):
    instant: datetime
    label: str
    duration_minutes: int

    model_config = {"from_attributes": True}


class SlotListRead(BaseModel):
    mentor_id: int
    call_type: CallType
    start_date: date
    end_date: date
    slots: list[SlotRead]
    reason: str | None = None
    message: str | None = None

    model_config = {"from_attributes": True}


class AttendanceCreate(BaseModel):
    present: bool


class AttendanceRead(BaseModel):
    booking_id: int
    attendance: Attendance
    enrollment_status: str | None = None
    strikes_remaining: int | None = None
    missed_calls_count: int | None = None
    cancelled_sessions: int = 0
