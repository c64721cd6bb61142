from datetime import date, time

from pydantic import BaseModel, Field, field_validator, model_validator

from mentorloop.models.enums import CallType


def minute_precision(value: time) -> time:
    if value.second or value.microsecond:
        raise ValueError(f"{value.isoformat()} is not a whole minute (expected HH:MM)")
    return value


class WindowSpec(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday
    start_time: time
    end_time: time

    @field_validator("start_time", "end_time")
    @classmethod
    def _whole_minutes(cls, value: time) -> time:
        return minute_precision(value)

    @model_validator(mode="after")
    def _start_before_end(self) -> "WindowSpec":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class WindowSetReplace(BaseModel):
    windows: list[WindowSpec]
    day_of_week: int | None = Field(default=None, ge=0, le=6)  # replace one day only


class AvailabilityWindowRead(WindowSpec):
    id: int
    mentor_id: int
    call_type: CallType
    is_active: bool

    model_config = {"from_attributes": True}


class ExceptionCreate(BaseModel):
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=100)
    description: str | None = None
    cancel_sessions: bool = False


class ExceptionRead(BaseModel):
    id: int
    mentor_id: int
    start_date: date
    end_date: date
    reason: str
    description: str | None = None

    model_config = {"from_attributes": True}

