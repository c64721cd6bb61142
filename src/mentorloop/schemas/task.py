from datetime import date, datetime

from pydantic import BaseModel, Field


class PostponeCreate(BaseModel):
    days: int = Field(ge=1, le=30)


class TaskRead(BaseModel):
    id: int
    participant_id: int
    mentor_id: int | None = None
    title: str
    area: str | None = None
    due_date: date
    original_due_date: date | None = None
    postpone_count: int

    model_config = {"from_attributes": True}


class PostponeRead(BaseModel):
    task: TaskRead
    postpone_count: int
    mentor_notified: bool
    message: str


class MentorAlertRead(BaseModel):
    id: int
    mentor_id: int
    participant_id: int
    task_id: int | None = None
    alert_type: str
    message: str
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertsMarkRead(BaseModel):
    alert_id: int | None = None  # None marks every unread alert


class AlertsMarkedRead(BaseModel):
    updated: int
