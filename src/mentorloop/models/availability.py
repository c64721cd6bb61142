from datetime import date, datetime, time

from sqlalchemy import Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mentorloop.database import Base
from mentorloop.models.enums import CallType


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"
    __table_args__ = (Index("ix_availability_mentor_type", "mentor_id", "call_type"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    mentor_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    call_type: Mapped[CallType] = mapped_column(Enum(CallType, native_enum=False, length=20))
    day_of_week: Mapped[int]  # 0=Sunday, 6=Saturday
    start_time: Mapped[time]
    end_time: Mapped[time]
    is_active: Mapped[bool] = mapped_column(default=True)


class AvailabilityException(Base):
    """Blackout period; suppresses every weekly window in the inclusive range."""

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    mentor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    start_date: Mapped[date]
    end_date: Mapped[date]
    reason: Mapped[str] = mapped_column(String(100))  # vacation, sick, personal, ...
    description: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
