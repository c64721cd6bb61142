from datetime import datetime, timedelta

from sqlalchemy import Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from mentorloop.database import Base
from mentorloop.models.enums import Attendance, BookingKind, BookingStatus, CallType

_ACTIVE_ONLY = text("status IN ('PENDING', 'CONFIRMED')")


class Booking(Base):
    """One reserved interval on a mentor's (and a participant's) timeline.

    Both one-off mentorship requests and recurring call bookings live here,
    discriminated by ``kind``, so every overlap check has a single code path.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_mentor_start_active",
            "mentor_id",
            "start_at",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_bookings_participant_start_active",
            "participant_id",
            "start_at",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index("ix_bookings_mentor_start", "mentor_id", "start_at"),
        Index("ix_bookings_participant_start", "participant_id", "start_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[BookingKind] = mapped_column(Enum(BookingKind, native_enum=False, length=30))
    call_type: Mapped[CallType] = mapped_column(Enum(CallType, native_enum=False, length=20))
    mentor_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    participant_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    start_at: Mapped[datetime]  # local wall-clock
    duration_minutes: Mapped[int]
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=20), default=BookingStatus.PENDING
    )
    attendance: Mapped[Attendance] = mapped_column(
        Enum(Attendance, native_enum=False, length=20), default=Attendance.PENDING
    )
    commitment_id: Mapped[int | None] = mapped_column(
        ForeignKey("commitments.id"), default=None, index=True
    )
    week_number: Mapped[int | None] = mapped_column(default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    expires_at: Mapped[datetime | None] = mapped_column(default=None)  # pending requests only
    cancel_reason: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(default=None)

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration_minutes)
