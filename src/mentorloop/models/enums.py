from enum import Enum


class Role(str, Enum):
    MENTOR = "MENTOR"
    PARTICIPANT = "PARTICIPANT"
    ADMIN = "ADMIN"


class CallType(str, Enum):
    DISCIPLINE = "DISCIPLINE"
    MENTORSHIP = "MENTORSHIP"


class BookingKind(str, Enum):
    MENTORSHIP_REQUEST = "MENTORSHIP_REQUEST"  # one-off, paid
    CALL_BOOKING = "CALL_BOOKING"  # recurring-capable


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class Attendance(str, Enum):
    PENDING = "PENDING"
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"


class CommitmentKind(str, Enum):
    PROGRAM = "PROGRAM"
    DISCIPLINE_SUBSCRIPTION = "DISCIPLINE_SUBSCRIPTION"


class CommitmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    GRADUATED = "GRADUATED"
    SUSPENDED = "SUSPENDED"
    DROPPED = "DROPPED"
