from mentorloop.schemas.availability import (
    AvailabilityWindowRead,
    ExceptionCreate,
    ExceptionRead,
    WindowSetReplace,
    WindowSpec,
)
from mentorloop.schemas.booking import (
    AttendanceCreate,
    AttendanceRead,
    BookingCancel,
    BookingCreate,
    BookingRead,
    SlotListRead,
    SlotRead,
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
from mentorloop.schemas.system import StatusResponse
from mentorloop.schemas.task import (
    AlertsMarkedRead,
    AlertsMarkRead,
    MentorAlertRead,
    PostponeCreate,
    PostponeRead,
    TaskRead,
)

__all__ = [
    "AlertsMarkRead",
    "AlertsMarkedRead",
    "AttendanceCreate",
    "AttendanceRead",
    "AvailabilityWindowRead",
    "BookingCancel",
    "BookingCreate",
    "BookingRead",
    "CommitmentRead",
    "CommitmentSummaryRead",
    "EnrollmentRead",
    "ExceptionCreate",
    "ExceptionRead",
    "MentorAlertRead",
    "PostponeCreate",
    "PostponeRead",
    "ProgramEnrollCreate",
    "RescheduleCreate",
    "SlotListRead",
    "SlotRead",
    "StatusResponse",
    "SubscriptionCreate",
    "TaskRead",
    "WeeklySlotIn",
    "WindowSetReplace",
    "WindowSpec",
]
