from mentorloop.models.availability import AvailabilityException, AvailabilityWindow
from mentorloop.models.booking import Booking
from mentorloop.models.commitment import (
    DisciplineSubscription,
    ProgramEnrollment,
    RecurringCommitment,
)
from mentorloop.models.task import MentorAlert, Task
from mentorloop.models.user import User

__all__ = [
    "AvailabilityException",
    "AvailabilityWindow",
    "Booking",
    "DisciplineSubscription",
    "MentorAlert",
    "ProgramEnrollment",
    "RecurringCommitment",
    "Task",
    "User",
]
