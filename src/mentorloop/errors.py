"""Scheduling error taxonomy.

Business-rule failures are expected and recoverable: they carry a stable
``code`` plus enough ``details`` for the caller to react, and the API layer
renders them verbatim.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for all expected scheduling failures."""

    status_code = 400
    default_code = "SCHEDULING_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(SchedulingError):
    """Malformed input, rejected before touching the store."""

    status_code = 422
    default_code = "VALIDATION_ERROR"


class NotFoundError(SchedulingError):
    status_code = 404
    default_code = "NOT_FOUND"


class PermissionDeniedError(SchedulingError):
    status_code = 403
    default_code = "PERMISSION_DENIED"


class PolicyViolationError(SchedulingError):
    """A named business rule was broken (the rule is in ``code``)."""

    status_code = 422
    default_code = "POLICY_VIOLATION"


class ConflictError(SchedulingError):
    status_code = 409
    default_code = "CONFLICT"


class MentorSlotTakenError(ConflictError):
    default_code = "MENTOR_SLOT_TAKEN"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message or "This time is no longer available. Another participant booked it first.",
            details={"suggestion": "Please pick another time.", **(details or {})},
        )


class ParticipantTimeConflictError(ConflictError):
    default_code = "PARTICIPANT_TIME_CONFLICT"

    def __init__(self, counterpart: str, details: dict[str, Any] | None = None) -> None:
        self.counterpart = counterpart
        super().__init__(
            f"You already have a session at this time with {counterpart}.",
            details={
                "counterpart": counterpart,
                "suggestion": "Choose another time or cancel your other session.",
                **(details or {}),
            },
        )


class DuplicateBatchInstantError(ConflictError):
    default_code = "DUPLICATE_BATCH_INSTANT"


class AttendanceAlreadyRecordedError(ConflictError):
    default_code = "ATTENDANCE_ALREADY_RECORDED"


class AvailabilityInUseError(ConflictError):
    default_code = "AVAILABILITY_IN_USE"


class ExceptionOverlapsBookingsError(ConflictError):
    default_code = "EXCEPTION_OVERLAPS_BOOKINGS"


class InvalidTransitionError(ConflictError):
    default_code = "INVALID_TRANSITION"
