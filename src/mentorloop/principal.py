from dataclasses import dataclass

from mentorloop.errors import PermissionDeniedError
from mentorloop.models.enums import Role


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """Caller identity as supplied by the upstream identity provider."""

    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def ensure_acts_for(principal: AuthenticatedPrincipal, user_id: int) -> None:
    """Allow the user themselves or an admin."""
    if principal.is_admin or principal.id == user_id:
        return
    raise PermissionDeniedError(f"Not allowed to act on behalf of user {user_id}")


def ensure_mentor_of(principal: AuthenticatedPrincipal, mentor_id: int) -> None:
    if principal.is_admin:
        return
    if principal.role != Role.MENTOR or principal.id != mentor_id:
        raise PermissionDeniedError("Only the mentor who owns this schedule can do that")


def ensure_admin(principal: AuthenticatedPrincipal) -> None:
    if not principal.is_admin:
        raise PermissionDeniedError("Only administrators can do that")
