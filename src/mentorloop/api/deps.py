"""Request-scoped dependencies shared by the route modules."""

from fastapi import Header, HTTPException

from mentorloop.clock import get_clock
from mentorloop.models.enums import Role
from mentorloop.principal import AuthenticatedPrincipal
from mentorloop.scheduling.collaborators import get_notifier, get_reward_ledger

__all__ = ["get_clock", "get_notifier", "get_principal", "get_reward_ledger"]


async def get_principal(
    x_user_id: int | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> AuthenticatedPrincipal:
    """Identity asserted by the upstream gateway.

    Authentication itself happens before requests reach this service; only
    the resolved user id and role are forwarded as headers.
    """
    if x_user_id is None or x_user_role is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id / X-User-Role headers")
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role {x_user_role!r}") from None
    return AuthenticatedPrincipal(id=x_user_id, role=role)
