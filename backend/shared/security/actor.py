"""
Actor context.

Authentication happens upstream: the gateway in front of this service
verifies credentials and forwards the caller's identity as headers.
Handlers receive an explicit ``Actor`` (or None for anonymous calls)
instead of reaching into a request-global user.
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Header

from shared.config.constants import Roles
from shared.utils.exceptions import ForbiddenError, ValidationError


@dataclass(frozen=True)
class Actor:
    """Identity of whoever triggered an operation."""

    id: int
    role: str

    @property
    def is_customer(self) -> bool:
        return self.role == Roles.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in Roles.STAFF

    def as_dict(self) -> dict[str, Any]:
        return {"user_id": self.id, "role": self.role}


def current_actor(
    actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
) -> Actor | None:
    """
    FastAPI dependency resolving the caller from gateway headers.

    Usage:
        @router.post("/{session_id}/claim")
        def claim(session_id: int, actor: Actor | None = Depends(current_actor)):
            ...

    Returns None when no identity was forwarded.
    """
    if not actor_id:
        return None
    try:
        parsed_id = int(actor_id)
    except ValueError:
        raise ValidationError("X-Actor-Id must be an integer", field="X-Actor-Id")
    if parsed_id <= 0:
        raise ValidationError("X-Actor-Id must be positive", field="X-Actor-Id")

    role = (actor_role or Roles.CUSTOMER).strip().lower()
    if role not in Roles.ALL:
        raise ValidationError(
            f"Unknown role: {role}. Must be one of: {', '.join(Roles.ALL)}",
            field="X-Actor-Role",
        )
    return Actor(id=parsed_id, role=role)


def require_actor(actor: Actor | None, action: str) -> Actor:
    """Reject anonymous callers for operations that need an identity."""
    if actor is None:
        raise ForbiddenError(action)
    return actor
