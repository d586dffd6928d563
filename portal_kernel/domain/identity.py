"""
Identity -- caller context passed into every core operation.

Responsibility:
    Models the ``(user_id, role)`` pair established by an external
    authentication layer, plus optional client metadata that flows into
    audit entries.  There is no ambient or global caller state: every
    service method receives an ``IdentityContext`` explicitly.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - RoleRequiredError from ``require_role`` when the caller's role is not
      in the allowed set.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from portal_kernel.exceptions import RoleRequiredError


class Role(str, Enum):
    """Caller roles, in increasing privilege."""

    USER = "user"
    APPROVER = "approver"
    ADMIN = "admin"


# Roles allowed to decide approvals and to see every requester's requests.
REVIEWER_ROLES: frozenset[Role] = frozenset({Role.APPROVER, Role.ADMIN})


@dataclass(frozen=True)
class IdentityContext:
    """Authenticated caller.  Immutable for the duration of a call."""

    user_id: UUID
    role: Role
    ip_address: str = ""
    user_agent: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES


def require_role(
    caller: IdentityContext,
    allowed: frozenset[Role],
    operation: str,
) -> None:
    """Raise RoleRequiredError unless the caller's role is in ``allowed``."""
    if caller.role not in allowed:
        raise RoleRequiredError(
            actor_role=caller.role.value,
            required_roles=tuple(sorted(r.value for r in allowed)),
            operation=operation,
        )
