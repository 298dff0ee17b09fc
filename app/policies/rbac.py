#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import FrozenSet, Iterable

from app.models.enums import UserRole


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: UserRole
    display_name: str = "Unknown"


# Pass every role gate.
SUPERUSER_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})

# --- Gates per operation family ---
PROPOSAL_SUBMITTERS = (UserRole.DEPARTMENT_USER,)
PROGRESS_WRITERS = (UserRole.ENGINEER,)
TECHNICAL_APPROVERS = (UserRole.TECHNICAL_APPROVER,)
ADMINISTRATIVE_APPROVERS = (UserRole.ADMINISTRATIVE_APPROVER,)
TENDER_MANAGERS = (UserRole.TENDER_MANAGER,)
WORK_ORDER_MANAGERS = (UserRole.WORK_ORDER_MANAGER,)


def role_allowed(role: UserRole, allowed: Iterable[UserRole]) -> bool:
    """
    Pure RBAC: may `role` attempt an operation gated on `allowed`?
    """
    return role in SUPERUSER_ROLES or role in set(allowed)


def require_roles(user: CurrentUser, allowed: Iterable[UserRole]) -> None:
    allowed = tuple(allowed)
    if not role_allowed(user.role, allowed):
        names = ", ".join(r.value for r in allowed)
        raise PermissionError(f"Role {user.role.value} not permitted; requires one of: {names}.")
