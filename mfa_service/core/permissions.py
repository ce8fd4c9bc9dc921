"""
Roles and MFA actions for RBAC checks

Every role has an explicit (possibly empty) permission set. The mapping is
checked for completeness at import time so a new role cannot silently fall
through to "no permissions".
"""

import enum
from typing import Dict, FrozenSet


class Role(str, enum.Enum):
    """Profile role"""
    USER = "user"
    DEALER = "dealer"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class Action(str, enum.Enum):
    """Privileged MFA action"""
    DISABLE_WITHOUT_CODE = "mfa.disable_without_code"
    VIEW_OTHER_MFA_REQUIREMENT = "mfa.view_other_requirement"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Action]] = {
    Role.USER: frozenset(),
    Role.DEALER: frozenset(),
    Role.ORGANIZER: frozenset(),
    Role.ADMIN: frozenset({Action.DISABLE_WITHOUT_CODE, Action.VIEW_OTHER_MFA_REQUIREMENT}),
}

_missing = set(Role) - set(ROLE_PERMISSIONS)
if _missing:
    raise RuntimeError(f"ROLE_PERMISSIONS missing roles: {sorted(r.value for r in _missing)}")


def has_permission(role: Role, action: Action) -> bool:
    """Check whether a role grants an action"""
    return action in ROLE_PERMISSIONS[role]
