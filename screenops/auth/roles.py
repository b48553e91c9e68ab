"""User roles and who may manage whom."""

from enum import Enum


class UserRole(str, Enum):
    SCREENER_LEAD = "SCREENER_LEAD"
    SCREENER = "SCREENER"
    FACILITATOR = "FACILITATOR"
    PROGRAM_OPERATIONS_MANAGER = "PROGRAM_OPERATIONS_MANAGER"
    PROGRAM_OPERATIONS_ADMINISTRATOR = "PROGRAM_OPERATIONS_ADMINISTRATOR"


ALL_ROLES = frozenset(role.value for role in UserRole)

# Review applications, change statuses, trigger rescoring
APPLICATION_MANAGERS = frozenset(
    {
        UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value,
        UserRole.PROGRAM_OPERATIONS_MANAGER.value,
        UserRole.SCREENER_LEAD.value,
    }
)

# Edit scoring rules and forms
RUBRIC_EDITORS = frozenset(
    {
        UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value,
        UserRole.PROGRAM_OPERATIONS_MANAGER.value,
    }
)

# Roles each role may create, reset, activate and deactivate
MANAGEABLE_ROLES = {
    UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value: ALL_ROLES,
    UserRole.PROGRAM_OPERATIONS_MANAGER.value: frozenset({UserRole.FACILITATOR.value}),
    UserRole.SCREENER_LEAD.value: frozenset({UserRole.SCREENER.value}),
}


def can_manage_role(actor_role: str, target_role: str) -> bool:
    return target_role in MANAGEABLE_ROLES.get(actor_role, frozenset())


def can_delete_users(actor_role: str) -> bool:
    return actor_role == UserRole.PROGRAM_OPERATIONS_ADMINISTRATOR.value
