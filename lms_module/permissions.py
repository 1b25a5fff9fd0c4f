"""Coarse role permissions.

The table answers "may this role ever perform this action on this kind of
resource". Record-level checks (is this *my* course?) live in
:mod:`lms_module.ownership`.
"""
import enum
import logging

from .errors import Forbidden
from .models import UserRole

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class ResourceKind(str, enum.Enum):
    USER = "user"
    TEACHER = "teacher"
    STUDENT = "student"
    COURSE = "course"
    ENROLLMENT = "enrollment"
    ASSIGNMENT = "assignment"
    SUBMISSION = "submission"
    ATTENDANCE = "attendance"
    LEAVE_REQUEST = "leave_request"
    NOTIFICATION = "notification"
    REPORT = "report"
    SETTINGS = "settings"


ALL_ACTIONS = frozenset(Action)
READ_ONLY = frozenset({Action.READ})

ROLE_ACCESS: dict[UserRole, dict[ResourceKind, frozenset[Action]]] = {
    UserRole.ADMIN: {kind: ALL_ACTIONS for kind in ResourceKind},
    UserRole.TEACHER: {
        ResourceKind.COURSE: ALL_ACTIONS,
        ResourceKind.ASSIGNMENT: ALL_ACTIONS,
        ResourceKind.ATTENDANCE: ALL_ACTIONS,
        ResourceKind.SUBMISSION: frozenset({Action.READ, Action.UPDATE}),
        ResourceKind.LEAVE_REQUEST: ALL_ACTIONS,
        ResourceKind.REPORT: frozenset({Action.CREATE, Action.READ}),
        ResourceKind.STUDENT: READ_ONLY,
        ResourceKind.ENROLLMENT: frozenset({Action.UPDATE, Action.DELETE}),
        ResourceKind.NOTIFICATION: frozenset({Action.READ, Action.UPDATE, Action.DELETE}),
    },
    UserRole.STUDENT: {
        ResourceKind.SUBMISSION: ALL_ACTIONS,
        ResourceKind.LEAVE_REQUEST: frozenset({Action.CREATE, Action.READ, Action.DELETE}),
        ResourceKind.ATTENDANCE: READ_ONLY,
        ResourceKind.COURSE: READ_ONLY,
        ResourceKind.ASSIGNMENT: READ_ONLY,
        ResourceKind.REPORT: READ_ONLY,
        ResourceKind.ENROLLMENT: frozenset({Action.DELETE}),
        ResourceKind.NOTIFICATION: frozenset({Action.READ, Action.UPDATE, Action.DELETE}),
    },
}


def can_access(role: UserRole, action: Action, resource_kind: ResourceKind) -> bool:
    return action in ROLE_ACCESS.get(role, {}).get(resource_kind, frozenset())


def require_access(role: UserRole, action: Action, resource_kind: ResourceKind) -> None:
    if not can_access(role, action, resource_kind):
        logger.warning("Denied %s %s for role %s", action.value, resource_kind.value, role.value)
        raise Forbidden(f"Forbidden: {role.value} may not {action.value} {resource_kind.value}")
