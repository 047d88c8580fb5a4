# gradebook/core/policy.py
"""Role and permission checks, kept in one table keyed by (role, resource, action).

A grant is either ``True`` (the role may act) or the name of a secretary permission
that must be switched on in the user's ``secretary_permissions`` bag. Pairs with no
grant are denied.
"""
import logging
from typing import Dict, Iterable, Tuple, Union

from fastapi import Depends

from ..models.user import User, UserRole
from .auth import get_current_user
from .exceptions import Forbidden

logger = logging.getLogger(__name__)

Grant = Union[bool, str]

SUPERADMIN = UserRole.SUPERADMIN.value
ADMIN = UserRole.ADMIN.value
SECRETARY = UserRole.SECRETARY.value
TEACHER = UserRole.TEACHER.value
STUDENT = UserRole.STUDENT.value
PARENT = UserRole.PARENT.value

ALL_ROLES = (SUPERADMIN, ADMIN, SECRETARY, TEACHER, STUDENT, PARENT)
ADMINS = (SUPERADMIN, ADMIN)
STAFF = (SUPERADMIN, ADMIN, SECRETARY, TEACHER)


def _rules() -> Dict[Tuple[str, str, str], Grant]:
    rules: Dict[Tuple[str, str, str], Grant] = {}

    def allow(roles: Iterable[str], resource: str, *actions: str, secretary: str = None):
        for action in actions:
            for role in roles:
                rules[(role, resource, action)] = True
            if secretary:
                rules[(SECRETARY, resource, action)] = secretary

    # users
    allow(ADMINS, "users", "list", "create", "delete", "list_students")
    allow(ADMINS, "users", "update", secretary="canManageUsers")
    allow(STAFF, "users", "list_by_role", "list_teacher_students")
    allow(ADMINS, "users", "view_any")
    allow(ADMINS, "parents", "manage")
    allow((PARENT,), "parents", "view_children")
    allow((SUPERADMIN,), "security", "manage")

    # schools
    allow((SUPERADMIN,), "schools", "manage")
    allow(ADMINS, "schools", "view", secretary="canManageSchools")

    # classes
    allow(ADMINS, "classes", "manage")
    allow(ALL_ROLES, "classes", "view")
    allow((SUPERADMIN, ADMIN, SECRETARY), "classes", "view_all")

    # grades
    allow((SUPERADMIN, ADMIN, TEACHER), "grades", "manage", secretary="canManageGrades")
    allow(STAFF, "grades", "list")
    allow(ALL_ROLES, "grades", "view")
    # no shared-class requirement, no ownership requirement on edits
    allow(ADMINS, "grades", "grade_any_student", "edit_any", secretary="canManageGrades")
    allow((SUPERADMIN, ADMIN, SECRETARY), "grades", "view_any")

    # per-student grade statistics; teachers see only students of their classes
    allow((SUPERADMIN, ADMIN, TEACHER), "stats", "view", secretary="canAccessStudentProgress")
    allow(ADMINS, "stats", "view_any", secretary="canAccessStudentProgress")

    # subjects
    allow(ALL_ROLES, "subjects", "view")
    allow(ADMINS, "subjects", "manage", secretary="canManageSubjects")
    allow(STAFF, "subjects", "list_teacher")

    # events: audience rules narrow what each role may publish
    allow(ALL_ROLES, "events", "view")
    allow(STAFF, "events", "manage")

    # contact messages
    allow(ALL_ROLES, "contacts", "send")
    allow(ADMINS, "contacts", "manage", secretary="canSendNotifications")

    # push subscriptions
    allow(ALL_ROLES, "subscriptions", "manage")
    allow(ADMINS, "subscriptions", "delete_any")

    # system
    allow((SUPERADMIN,), "maintenance", "manage")
    allow(ALL_ROLES, "themes", "view")
    allow((SUPERADMIN,), "themes", "manage")
    return rules


class AuthorizationPolicy:
    def __init__(self, rules: Dict[Tuple[str, str, str], Grant]):
        self.rules = rules

    def is_allowed(self, user: User, resource: str, action: str) -> bool:
        grant = self.rules.get((user.role, resource, action), False)
        if isinstance(grant, str):
            return user.has_secretary_permission(grant)
        return bool(grant)

    def enforce(self, user: User, resource: str, action: str, detail: str = None) -> None:
        if not self.is_allowed(user, resource, action):
            logger.warning(
                f"Access denied: user={user.id} role={user.role} resource={resource} action={action}"
            )
            raise Forbidden(detail or f"Not authorized to {action.replace('_', ' ')} {resource}")


policy = AuthorizationPolicy(_rules())


def authorize(resource: str, action: str):
    """Route dependency: resolves the current user and enforces ``(resource, action)``."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        policy.enforce(user, resource, action)
        return user

    return dependency


def require_feature(feature_name: str):
    """School feature toggles are switched off: every request proceeds."""

    async def dependency() -> None:
        logger.info(f"Feature permission checking DISABLED - allowing access to '{feature_name}'")

    return dependency
