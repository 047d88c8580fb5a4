# gradebook/models/user.py
"""User model and the parent-student link table."""
import enum
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, JSON, Table, Uuid,
    UniqueConstraint, Index
)
from .base import Base


class UserRole(str, enum.Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    SECRETARY = "secretary"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


SECRETARY_PERMISSION_KEYS = (
    "canManageGrades",
    "canSendNotifications",
    "canManageUsers",
    "canManageSchools",
    "canManageDirections",
    "canManageSubjects",
    "canAccessStudentProgress",
)

ADMIN_PERMISSION_KEYS = SECRETARY_PERMISSION_KEYS + ("canAccessReports", "canManageEvents")


def default_secretary_permissions() -> dict:
    return {key: False for key in SECRETARY_PERMISSION_KEYS}


def default_admin_permissions() -> dict:
    return {key: True for key in ADMIN_PERMISSION_KEYS}


# One row is the whole parent<->student link, written or removed in a single statement.
parent_students = Table(
    "parent_students",
    Base.metadata,
    Column("parent_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value, index=True)
    # NULL only for superadmin
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True, index=True)
    active = Column(Boolean, default=True, nullable=False)

    mobile_phone = Column(String(30))
    personal_email = Column(String(254))

    secretary_permissions = Column(JSON, default=default_secretary_permissions, nullable=False)
    admin_permissions = Column(JSON, default=default_admin_permissions, nullable=False)
    can_send_notifications = Column(Boolean, default=True, nullable=False)
    can_add_grade_descriptions = Column(Boolean, default=True, nullable=False)

    require_password_change = Column(Boolean, default=False, nullable=False)
    is_first_login = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime)
    last_password_change = Column(DateTime)

    __table_args__ = (
        UniqueConstraint('email', 'school_id', name='uq_user_email_school'),
        Index('idx_user_school_role', 'school_id', 'role'),
    )

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN.value

    def has_secretary_permission(self, key: str) -> bool:
        return bool((self.secretary_permissions or {}).get(key, False))
