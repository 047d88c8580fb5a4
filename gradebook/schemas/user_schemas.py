# gradebook/schemas/user_schemas.py
"""Pydantic schemas for users, authentication and parent accounts."""
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from ..models.user import User, UserRole
from .common import CamelModel, IdRefList, iso, str_id


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STUDENT


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    # checked in the service so the messages match the rest of the auth flow
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    mobile_phone: Optional[str] = Field(default=None, max_length=30)
    personal_email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)


class ParentDetails(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)


class AdminUserCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole
    mobile_phone: Optional[str] = Field(default=None, max_length=30)
    personal_email: Optional[EmailStr] = None
    secretary_permissions: Optional[Dict[str, bool]] = None
    can_send_notifications: Optional[bool] = None
    can_add_grade_descriptions: Optional[bool] = None
    email_credentials: bool = False
    # student accounts only: create (or reuse) a parent and link it
    parent: Optional[ParentDetails] = None


class UserUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    active: Optional[bool] = None
    mobile_phone: Optional[str] = Field(default=None, max_length=30)
    personal_email: Optional[EmailStr] = None
    can_send_notifications: Optional[bool] = None
    can_add_grade_descriptions: Optional[bool] = None
    secretary_permissions: Optional[Dict[str, bool]] = None
    password: Optional[str] = None


class CreateParentRequest(CamelModel):
    student_ids: IdRefList = Field(..., min_length=1)
    parent_name: str = Field(..., min_length=1, max_length=100)
    parent_email: EmailStr
    parent_password: str = Field(..., min_length=6)
    email_credentials: bool = False


class StudentIdsRequest(CamelModel):
    student_ids: IdRefList = Field(..., min_length=1)


def user_to_dict(
    user: User,
    linked_student_ids: Optional[List[UUID]] = None,
    parent_ids: Optional[List[UUID]] = None,
) -> dict:
    """Public representation of a user; the password hash never leaves the service."""
    data = {
        "_id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "schoolId": str_id(user.school_id),
        "active": user.active,
        "mobilePhone": user.mobile_phone,
        "personalEmail": user.personal_email,
        "secretaryPermissions": user.secretary_permissions,
        "adminPermissions": user.admin_permissions,
        "canSendNotifications": user.can_send_notifications,
        "canAddGradeDescriptions": user.can_add_grade_descriptions,
        "requirePasswordChange": user.require_password_change,
        "isFirstLogin": user.is_first_login,
        "lastLogin": iso(user.last_login),
        "createdAt": iso(user.created_at),
    }
    if linked_student_ids is not None:
        data["linkedStudentIds"] = [str(i) for i in linked_student_ids]
    if parent_ids is not None:
        data["parentIds"] = [str(i) for i in parent_ids]
    return data


def user_summary(user: User) -> dict:
    return {"_id": str(user.id), "name": user.name, "email": user.email, "role": user.role}
