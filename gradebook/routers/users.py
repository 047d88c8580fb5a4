"""Authentication, user management and parent-student links."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import (
    SchoolContext,
    check_maintenance_mode,
    get_client_ip,
    get_current_user,
    get_school_context,
    get_security_store,
)
from ..core.database import get_db
from ..core.policy import authorize, policy
from ..core.security_store import SecurityStore
from ..models.user import User, UserRole
from ..schemas.user_schemas import (
    AdminUserCreate,
    ChangePasswordRequest,
    CreateParentRequest,
    LoginRequest,
    LogoutRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    StudentIdsRequest,
    UserUpdate,
)
from ..services.auth_service import AuthService
from ..services.email_service import email_service
from ..services.user_service import UserService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["Users"])

protected = [Depends(check_maintenance_mode)]


# ---- authentication -----------------------------------------------------

@router.post("/", status_code=201)
async def register_user(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    """Self-registration; the e-mail domain decides the school"""
    return await AuthService(db, store).register(data)


@router.post("/login")
async def login_user(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    return await AuthService(db, store).login(data.email, data.password, get_client_ip(request))


@router.post("/refresh-token")
async def refresh_token(
    data: RefreshTokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    """Rotate a refresh token; the presented token is revoked"""
    return await AuthService(db, store).refresh(data.refresh_token, get_client_ip(request))


@router.post("/logout")
async def logout_user(
    data: LogoutRequest,
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    return await AuthService(db, store).logout(data.refresh_token)


@router.get("/me", dependencies=protected)
async def get_me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await UserService(db).to_dict(user)


@router.get("/profile", dependencies=protected)
async def get_profile(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await UserService(db).to_dict(user)


@router.put("/profile", dependencies=protected)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).update_profile(user, data)


@router.post("/change-password", dependencies=protected)
async def change_password(
    data: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    return await AuthService(db, store).change_password(user, data.current_password, data.new_password)


# ---- login attempt administration --------------------------------------

@router.get("/login-attempts/stats", dependencies=protected)
async def login_attempt_stats(
    user: User = Depends(authorize("security", "manage")),
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    return await AuthService(db, store).login_stats()


@router.delete("/login-attempts/{ip}", dependencies=protected)
async def clear_login_attempts(
    ip: str,
    user: User = Depends(authorize("security", "manage")),
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    logger.info(f"Login attempts for {ip} cleared by {user.id}")
    return await AuthService(db, store).clear_login_attempts(ip)


# ---- user management -----------------------------------------------------

@router.get("/", dependencies=protected)
async def list_users(
    role: Optional[str] = Query(None),
    user: User = Depends(authorize("users", "list")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """All users of the caller's school (every school for superadmins)"""
    service = UserService(db)
    return [await service.to_dict(u) for u in await service.list_users(ctx, role=role)]


@router.post("/admin/create", status_code=201, dependencies=protected)
async def admin_create_user(
    data: AdminUserCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("users", "create")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    result = await UserService(db).create_by_admin(data, user, ctx)
    if data.email_credentials:
        created = result["user"]
        background_tasks.add_task(
            email_service.send_credentials,
            data.personal_email or created["email"],
            created["name"],
            created["email"],
            data.password,
            created["role"],
        )
        if data.parent and result["parentCreated"]:
            background_tasks.add_task(
                email_service.send_credentials,
                result["parent"]["email"],
                result["parent"]["name"],
                result["parent"]["email"],
                data.parent.password,
                UserRole.PARENT.value,
            )
    return result


@router.get("/students", dependencies=protected)
async def list_students(
    user: User = Depends(authorize("users", "list_students")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    service = UserService(db)
    return [await service.to_dict(u) for u in await service.list_users(ctx, role=UserRole.STUDENT.value)]


@router.get("/teacher-students", dependencies=protected)
async def list_teacher_students(
    user: User = Depends(authorize("users", "list_teacher_students")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Students sharing a class with the calling teacher; staff see every student"""
    service = UserService(db)
    return [await service.to_dict(u) for u in await service.teacher_students(user, ctx)]


@router.get("/role/{role}", dependencies=protected)
async def list_users_by_role(
    role: str,
    user: User = Depends(authorize("users", "list_by_role")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    service = UserService(db)
    return [await service.to_dict(u) for u in await service.list_by_role(user, ctx, role)]


# ---- parents -------------------------------------------------------------

@router.post("/create-parent", dependencies=protected)
async def create_parent(
    data: CreateParentRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("parents", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    result = await UserService(db).create_parent_account(data, user, ctx)
    response.status_code = 201 if result["created"] else 200
    if result["created"] and data.email_credentials:
        background_tasks.add_task(
            email_service.send_credentials,
            result["parent"]["email"],
            result["parent"]["name"],
            result["parent"]["email"],
            data.parent_password,
            UserRole.PARENT.value,
        )
    return result


@router.get("/student/{student_id}/parents", dependencies=protected)
async def get_student_parents(
    student_id: UUID,
    user: User = Depends(authorize("parents", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get_parents_by_student(student_id, ctx)


@router.get("/parent/students-data", dependencies=protected)
async def get_parent_students_data(
    user: User = Depends(authorize("parents", "view_children")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Linked children with their most recent grades"""
    return await UserService(db).students_data_for_parent(user)


@router.get("/parent/{parent_id}/students", dependencies=protected)
async def get_parent_students(
    parent_id: UUID,
    user: User = Depends(authorize("parents", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get_students_by_parent(parent_id, ctx)


@router.delete("/parent/{parent_id}/students", dependencies=protected)
async def unlink_parent_students(
    parent_id: UUID,
    data: StudentIdsRequest,
    user: User = Depends(authorize("parents", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).unlink_parent(parent_id, data.student_ids, user, ctx)


# ---- single user ---------------------------------------------------------

@router.get("/{user_id}", dependencies=protected)
async def get_user(
    user_id: UUID,
    user: User = Depends(get_current_user),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    if user_id != user.id:
        policy.enforce(user, "users", "view_any")
    service = UserService(db)
    return await service.to_dict(await service.get_or_404(user_id, ctx.school_id))


@router.put("/{user_id}", dependencies=protected)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    user: User = Depends(authorize("users", "update")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).update_user(user_id, data, user, ctx)


@router.delete("/{user_id}", dependencies=protected)
async def delete_user(
    user_id: UUID,
    user: User = Depends(authorize("users", "delete")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).delete_user(user_id, user, ctx)
