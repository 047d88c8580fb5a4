"""Class endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.class_schemas import ClassCreate, ClassStudents, ClassTeachers, ClassUpdate
from ..services.class_service import ClassService

router = APIRouter(prefix="/api/classes", tags=["Classes"], dependencies=[Depends(check_maintenance_mode)])


@router.post("/", status_code=201)
async def create_class(
    data: ClassCreate,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).create_class(data, user, ctx)


@router.get("/")
async def list_classes(
    subject: Optional[str] = Query(None),
    direction: Optional[str] = Query(None),
    school_branch: Optional[str] = Query(None, alias="schoolBranch"),
    teacher: Optional[UUID] = Query(None),
    student: Optional[UUID] = Query(None),
    user: User = Depends(authorize("classes", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Classes visible to the caller, with case-insensitive text filters"""
    return await ClassService(db).list_classes(user, ctx, subject, direction, school_branch, teacher, student)


@router.get("/categories")
async def class_categories(
    user: User = Depends(authorize("classes", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).categories(ctx)


@router.get("/my-teaching-classes")
async def my_teaching_classes(
    user: User = Depends(authorize("classes", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).my_teaching_classes(user, ctx)


@router.get("/my-classes")
async def my_classes(
    user: User = Depends(authorize("classes", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).my_classes(user, ctx)


@router.get("/{class_id}")
async def get_class(
    class_id: UUID,
    user: User = Depends(authorize("classes", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).get_class(class_id, user, ctx)


@router.put("/{class_id}")
async def update_class(
    class_id: UUID,
    data: ClassUpdate,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).update_class(class_id, data, ctx)


@router.delete("/{class_id}")
async def delete_class(
    class_id: UUID,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).delete_class(class_id, ctx)


@router.put("/{class_id}/students")
async def add_class_students(
    class_id: UUID,
    data: ClassStudents,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).add_students(class_id, data.students, ctx)


@router.delete("/{class_id}/students")
async def remove_class_students(
    class_id: UUID,
    data: ClassStudents,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).remove_students(class_id, data.students, ctx)


@router.put("/{class_id}/teachers")
async def add_class_teachers(
    class_id: UUID,
    data: ClassTeachers,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).add_teachers(class_id, data.teachers, ctx)


@router.delete("/{class_id}/teachers")
async def remove_class_teachers(
    class_id: UUID,
    data: ClassTeachers,
    user: User = Depends(authorize("classes", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ClassService(db).remove_teachers(class_id, data.teachers, ctx)
