"""Grade endpoints."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize, require_feature
from ..models.user import User
from ..schemas.grade_schemas import GradeCreate, GradeUpdate
from ..services.grade_service import GradeService

router = APIRouter(
    prefix="/api/grades",
    tags=["Grades"],
    dependencies=[Depends(check_maintenance_mode), Depends(require_feature("enableGrades"))],
)


@router.get("/")
async def list_grades(
    student: Optional[UUID] = Query(None),
    subject: Optional[UUID] = Query(None),
    teacher: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user: User = Depends(authorize("grades", "list")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Grades of the school, newest first"""
    return await GradeService(db).list_grades(ctx, student, subject, teacher, start_date, end_date)


@router.post("/", status_code=201)
async def create_grade(
    data: GradeCreate,
    user: User = Depends(authorize("grades", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).create_grade(data, user, ctx)


@router.get("/student")
async def my_grades(
    user: User = Depends(authorize("grades", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """The calling student's own grades"""
    return await GradeService(db).grades_for_student(user.id, user, ctx)


@router.get("/student/{student_id}")
async def student_grades(
    student_id: UUID,
    user: User = Depends(authorize("grades", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).grades_for_student(student_id, user, ctx)


@router.get("/subject/{subject_id}")
async def subject_grades(
    subject_id: UUID,
    user: User = Depends(authorize("grades", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).grades_for_subject(subject_id, user, ctx)


@router.get("/teacher")
async def my_issued_grades(
    user: User = Depends(authorize("grades", "list")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).grades_for_teacher(user.id, user, ctx)


@router.get("/teacher/{teacher_id}")
async def teacher_grades(
    teacher_id: UUID,
    user: User = Depends(authorize("grades", "list")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).grades_for_teacher(teacher_id, user, ctx)


@router.get("/{grade_id}")
async def get_grade(
    grade_id: UUID,
    user: User = Depends(authorize("grades", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).get_grade(grade_id, user, ctx)


@router.put("/{grade_id}")
async def update_grade(
    grade_id: UUID,
    data: GradeUpdate,
    user: User = Depends(authorize("grades", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).update_grade(grade_id, data, user, ctx)


@router.delete("/{grade_id}")
async def delete_grade(
    grade_id: UUID,
    user: User = Depends(authorize("grades", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await GradeService(db).delete_grade(grade_id, user, ctx)
