"""Subject endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.subject_schemas import SubjectCreate, SubjectUpdate
from ..services.subject_service import SubjectService

router = APIRouter(prefix="/api/subjects", tags=["Subjects"], dependencies=[Depends(check_maintenance_mode)])


@router.get("/")
async def list_subjects(
    school_id: Optional[UUID] = Query(None, alias="schoolId"),
    user: User = Depends(authorize("subjects", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).list_subjects(ctx, school_id)


@router.get("/teacher")
async def my_subjects(
    user: User = Depends(authorize("subjects", "list_teacher")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Subjects the calling teacher is linked to"""
    return await SubjectService(db).subjects_for_teacher(user.id, ctx)


@router.get("/direction/{direction}")
async def subjects_by_direction(
    direction: str,
    user: User = Depends(authorize("subjects", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).subjects_for_direction(direction, ctx)


@router.get("/{subject_id}")
async def get_subject(
    subject_id: UUID,
    user: User = Depends(authorize("subjects", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).get_subject(subject_id, ctx)


@router.post("/", status_code=201)
async def create_subject(
    data: SubjectCreate,
    user: User = Depends(authorize("subjects", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).create_subject(data, ctx)


@router.put("/{subject_id}")
async def update_subject(
    subject_id: UUID,
    data: SubjectUpdate,
    user: User = Depends(authorize("subjects", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).update_subject(subject_id, data, ctx)


@router.delete("/{subject_id}")
async def delete_subject(
    subject_id: UUID,
    user: User = Depends(authorize("subjects", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SubjectService(db).delete_subject(subject_id, ctx)
