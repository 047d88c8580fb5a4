"""Student grade statistics endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..services.stats_service import StudentStatsService

router = APIRouter(
    prefix="/api/stats",
    tags=["Statistics"],
    dependencies=[Depends(check_maintenance_mode)],
)


@router.get("/students")
async def student_stats(
    search: Optional[str] = Query(None),
    user: User = Depends(authorize("stats", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Grade count, average and per-subject breakdown for each visible student"""
    return await StudentStatsService(db).student_stats(user, ctx, search)


@router.get("/students/{student_id}")
async def student_detail(
    student_id: UUID,
    user: User = Depends(authorize("stats", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await StudentStatsService(db).student_detail(student_id, user, ctx)
