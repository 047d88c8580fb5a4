"""School (tenant) endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.school_schemas import SchoolCreate, SchoolUpdate
from ..services.school_service import SchoolService

router = APIRouter(prefix="/api/schools", tags=["Schools"], dependencies=[Depends(check_maintenance_mode)])


@router.get("/")
async def list_schools(
    user: User = Depends(authorize("schools", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    """Every school for superadmins, otherwise only the caller's own"""
    return await SchoolService(db).list_schools(ctx)


@router.post("/", status_code=201)
async def create_school(
    data: SchoolCreate,
    user: User = Depends(authorize("schools", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await SchoolService(db).create_school(data)


@router.get("/{school_id}")
async def get_school(
    school_id: UUID,
    user: User = Depends(authorize("schools", "view")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await SchoolService(db).get_school(school_id, ctx)


@router.put("/{school_id}")
async def update_school(
    school_id: UUID,
    data: SchoolUpdate,
    user: User = Depends(authorize("schools", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await SchoolService(db).update_school(school_id, data)
