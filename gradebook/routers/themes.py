"""Theme endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import check_maintenance_mode
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.theme_schemas import ThemeCreate, ThemeUpdate
from ..services.theme_service import ThemeService

router = APIRouter(prefix="/api/themes", tags=["Themes"])

protected = [Depends(check_maintenance_mode)]


@router.get("/default")
async def default_theme(db: AsyncSession = Depends(get_db)):
    """Public so the login page can be styled before sign-in"""
    return await ThemeService(db).default_theme()


@router.get("/", dependencies=protected)
async def list_themes(
    user: User = Depends(authorize("themes", "view")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).list_themes()


@router.get("/{theme_id}", dependencies=protected)
async def get_theme(
    theme_id: UUID,
    user: User = Depends(authorize("themes", "view")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).get_theme(theme_id)


@router.post("/", status_code=201, dependencies=protected)
async def create_theme(
    data: ThemeCreate,
    user: User = Depends(authorize("themes", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).create_theme(data, user)


@router.put("/{theme_id}", dependencies=protected)
async def update_theme(
    theme_id: UUID,
    data: ThemeUpdate,
    user: User = Depends(authorize("themes", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).update_theme(theme_id, data, user)


@router.delete("/{theme_id}", dependencies=protected)
async def delete_theme(
    theme_id: UUID,
    user: User = Depends(authorize("themes", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).delete_theme(theme_id, user)


@router.patch("/{theme_id}/default", dependencies=protected)
async def set_default_theme(
    theme_id: UUID,
    user: User = Depends(authorize("themes", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ThemeService(db).set_default(theme_id, user)
