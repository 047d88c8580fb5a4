"""System maintenance switch."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import get_optional_user
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.maintenance_schemas import MaintenanceUpdate
from ..services.maintenance_service import MaintenanceService

router = APIRouter(prefix="/api/system/maintenance", tags=["Maintenance"])


@router.get("/status")
async def maintenance_status(
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Public; a signed-in caller also learns whether they may bypass"""
    return await MaintenanceService(db).status(user)


@router.get("/")
async def maintenance_details(
    user: User = Depends(authorize("maintenance", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceService(db).details()


@router.put("/")
async def update_maintenance(
    data: MaintenanceUpdate,
    user: User = Depends(authorize("maintenance", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceService(db).update(data, user)


@router.get("/history")
async def maintenance_history(
    user: User = Depends(authorize("maintenance", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceService(db).history()


@router.delete("/history")
async def clear_maintenance_history(
    user: User = Depends(authorize("maintenance", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceService(db).clear_history()
