"""Calendar event endpoints."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import check_maintenance_mode, get_school_context
from ..core.database import get_db
from ..core.policy import authorize, require_feature
from ..models.user import User
from ..schemas.event_schemas import EventCreate, EventUpdate
from ..services.event_service import EventService

router = APIRouter(
    prefix="/api/events",
    tags=["Events"],
    dependencies=[
        Depends(check_maintenance_mode),
        Depends(get_school_context),
        Depends(require_feature("enableCalendar")),
    ],
)


@router.get("/")
async def list_events(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    tags: Optional[str] = Query(None, description="Comma-separated tag list"),
    user: User = Depends(authorize("events", "view")),
    db: AsyncSession = Depends(get_db),
):
    return await EventService(db).list_events(user, start_date, end_date, tags)


@router.get("/{event_id}")
async def get_event(
    event_id: UUID,
    user: User = Depends(authorize("events", "view")),
    db: AsyncSession = Depends(get_db),
):
    return await EventService(db).get_event(event_id, user)


@router.post("/", status_code=201)
async def create_event(
    data: EventCreate,
    user: User = Depends(authorize("events", "manage")),
    db: AsyncSession = Depends(get_db),
):
    """Create an event; the audience is narrowed to what the caller's role may target"""
    return await EventService(db).create_event(data, user)


@router.put("/{event_id}")
async def update_event(
    event_id: UUID,
    data: EventUpdate,
    user: User = Depends(authorize("events", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await EventService(db).update_event(event_id, data, user)


@router.delete("/{event_id}")
async def delete_event(
    event_id: UUID,
    user: User = Depends(authorize("events", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await EventService(db).delete_event(event_id, user)
