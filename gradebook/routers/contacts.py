"""Contact messages: signed-in users, the public form and the admin inbox."""
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, check_maintenance_mode, get_client_ip, get_school_context, get_security_store
from ..core.database import get_db
from ..core.policy import authorize
from ..core.security_store import SecurityStore
from ..models.user import User
from ..schemas.contact_schemas import ContactCreate, ContactUpdate, PublicContactCreate
from ..services.contact_service import ContactService

router = APIRouter(prefix="/api/contact", tags=["Contact"])

protected = [Depends(check_maintenance_mode)]


@router.post("/public", status_code=201)
async def send_public_message(
    data: PublicContactCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: SecurityStore = Depends(get_security_store),
):
    """Contact form for visitors without an account; rate-limited per IP and e-mail"""
    return await ContactService(db).send_public_message(
        data,
        store,
        get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer", ""),
    )


@router.post("/", status_code=201, dependencies=protected)
async def send_message(
    data: ContactCreate,
    user: User = Depends(authorize("contacts", "send")),
    db: AsyncSession = Depends(get_db),
):
    return await ContactService(db).send_message(data, user)


@router.get("/user", dependencies=protected)
async def my_messages(
    user: User = Depends(authorize("contacts", "send")),
    db: AsyncSession = Depends(get_db),
):
    """The caller's messages; unread replies are marked read on the way out"""
    return await ContactService(db).user_messages(user)


@router.put("/user/{contact_id}/read", dependencies=protected)
async def mark_reply_read(
    contact_id: UUID,
    user: User = Depends(authorize("contacts", "send")),
    db: AsyncSession = Depends(get_db),
):
    return await ContactService(db).mark_reply_read(contact_id, user)


@router.get("/", dependencies=protected)
async def list_messages(
    user: User = Depends(authorize("contacts", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ContactService(db).list_messages(user, ctx)


@router.put("/{contact_id}", dependencies=protected)
async def update_message(
    contact_id: UUID,
    data: ContactUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(authorize("contacts", "manage")),
    ctx: SchoolContext = Depends(get_school_context),
    db: AsyncSession = Depends(get_db),
):
    return await ContactService(db).update_message(contact_id, data, ctx, background_tasks)
