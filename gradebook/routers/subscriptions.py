"""Web-push subscription endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import check_maintenance_mode
from ..core.database import get_db
from ..core.policy import authorize
from ..models.user import User
from ..schemas.subscription_schemas import SubscriptionCreate, UnsubscribeRequest
from ..services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"], dependencies=[Depends(check_maintenance_mode)])


@router.get("/vapid-public-key")
async def vapid_public_key(user: User = Depends(authorize("subscriptions", "manage"))):
    return SubscriptionService.vapid_public_key()


@router.post("/")
async def register_subscription(
    data: SubscriptionCreate,
    response: Response,
    user: User = Depends(authorize("subscriptions", "manage")),
    db: AsyncSession = Depends(get_db),
):
    status_code, body = await SubscriptionService(db).register(data, user)
    response.status_code = status_code
    return body


@router.get("/")
async def my_subscriptions(
    user: User = Depends(authorize("subscriptions", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).my_subscriptions(user)


@router.delete("/{subscription_id}")
async def delete_subscription(
    subscription_id: UUID,
    user: User = Depends(authorize("subscriptions", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).delete_subscription(subscription_id, user)


@router.post("/unsubscribe")
async def unsubscribe(
    data: UnsubscribeRequest,
    user: User = Depends(authorize("subscriptions", "manage")),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).unsubscribe(data.endpoint, user)
