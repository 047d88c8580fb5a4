# gradebook/services/subscription_service.py
import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import BadRequest, Forbidden, NotConfigured, NotFound
from ..core.policy import policy
from ..models.subscription import Subscription
from ..models.user import User
from ..schemas.common import iso, naive_utc, str_id
from ..schemas.subscription_schemas import SubscriptionCreate
from .base_service import BaseService

logger = logging.getLogger(__name__)


def subscription_to_dict(sub: Subscription) -> dict:
    return {
        "_id": str(sub.id),
        "user": str(sub.user_id),
        "schoolId": str_id(sub.school_id),
        "isSuperadmin": sub.is_superadmin,
        "endpoint": sub.endpoint,
        "expirationTime": iso(sub.expiration_time),
        "keys": {"p256dh": sub.keys_p256dh, "auth": sub.keys_auth},
        "createdAt": iso(sub.created_at),
        "updatedAt": iso(sub.updated_at),
    }


class SubscriptionService(BaseService[Subscription]):
    resource_name = "Subscription"

    def __init__(self, db: AsyncSession):
        super().__init__(Subscription, db)

    @staticmethod
    def vapid_public_key() -> dict:
        if not settings.vapid_public_key:
            logger.error("VAPID_PUBLIC_KEY is not configured")
            raise NotConfigured("VAPID public key not configured on server")
        return {"vapidPublicKey": settings.vapid_public_key}

    async def _find(self, user_id: UUID, endpoint: str):
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == user_id, Subscription.endpoint == endpoint)
        )
        return result.scalar_one_or_none()

    async def register(self, data: SubscriptionCreate, user: User) -> Tuple[int, dict]:
        """Create or refresh the caller's subscription for an endpoint; returns (status, body)."""
        if not data.endpoint or not data.keys or not data.keys.p256dh or not data.keys.auth:
            logger.warning(f"Invalid subscription data from user {user.id}")
            raise BadRequest("Invalid subscription data")

        is_superadmin = user.is_superadmin
        existing = await self._find(user.id, data.endpoint)
        values = {
            "expiration_time": naive_utc(data.expiration_time),
            "keys_p256dh": data.keys.p256dh,
            "keys_auth": data.keys.auth,
            "is_superadmin": is_superadmin,
            "school_id": None if is_superadmin else user.school_id,
        }

        if existing:
            changed = any(getattr(existing, key) != value for key, value in values.items())
            if not changed:
                return 200, {"message": "Subscription unchanged"}
            await self.update(existing, values)
            logger.info(f"Subscription updated for user {user.id}")
            return 200, {"message": "Subscription updated"}

        self.db.add(Subscription(user_id=user.id, endpoint=data.endpoint, **values))
        try:
            await self.db.commit()
        except IntegrityError:
            # a concurrent request registered the same endpoint first
            await self.db.rollback()
            return 200, {"message": "Subscription already exists"}
        logger.info(f"Subscription created for user {user.id} ({user.role})")
        return 201, {"message": "Subscription created"}

    async def my_subscriptions(self, user: User) -> List[dict]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == user.id).order_by(Subscription.created_at)
        )
        return [subscription_to_dict(s) for s in result.scalars().all()]

    async def delete_subscription(self, subscription_id: UUID, user: User) -> dict:
        sub = await self.get_or_404(subscription_id, user.school_id if not user.is_superadmin else None)
        if sub.user_id != user.id and not policy.is_allowed(user, "subscriptions", "delete_any"):
            raise Forbidden("Not authorized")
        await self.hard_delete(sub)
        return {"message": "Subscription removed"}

    async def unsubscribe(self, endpoint: str, user: User) -> dict:
        if not endpoint:
            raise BadRequest("Endpoint is required")
        sub = await self._find(user.id, endpoint)
        if not sub:
            raise NotFound("Subscription")
        await self.hard_delete(sub)
        logger.info(f"Subscription removed by endpoint for user {user.id}")
        return {"message": "Subscription removed"}
