# gradebook/schemas/subscription_schemas.py
from datetime import datetime
from typing import Optional

from .common import CamelModel


class SubscriptionKeys(CamelModel):
    p256dh: Optional[str] = None
    auth: Optional[str] = None


class SubscriptionCreate(CamelModel):
    # browser PushSubscription.toJSON() shape
    endpoint: Optional[str] = None
    expiration_time: Optional[datetime] = None
    keys: Optional[SubscriptionKeys] = None


class UnsubscribeRequest(CamelModel):
    endpoint: Optional[str] = None
