# gradebook/models/subscription.py
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint
from .base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True, index=True)
    is_superadmin = Column(Boolean, default=False, nullable=False)

    endpoint = Column(String(1000), nullable=False)
    expiration_time = Column(DateTime)
    keys_p256dh = Column(String(255), nullable=False)
    keys_auth = Column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_subscription_user_endpoint"),
    )
