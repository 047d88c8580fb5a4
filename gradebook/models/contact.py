# gradebook/models/contact.py
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Uuid, Index
from .base import Base


class ContactStatus(str, enum.Enum):
    NEW = "new"
    READ = "read"
    REPLIED = "replied"
    CLOSED = "closed"


class Contact(Base):
    __tablename__ = "contacts"

    # Both NULL for messages sent through the public form
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True, index=True)

    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), default=ContactStatus.NEW.value, nullable=False)
    read = Column(Boolean, default=False, nullable=False)

    user_name = Column(String(100))
    user_email = Column(String(254))
    user_role = Column(String(20))

    admin_reply = Column(Text)
    admin_reply_date = Column(DateTime)
    reply_read = Column(Boolean, default=False, nullable=False)

    is_bug_report = Column(Boolean, default=False, nullable=False)
    is_public_contact = Column(Boolean, default=False, nullable=False)
    client_ip = Column(String(64))
    user_agent = Column(String(500))
    referrer = Column(String(500))

    __table_args__ = (
        Index("idx_contact_school_status", "school_id", "status"),
    )
