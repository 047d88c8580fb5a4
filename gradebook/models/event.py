# gradebook/models/event.py
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text, Uuid, Index
from .base import Base


class AudienceType(str, enum.Enum):
    ALL = "all"
    ADMINS = "admins"
    TEACHERS = "teachers"
    STUDENTS = "students"
    SPECIFIC = "specific"


class Event(Base):
    __tablename__ = "events"

    title = Column(String(200), nullable=False)
    description = Column(Text)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    all_day = Column(Boolean, default=False, nullable=False)

    creator_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    creator_role = Column(String(20), nullable=False)
    # NULL for events published by a superadmin
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True, index=True)

    target_type = Column(String(20), default=AudienceType.ALL.value, nullable=False)
    specific_users = Column(JSON, default=list, nullable=False)
    schools = Column(JSON, default=list, nullable=False)
    directions = Column(JSON, default=list, nullable=False)

    color = Column(String(20), default="#1976d2", nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_event_active_start", "is_active", "start_date"),
    )
