# gradebook/models/school.py
"""School (tenant) model definition."""
from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import validates
from .base import Base


class School(Base):
    __tablename__ = "schools"

    name = Column(String(200), nullable=False, unique=True)
    address = Column(String(500), nullable=False)
    phone = Column(String(30))
    email = Column(String(254))
    school_domain = Column(String(100), nullable=False)
    email_domain = Column(String(150), nullable=False, unique=True)
    active = Column(Boolean, default=True, nullable=False)

    @validates('school_domain', 'email_domain')
    def validate_domain(self, key, value):
        if not value or not value.strip():
            raise ValueError(f"{key} is required")
        return value.strip().lower()

    __table_args__ = (
        Index('idx_school_active_domain', 'active', 'email_domain'),
    )
