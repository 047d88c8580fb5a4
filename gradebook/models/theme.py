# gradebook/models/theme.py
import re
from sqlalchemy import Column, String, Boolean, ForeignKey, Uuid, Index
from sqlalchemy.orm import validates
from .base import Base

HEX_COLOR = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')


class Theme(Base):
    __tablename__ = "themes"

    name = Column(String(50), nullable=False)
    description = Column(String(200), nullable=False)
    primary_color = Column(String(7), nullable=False)
    secondary_color = Column(String(7), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # NULL for the built-in fallback theme
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @validates('primary_color', 'secondary_color')
    def validate_color(self, key, value):
        if not value or not HEX_COLOR.match(value):
            raise ValueError(f"{key} must be a valid hex color (e.g., #FF0000 or #F00)")
        return value

    __table_args__ = (
        Index('idx_theme_active_default', 'is_active', 'is_default'),
    )
