# gradebook/models/maintenance.py
"""System-wide maintenance switch (single row) and its change log."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Uuid
from .base import Base, utcnow

DEFAULT_MAINTENANCE_MESSAGE = (
    "The system is currently under maintenance. Please try again later."
)
MAX_MESSAGE_LENGTH = 500
MAX_REASON_LENGTH = 200
MAX_HISTORY_ENTRIES = 20
BYPASS_ROLES = ("admin", "teacher", "student", "parent")


class SystemMaintenance(Base):
    __tablename__ = "system_maintenance"

    is_maintenance_mode = Column(Boolean, default=False, nullable=False)
    maintenance_message = Column(String(MAX_MESSAGE_LENGTH), default=DEFAULT_MAINTENANCE_MESSAGE, nullable=False)
    estimated_completion = Column(DateTime)
    last_modified_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    reason = Column(String(MAX_REASON_LENGTH))
    allowed_roles = Column(JSON, default=list, nullable=False)

    def can_bypass(self, role: str) -> bool:
        return role == "superadmin" or role in (self.allowed_roles or [])


class MaintenanceHistory(Base):
    __tablename__ = "maintenance_history"

    maintenance_id = Column(Uuid, ForeignKey("system_maintenance.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # enabled / disabled / updated
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    modified_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    reason = Column(String(MAX_REASON_LENGTH))
    previous_state = Column(JSON)
