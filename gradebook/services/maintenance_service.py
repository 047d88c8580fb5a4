# gradebook/services/maintenance_service.py
"""System-wide maintenance switch and its change history."""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BadRequest
from ..models.base import utcnow
from ..models.maintenance import (
    BYPASS_ROLES,
    MAX_HISTORY_ENTRIES,
    MAX_MESSAGE_LENGTH,
    MaintenanceHistory,
    SystemMaintenance,
)
from ..models.user import User
from ..schemas.common import iso, naive_utc, str_id
from ..schemas.maintenance_schemas import MaintenanceUpdate

logger = logging.getLogger(__name__)


class MaintenanceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def current(self) -> SystemMaintenance:
        """Return the single maintenance row, creating the default one on first use."""
        result = await self.db.execute(select(SystemMaintenance).order_by(SystemMaintenance.created_at).limit(1))
        maintenance = result.scalar_one_or_none()
        if maintenance is None:
            maintenance = SystemMaintenance(is_maintenance_mode=False, allowed_roles=[])
            self.db.add(maintenance)
            await self.db.commit()
            await self.db.refresh(maintenance)
            logger.info("Created default maintenance settings")
        return maintenance

    async def _users(self, ids) -> Dict[UUID, dict]:
        ids = {i for i in ids if i}
        if not ids:
            return {}
        rows = await self.db.execute(select(User.id, User.name, User.email, User.role).where(User.id.in_(ids)))
        return {
            user_id: {"_id": str(user_id), "name": name, "email": email, "role": role}
            for user_id, name, email, role in rows.all()
        }

    async def to_dict(self, maintenance: SystemMaintenance) -> dict:
        users = await self._users([maintenance.last_modified_by])
        return {
            "_id": str(maintenance.id),
            "isMaintenanceMode": maintenance.is_maintenance_mode,
            "maintenanceMessage": maintenance.maintenance_message,
            "estimatedCompletion": iso(maintenance.estimated_completion),
            "lastModifiedBy": users.get(maintenance.last_modified_by),
            "reason": maintenance.reason or "",
            "allowedRoles": maintenance.allowed_roles or [],
            "createdAt": iso(maintenance.created_at),
            "updatedAt": iso(maintenance.updated_at),
        }

    async def status(self, user: Optional[User] = None) -> dict:
        maintenance = await self.current()
        data = {
            "isMaintenanceMode": maintenance.is_maintenance_mode,
            "maintenanceMessage": maintenance.maintenance_message,
            "estimatedCompletion": iso(maintenance.estimated_completion),
        }
        if user is not None:
            data["canBypass"] = maintenance.can_bypass(user.role)
            data["userRole"] = user.role
        return data

    async def details(self) -> dict:
        maintenance = await self.current()
        data = await self.to_dict(maintenance)
        data["maintenanceHistory"] = await self._history_entries(maintenance.id)
        return data

    async def update(self, data: MaintenanceUpdate, actor: User) -> dict:
        if not isinstance(data.is_maintenance_mode, bool):
            raise BadRequest("isMaintenanceMode must be a boolean")
        if data.maintenance_message and len(data.maintenance_message) > MAX_MESSAGE_LENGTH:
            raise BadRequest(f"maintenanceMessage cannot exceed {MAX_MESSAGE_LENGTH} characters")

        maintenance = await self.current()
        previous_state = {
            "isMaintenanceMode": maintenance.is_maintenance_mode,
            "maintenanceMessage": maintenance.maintenance_message,
        }
        if data.is_maintenance_mode == maintenance.is_maintenance_mode:
            action = "updated"
        else:
            action = "enabled" if data.is_maintenance_mode else "disabled"

        fields = data.model_fields_set
        maintenance.is_maintenance_mode = data.is_maintenance_mode
        maintenance.reason = data.reason or ""
        if "maintenance_message" in fields and data.maintenance_message:
            maintenance.maintenance_message = data.maintenance_message
        if "estimated_completion" in fields:
            maintenance.estimated_completion = naive_utc(data.estimated_completion)
        if data.allowed_roles is not None:
            maintenance.allowed_roles = [role for role in data.allowed_roles if role in BYPASS_ROLES]
        maintenance.last_modified_by = actor.id

        self.db.add(
            MaintenanceHistory(
                maintenance_id=maintenance.id,
                action=action,
                timestamp=utcnow(),
                modified_by=actor.id,
                reason=data.reason or "",
                previous_state=previous_state,
            )
        )
        await self.db.flush()
        await self._trim_history(maintenance.id)
        await self.db.commit()
        await self.db.refresh(maintenance)
        logger.warning(
            f"Maintenance mode {action} by {actor.id}: active={maintenance.is_maintenance_mode}, "
            f"allowed roles={maintenance.allowed_roles}"
        )
        state = "enabled" if maintenance.is_maintenance_mode else "disabled"
        return {
            "message": f"Maintenance mode {state} successfully",
            "maintenance": await self.to_dict(maintenance),
        }

    async def _trim_history(self, maintenance_id: UUID):
        keep = (
            select(MaintenanceHistory.id)
            .where(MaintenanceHistory.maintenance_id == maintenance_id)
            .order_by(MaintenanceHistory.timestamp.desc(), MaintenanceHistory.created_at.desc())
            .limit(MAX_HISTORY_ENTRIES)
        )
        kept = list((await self.db.execute(keep)).scalars().all())
        await self.db.execute(
            delete(MaintenanceHistory).where(
                MaintenanceHistory.maintenance_id == maintenance_id,
                MaintenanceHistory.id.not_in(kept),
            )
        )

    async def _history_entries(self, maintenance_id: UUID) -> List[dict]:
        result = await self.db.execute(
            select(MaintenanceHistory)
            .where(MaintenanceHistory.maintenance_id == maintenance_id)
            .order_by(MaintenanceHistory.timestamp.desc(), MaintenanceHistory.created_at.desc())
        )
        entries = list(result.scalars().all())
        users = await self._users(e.modified_by for e in entries)
        return [
            {
                "_id": str(e.id),
                "action": e.action,
                "timestamp": iso(e.timestamp),
                "modifiedBy": users.get(e.modified_by) or str_id(e.modified_by),
                "reason": e.reason or "",
                "previousState": e.previous_state or {},
            }
            for e in entries
        ]

    async def history(self) -> dict:
        maintenance = await self.current()
        entries = await self._history_entries(maintenance.id)
        return {"history": entries, "totalEntries": len(entries)}

    async def clear_history(self) -> dict:
        maintenance = await self.current()
        await self.db.execute(delete(MaintenanceHistory).where(MaintenanceHistory.maintenance_id == maintenance.id))
        await self.db.commit()
        logger.info("Maintenance history cleared")
        return {"message": "Maintenance history cleared successfully"}
