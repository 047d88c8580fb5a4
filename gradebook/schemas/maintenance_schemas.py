# gradebook/schemas/maintenance_schemas.py
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from ..models.maintenance import MAX_REASON_LENGTH
from .common import CamelModel


class MaintenanceUpdate(CamelModel):
    # type-checked in the service to report "must be a boolean" like the admin UI expects
    is_maintenance_mode: Any = None
    maintenance_message: Optional[str] = None
    estimated_completion: Optional[datetime] = None
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)
    allowed_roles: Optional[List[str]] = None
