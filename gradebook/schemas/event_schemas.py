# gradebook/schemas/event_schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import CamelModel, IdRefList

COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


class EventAudience(CamelModel):
    # free text; unknown values are normalized per creator role
    target_type: Optional[str] = None
    specific_users: Optional[IdRefList] = None
    schools: Optional[List[str]] = None
    directions: Optional[List[str]] = None


class EventCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    all_day: bool = True
    audience: Optional[EventAudience] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    tags: List[str] = Field(default_factory=list)


class EventUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    all_day: Optional[bool] = None
    audience: Optional[EventAudience] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    tags: Optional[List[str]] = None
