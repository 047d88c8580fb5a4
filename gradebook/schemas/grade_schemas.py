# gradebook/schemas/grade_schemas.py
from datetime import date as date_type, datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import Field

from .common import CamelModel

GradeDate = Union[date_type, datetime]


class GradeCreate(CamelModel):
    student: UUID
    subject: UUID
    value: int = Field(..., ge=0, le=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    # defaults to today; a full timestamp is reduced to its day
    date: Optional[GradeDate] = None


class GradeUpdate(CamelModel):
    student: Optional[UUID] = None
    subject: Optional[UUID] = None
    value: Optional[int] = Field(default=None, ge=0, le=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    date: Optional[GradeDate] = None


def grade_day(value: Optional[GradeDate]) -> Optional[date_type]:
    if isinstance(value, datetime):
        return value.date()
    return value
