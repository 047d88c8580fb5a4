# gradebook/schemas/class_schemas.py
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field

from .common import CamelModel, IdRefList

Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ScheduleSlot(CamelModel):
    day: Weekday
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)


class ClassCreate(CamelModel):
    """Class payload; the admin UI posts ``subjectName``/``directionName``/``schoolId`` variants."""
    name: Optional[str] = Field(default=None, max_length=100)
    subject: Optional[str] = Field(
        default=None, max_length=100, validation_alias=AliasChoices("subject", "subjectName")
    )
    direction: Optional[str] = Field(
        default=None, max_length=100, validation_alias=AliasChoices("direction", "directionName")
    )
    school_branch: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("schoolBranch", "schoolId", "school_branch"),
    )
    description: Optional[str] = None
    students: IdRefList = Field(default_factory=list)
    teachers: IdRefList = Field(default_factory=list)
    schedule: List[ScheduleSlot] = Field(default_factory=list)


class ClassUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=100)
    direction: Optional[str] = Field(default=None, min_length=1, max_length=100)
    school_branch: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    schedule: Optional[List[ScheduleSlot]] = None
    active: Optional[bool] = None
    students: Optional[IdRefList] = None
    teachers: Optional[IdRefList] = None


class ClassStudents(CamelModel):
    students: IdRefList


class ClassTeachers(CamelModel):
    teachers: IdRefList
