# gradebook/schemas/subject_schemas.py
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel, IdRefList


class SubjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    teachers: IdRefList = Field(default_factory=list)
    directions: List[str] = Field(default_factory=list)
    # superadmin only; everyone else writes into their own school
    school_id: Optional[UUID] = None


class SubjectUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    teachers: Optional[IdRefList] = None
    directions: Optional[List[str]] = None
