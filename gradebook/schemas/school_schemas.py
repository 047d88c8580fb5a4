# gradebook/schemas/school_schemas.py
from typing import Optional

from pydantic import EmailStr, Field

from ..models.school import School
from .common import CamelModel, iso


class SchoolCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=30)
    email: Optional[EmailStr] = None
    school_domain: Optional[str] = Field(default=None, max_length=100)
    email_domain: Optional[str] = Field(default=None, max_length=150)
    active: bool = True


class SchoolUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=30)
    email: Optional[EmailStr] = None
    school_domain: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email_domain: Optional[str] = Field(default=None, min_length=1, max_length=150)
    active: Optional[bool] = None


def school_to_dict(school: School) -> dict:
    return {
        "_id": str(school.id),
        "name": school.name,
        "address": school.address,
        "phone": school.phone,
        "email": school.email,
        "schoolDomain": school.school_domain,
        "emailDomain": school.email_domain,
        "active": school.active,
        "createdAt": iso(school.created_at),
        "updatedAt": iso(school.updated_at),
    }
