# gradebook/schemas/contact_schemas.py
from typing import Optional

from pydantic import Field

from ..models.contact import ContactStatus
from .common import CamelModel


class ContactCreate(CamelModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    is_bug_report: bool = False


class PublicContactCreate(CamelModel):
    # validated and sanitized by the service so every problem is reported at once
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class ContactUpdate(CamelModel):
    status: Optional[ContactStatus] = None
    read: Optional[bool] = None
    admin_reply: Optional[str] = Field(default=None, max_length=5000)
