# gradebook/services/contact_service.py
"""Contact messages from signed-in users and from the public form."""
import logging
import re
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext
from ..core.config import settings
from ..core.exceptions import BadRequest, NotFound
from ..core.rate_limiter import RateLimiter
from ..core.security_store import SecurityStore
from ..models.base import utcnow
from ..models.contact import Contact, ContactStatus
from ..models.user import User, UserRole
from ..schemas.common import iso, str_id
from ..schemas.contact_schemas import ContactCreate, ContactUpdate, PublicContactCreate
from .base_service import BaseService
from .email_service import email_service

logger = logging.getLogger(__name__)

DEFAULT_REPLY = "Your message has been reviewed by admin. Thank you."
PUBLIC_ROLE_LABEL = "Public"

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1F\x7F]")
HTML_TAG_RE = re.compile(r"<[^>]*>")
JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)


def sanitize(value: Optional[str], keep_newlines: bool = False) -> str:
    """Strip control characters, markup and inline script handlers from free text."""
    if not isinstance(value, str):
        return ""
    if keep_newlines:
        value = re.sub(r"[\x00-\x09\x0B\x0C\x0E-\x1F\x7F]", "", value)
    else:
        value = CONTROL_CHARS_RE.sub("", value)
    value = HTML_TAG_RE.sub("", value)
    value = JS_URL_RE.sub("", value)
    value = EVENT_HANDLER_RE.sub("", value)
    return value.strip()


def validate_public_contact(data: PublicContactCreate) -> Tuple[List[str], dict]:
    errors: List[str] = []
    clean = {}

    if not data.name:
        errors.append("Name is required and must be a string")
    else:
        name = sanitize(data.name)
        if not 1 <= len(name) <= 100:
            errors.append("Name must be between 1 and 100 characters")
        elif not all(ch.isalpha() or ch.isspace() for ch in name):
            errors.append("Name can only contain letters and spaces")
        else:
            clean["name"] = name

    if not data.email:
        errors.append("Email is required and must be a string")
    else:
        email = sanitize(data.email.lower())
        if len(email) > 254 or not EMAIL_RE.match(email):
            errors.append("Please provide a valid email address")
        else:
            clean["email"] = email

    if not data.subject:
        errors.append("Subject is required and must be a string")
    else:
        subject = sanitize(data.subject)
        if not 1 <= len(subject) <= 200:
            errors.append("Subject must be between 1 and 200 characters")
        else:
            clean["subject"] = subject

    if not data.message:
        errors.append("Message is required and must be a string")
    else:
        message = sanitize(data.message, keep_newlines=True)
        if not 1 <= len(message) <= 2000:
            errors.append("Message must be between 1 and 2000 characters")
        else:
            clean["message"] = message

    return errors, clean


def contact_to_dict(contact: Contact, public_label: bool = False) -> dict:
    role = contact.user_role
    if public_label and contact.is_public_contact:
        role = PUBLIC_ROLE_LABEL
    return {
        "_id": str(contact.id),
        "user": str_id(contact.user_id),
        "schoolId": str_id(contact.school_id),
        "subject": contact.subject,
        "message": contact.message,
        "status": contact.status,
        "read": contact.read,
        "userName": contact.user_name,
        "userEmail": contact.user_email,
        "userRole": role,
        "adminReply": contact.admin_reply or "",
        "adminReplyDate": iso(contact.admin_reply_date),
        "replyRead": contact.reply_read,
        "isBugReport": contact.is_bug_report,
        "isPublicContact": contact.is_public_contact,
        "createdAt": iso(contact.created_at),
        "updatedAt": iso(contact.updated_at),
    }


class ContactService(BaseService[Contact]):
    resource_name = "Message"

    def __init__(self, db: AsyncSession):
        super().__init__(Contact, db)

    async def send_message(self, data: ContactCreate, user: User) -> dict:
        contact = Contact(
            user_id=user.id,
            school_id=user.school_id,
            subject=sanitize(data.subject),
            message=sanitize(data.message, keep_newlines=True),
            status=ContactStatus.NEW.value,
            read=False,
            user_name=user.name,
            user_email=user.email,
            user_role=user.role,
            is_bug_report=data.is_bug_report,
            reply_read=False,
        )
        if not contact.subject or not contact.message:
            raise BadRequest("Please include both subject and message")
        self.db.add(contact)
        await self.db.commit()
        logger.info(f"Contact message from user {user.id} ({user.role}), bug report: {data.is_bug_report}")
        if data.is_bug_report:
            message = "Your bug report has been saved. We will investigate the issue as soon as possible."
        else:
            message = "Your message has been saved. We will review it as soon as possible."
        return {"success": True, "message": message}

    async def send_public_message(
        self,
        data: PublicContactCreate,
        store: SecurityStore,
        client_ip: str,
        user_agent: str = "",
        referrer: str = "",
    ) -> dict:
        await RateLimiter(store).check_rate_limit(
            f"contact:{client_ip}:{(data.email or '').lower()}",
            max_requests=settings.contact_rate_limit,
            window=settings.contact_rate_window_seconds,
            detail="Too many attempts. Please wait before trying again.",
        )

        errors, clean = validate_public_contact(data)
        if errors:
            raise BadRequest(", ".join(errors))

        contact = Contact(
            user_name=clean["name"],
            user_email=clean["email"],
            subject=clean["subject"],
            message=clean["message"],
            status=ContactStatus.NEW.value,
            read=False,
            reply_read=False,
            is_public_contact=True,
            client_ip=client_ip,
            user_agent=(user_agent or "")[:500],
            referrer=(referrer or "")[:500],
        )
        self.db.add(contact)
        await self.db.commit()
        logger.info(
            f"Public contact message from {clean['email']} ({client_ip}), {len(clean['message'])} chars"
        )
        return {"success": True, "message": "Your message has been sent successfully. We will get back to you soon."}

    async def list_messages(self, actor: User, ctx: SchoolContext) -> List[dict]:
        stmt = self.scoped(select(Contact), ctx.school_id).order_by(Contact.created_at.desc())
        contacts = (await self.db.execute(stmt)).scalars().all()
        return [contact_to_dict(c, public_label=actor.role == UserRole.SUPERADMIN.value) for c in contacts]

    async def update_message(
        self,
        contact_id: UUID,
        data: ContactUpdate,
        ctx: SchoolContext,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> dict:
        contact = await self.get_or_404(contact_id, ctx.school_id)

        contact.read = data.read if data.read is not None else True
        contact.reply_read = False
        if data.status is not None:
            contact.status = data.status.value

        reply = (data.admin_reply or "").strip()
        if reply or data.status == ContactStatus.REPLIED:
            contact.admin_reply = reply or contact.admin_reply or DEFAULT_REPLY
            contact.admin_reply_date = utcnow()
            contact.status = ContactStatus.REPLIED.value
            contact.read = True
            contact.reply_read = False

        await self.db.commit()
        await self.db.refresh(contact)
        logger.info(f"Contact message {contact.id} updated, status {contact.status}")

        if contact.is_public_contact and reply and contact.user_email and background_tasks is not None:
            background_tasks.add_task(
                email_service.send_contact_reply,
                contact.user_email,
                contact.user_name or "",
                contact.subject,
                reply,
            )
        return contact_to_dict(contact)

    @staticmethod
    def _owned_by(user: User):
        school = Contact.school_id.is_(None) if user.school_id is None else Contact.school_id == user.school_id
        return Contact.user_id == user.id, school

    async def user_messages(self, user: User) -> List[dict]:
        stmt = (
            select(Contact)
            .where(*self._owned_by(user))
            .order_by(Contact.created_at.desc())
        )
        contacts = (await self.db.execute(stmt)).scalars().all()
        result = [contact_to_dict(c) for c in contacts]

        unread = [c.id for c in contacts if c.status == ContactStatus.REPLIED.value and not c.reply_read]
        if unread:
            await self.db.execute(update(Contact).where(Contact.id.in_(unread)).values(reply_read=True))
            await self.db.commit()
        return result

    async def mark_reply_read(self, contact_id: UUID, user: User) -> dict:
        stmt = select(Contact).where(Contact.id == contact_id, *self._owned_by(user))
        contact = (await self.db.execute(stmt)).scalar_one_or_none()
        if not contact:
            raise NotFound("Message")
        contact.reply_read = True
        await self.db.commit()
        return {"success": True, "message": "Reply marked as read"}
