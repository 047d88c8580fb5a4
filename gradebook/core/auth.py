# gradebook/core/auth.py
"""Request authentication, school context and maintenance gating dependencies."""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from jose import ExpiredSignatureError, JWTError
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.maintenance import SystemMaintenance
from ..models.school import School
from ..models.user import User
from .config import settings
from .database import get_db
from .exceptions import (
    AccountDisabled,
    AuthRequired,
    MaintenanceActive,
    SchoolContextMissing,
    SchoolInactive,
    SchoolNotFound,
)
from .security import REFRESH_TOKEN_TYPE, decode_token
from .security_store import SecurityStore

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

SYSTEM_WIDE_SCHOOL_NAME = "System-wide Access"


@dataclass
class SchoolContext:
    school_id: Optional[uuid.UUID]
    school_name: str
    school: Optional[School] = None


def get_client_ip(request: Request) -> str:
    """Socket peer, or the address our outermost trusted proxy recorded in X-Forwarded-For.

    Entries left of the trusted hops are client-supplied and ignored.
    """
    peer = request.client.host if request.client else "unknown"
    hops = settings.trusted_proxy_hops
    forwarded = request.headers.get("x-forwarded-for")
    if hops <= 0 or not forwarded:
        return peer
    entries = [entry.strip() for entry in forwarded.split(",") if entry.strip()]
    if not entries:
        return peer
    return entries[-min(hops, len(entries))]


def get_security_store(request: Request) -> SecurityStore:
    return request.app.state.security_store


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].strip().lower() if email and "@" in email else ""


async def find_school_by_email(db: AsyncSession, email: str) -> Optional[School]:
    domain = email_domain(email)
    if not domain:
        return None
    result = await db.execute(select(School).where(School.email_domain == domain))
    return result.scalar_one_or_none()


async def _user_from_token(token: Optional[str], db: AsyncSession) -> User:
    if not token or token in ("null", "undefined"):
        raise AuthRequired("Not authorized, no token")

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise AuthRequired("Token expired")
    except JWTError:
        raise AuthRequired("Invalid token")

    if payload.get("type") == REFRESH_TOKEN_TYPE:
        raise AuthRequired("Invalid token")
    try:
        user_id = uuid.UUID(str(payload.get("id")))
    except ValueError:
        raise AuthRequired("Invalid token")

    user = await db.get(User, user_id)
    if not user:
        raise AuthRequired("Not authorized, user not found")
    if not user.active:
        raise AccountDisabled()
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await _user_from_token(credentials.credentials if credentials else None, db)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like ``get_current_user`` for public routes: a bad or missing token yields ``None``."""
    if not credentials:
        return None
    try:
        user = await _user_from_token(credentials.credentials, db)
    except (AuthRequired, AccountDisabled):
        return None
    request.state.user = user
    return user


async def get_school_context(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SchoolContext:
    if user.is_superadmin:
        context = SchoolContext(school_id=None, school_name=SYSTEM_WIDE_SCHOOL_NAME)
        request.state.school_context = context
        return context

    if not user.school_id:
        school = await find_school_by_email(db, user.email)
        if not school:
            logger.error(f"No school context for user {user.id} ({user.email})")
            raise SchoolContextMissing()
        user.school_id = school.id
        await db.commit()
        logger.info(f"Recovered school {school.id} for user {user.id} from email domain")

    school = await db.get(School, user.school_id)
    if not school:
        raise SchoolNotFound()
    if not school.active:
        raise SchoolInactive()

    context = SchoolContext(school_id=school.id, school_name=school.name, school=school)
    request.state.school_context = context
    return context


def enforce_school_filter(stmt, model, school_id):
    """Scope ``stmt`` to one school; refuses to build an unscoped tenant query."""
    if not school_id:
        raise ValueError(f"School filter required for {model.__name__} query")
    return stmt.where(model.school_id == school_id)


async def check_maintenance_mode(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    result = await db.execute(select(SystemMaintenance).order_by(SystemMaintenance.created_at).limit(1))
    maintenance = result.scalar_one_or_none()
    if maintenance and maintenance.is_maintenance_mode and not maintenance.can_bypass(user.role):
        logger.warning(f"Maintenance mode blocked user {user.id} ({user.role})")
        raise MaintenanceActive(maintenance.maintenance_message)
