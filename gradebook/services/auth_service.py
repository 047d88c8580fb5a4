# gradebook/services/auth_service.py
"""Login, registration, token rotation and password changes."""
import logging
from typing import Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import find_school_by_email
from ..core.config import settings
from ..core.exceptions import (
    AccountDisabled,
    BadRequest,
    Conflict,
    InvalidCredentials,
    InvalidRefreshToken,
    TooManyAttempts,
)
from ..core.login_attempts import LoginAttemptTracker
from ..core.rate_limiter import RateLimiter
from ..core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from ..core.security_store import SecurityStore
from ..models.base import utcnow
from ..models.user import User, UserRole
from ..schemas.user_schemas import RegisterRequest, user_to_dict

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthService:
    def __init__(self, db: AsyncSession, store: SecurityStore):
        self.db = db
        self.store = store
        self.attempts = LoginAttemptTracker(store)
        self.rate_limiter = RateLimiter(store)

    async def _find_login_user(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email, User.role == UserRole.SUPERADMIN.value)
        )
        user = result.scalar_one_or_none()
        if user:
            return user

        school = await find_school_by_email(self.db, email)
        if not school:
            return None
        result = await self.db.execute(
            select(User).where(User.email == email, User.school_id == school.id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def issue_tokens(user: User) -> dict:
        return {
            "token": create_access_token(user.id, user.school_id),
            "refreshToken": create_refresh_token(user.id, user.school_id),
        }

    async def login(self, email: str, password: str, client_ip: str) -> dict:
        remaining = await self.attempts.is_locked_out(client_ip)
        if remaining:
            logger.warning(f"Login refused for {client_ip}: locked for {remaining}s")
            raise TooManyAttempts(remaining)

        email = email.strip().lower()
        user = await self._find_login_user(email)
        if not user or not verify_password(password, user.password_hash):
            await self.attempts.record_failed_attempt(client_ip)
            logger.warning(f"Failed login for {email} from {client_ip}")
            raise InvalidCredentials()

        if not user.active:
            raise AccountDisabled()

        await self.attempts.record_successful_login(client_ip)
        user.last_login = utcnow()
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.id} ({user.role}) logged in")

        profile = user_to_dict(user)
        return {
            "_id": profile["_id"],
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "schoolId": profile["schoolId"],
            "secretaryPermissions": user.secretary_permissions,
            "adminPermissions": user.admin_permissions,
            "requirePasswordChange": user.require_password_change,
            "isFirstLogin": user.is_first_login,
            **self.issue_tokens(user),
        }

    async def register(self, data: RegisterRequest) -> dict:
        email = data.email.strip().lower()

        if data.role == UserRole.SUPERADMIN:
            existing = await self.db.execute(
                select(func.count()).select_from(User).where(User.role == UserRole.SUPERADMIN.value)
            )
            if existing.scalar():
                # Only the first system account may be self-registered
                raise BadRequest("User already exists")
            school_id = None
        else:
            school = await self.find_school_for_email(email)
            school_id = school.id
            duplicate = await self.db.execute(
                select(User.id).where(User.email == email, User.school_id == school_id)
            )
            if duplicate.scalar_one_or_none():
                raise BadRequest("User already exists")

        user = User(
            name=data.name.strip(),
            email=email,
            password_hash=get_password_hash(data.password),
            role=data.role.value,
            school_id=school_id,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("User already exists")
        await self.db.refresh(user)
        logger.info(f"Registered user {user.id} ({user.role})")
        return {**user_to_dict(user), "token": create_access_token(user.id, user.school_id)}

    async def find_school_for_email(self, email: str):
        school = await find_school_by_email(self.db, email)
        if not school:
            raise BadRequest("No school found for this email domain. Please use your school email address.")
        return school

    async def refresh(self, refresh_token: Optional[str], client_ip: str) -> dict:
        if not refresh_token:
            raise BadRequest("Refresh token is required")

        await self.rate_limiter.check_rate_limit(
            f"refresh:{client_ip}:{refresh_token[-10:]}",
            max_requests=settings.refresh_rate_limit,
            window=settings.refresh_rate_window_seconds,
            detail="Too many refresh attempts. Please try again later.",
        )

        if await self.store.is_token_revoked(refresh_token):
            logger.warning(f"Revoked refresh token presented from {client_ip}")
            raise InvalidRefreshToken("Refresh token has been revoked")

        try:
            payload = decode_token(refresh_token)
        except ExpiredSignatureError:
            raise InvalidRefreshToken("Refresh token expired")
        except JWTError:
            raise InvalidRefreshToken()

        if payload.get("type") != REFRESH_TOKEN_TYPE:
            raise InvalidRefreshToken("Invalid token type")

        user = await self._user_from_claims(payload)
        if not user:
            raise InvalidRefreshToken("User not found")
        if not user.active:
            raise AccountDisabled()

        # atomic: of concurrent rotations of one token only the first succeeds
        if not await self.store.revoke_if_new(refresh_token, float(payload["exp"])):
            logger.warning(f"Refresh token replayed from {client_ip}")
            raise InvalidRefreshToken("Refresh token has been revoked")

        tokens = self.issue_tokens(user)
        logger.info(f"Rotated refresh token for user {user.id}")
        return {**tokens, "message": "Token refreshed successfully"}

    async def _user_from_claims(self, payload: dict) -> Optional[User]:
        try:
            user_id = UUID(str(payload.get("id")))
        except ValueError:
            return None
        return await self.db.get(User, user_id)

    async def logout(self, refresh_token: Optional[str]) -> dict:
        revoked = False
        if refresh_token:
            try:
                exp = float(decode_token(refresh_token)["exp"])
            except JWTError:
                exp = None
            if exp is not None:
                await self.store.revoke_token(refresh_token, exp)
                revoked = True
        return {"message": "Logged out successfully", "revokedToken": revoked}

    async def change_password(self, user: User, current_password: Optional[str], new_password: Optional[str]) -> dict:
        if not current_password or not new_password:
            raise BadRequest("Current password and new password are required")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise BadRequest(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if not verify_password(current_password, user.password_hash):
            raise BadRequest("Current password is incorrect")
        if verify_password(new_password, user.password_hash):
            raise BadRequest("New password must be different from current password")

        user.password_hash = get_password_hash(new_password)
        user.require_password_change = False
        user.is_first_login = False
        user.last_password_change = utcnow()
        await self.db.commit()
        logger.info(f"Password changed for user {user.id}")
        return {"message": "Password changed successfully"}

    async def login_stats(self) -> dict:
        return await self.attempts.stats()

    async def clear_login_attempts(self, ip: str) -> dict:
        await self.attempts.clear(ip)
        return {"message": f"Login attempts cleared for {ip}"}
