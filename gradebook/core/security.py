# gradebook/core/security.py
"""Password hashing and JWT issuing/verification."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid
from jose import jwt
from passlib.context import CryptContext

from .config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

REFRESH_TOKEN_TYPE = "refresh"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(payload: Dict[str, Any], expires: timedelta) -> str:
    to_encode = payload.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + expires
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _claims(user_id: Any, school_id: Optional[Any]) -> Dict[str, Any]:
    claims = {"id": str(user_id)}
    if school_id:
        claims["schoolId"] = str(school_id)
    return claims


def create_access_token(user_id: Any, school_id: Optional[Any] = None) -> str:
    return _encode(_claims(user_id, school_id), timedelta(days=settings.access_token_expire_days))


def create_refresh_token(user_id: Any, school_id: Optional[Any] = None) -> str:
    claims = _claims(user_id, school_id)
    claims["type"] = REFRESH_TOKEN_TYPE
    # unique per issue, so a rotation inside the same second never reproduces the old token
    claims["jti"] = uuid.uuid4().hex
    return _encode(claims, timedelta(days=settings.refresh_token_expire_days))


def decode_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises ExpiredSignatureError or JWTError."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
