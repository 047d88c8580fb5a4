# gradebook/core/exceptions.py
"""Custom exceptions for the GradeBook application."""
from fastapi import HTTPException
from typing import Any, Dict, Optional


class GradeBookException(HTTPException):
    """Base exception for GradeBook application."""
    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class AuthRequired(GradeBookException):
    def __init__(self, detail: str = "Not authorized, no token"):
        super().__init__(status_code=401, detail=detail)


class InvalidCredentials(GradeBookException):
    def __init__(self):
        super().__init__(status_code=401, detail="Invalid credentials")


class InvalidRefreshToken(GradeBookException):
    def __init__(self, detail: str = "Invalid refresh token"):
        super().__init__(status_code=401, detail=detail)


class AccountDisabled(GradeBookException):
    def __init__(self):
        super().__init__(
            status_code=403,
            detail="Your account has been disabled. Please contact your administrator."
        )


class TooManyAttempts(GradeBookException):
    """Raised while a client IP is inside a login lockout window."""
    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            status_code=429,
            detail=f"Too many failed login attempts. Account locked for {remaining_seconds} seconds.",
            headers={"Retry-After": str(remaining_seconds)}
        )


class RateLimited(GradeBookException):
    def __init__(self, detail: str = "Too many requests. Please try again later."):
        super().__init__(status_code=429, detail=detail)


class Forbidden(GradeBookException):
    def __init__(self, detail: str = "Not authorized to perform this action"):
        super().__init__(status_code=403, detail=detail)


class NotFound(GradeBookException):
    """Missing or belonging to another school; the two are indistinguishable."""
    def __init__(self, resource: str = "Resource"):
        super().__init__(status_code=404, detail=f"{resource} not found")


class Conflict(GradeBookException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class BadRequest(GradeBookException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class SchoolContextMissing(GradeBookException):
    def __init__(self):
        super().__init__(
            status_code=400,
            detail="Unable to determine your school context. Please contact your administrator."
        )


class SchoolNotFound(GradeBookException):
    def __init__(self):
        super().__init__(status_code=404, detail="School not found")


class SchoolInactive(GradeBookException):
    def __init__(self):
        super().__init__(status_code=403, detail="School account is inactive")


class MaintenanceActive(GradeBookException):
    def __init__(self, message: str):
        super().__init__(status_code=503, detail=message)


class NotConfigured(GradeBookException):
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)
