import json
import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


def _request_body(request: Request, status_code: int) -> Any:
    if status_code == 401:
        return REDACTED
    # only available once the route has read it
    raw = getattr(request, "_body", None)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw[:200].decode("utf-8", errors="replace")


def _log_context(request: Request, status_code: int) -> dict:
    user = getattr(request.state, "user", None)
    return {
        "path": request.url.path,
        "method": request.method,
        "ip": request.client.host if request.client else None,
        "userId": str(user.id) if user else None,
        "userRole": user.role if user else None,
        "requestId": getattr(request.state, "request_id", None),
        "body": _request_body(request, status_code),
    }


def error_body(request: Request, message: str, stack: Optional[str] = None) -> dict:
    return {
        "message": message,
        "stack": None if settings.is_production else stack,
        "requestId": getattr(request.state, "request_id", None),
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    context = _log_context(request, exc.status_code)
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail} - {context}")
    else:
        logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {context}")
    message = exc.detail if isinstance(exc.detail, str) else json.dumps(exc.detail)
    if exc.status_code == 404 and message == "Not Found":
        message = f"Not Found - {request.url.path}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    message = "; ".join(problems) or "Invalid request"
    logger.warning(f"Validation error: {message} - {_log_context(request, 400)}")
    return JSONResponse(status_code=400, content=error_body(request, message))


async def general_exception_handler(request: Request, exc: Exception):
    """Anything not translated by a service surfaces as a 500 with its message kept."""
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(f"Unexpected error: {exc} - {_log_context(request, 500)}\n{stack}")
    return JSONResponse(status_code=500, content=error_body(request, str(exc) or "Internal server error", stack))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
