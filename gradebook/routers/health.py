"""Health check endpoints."""
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.database import health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/health", tags=["Health"])


@router.get("")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "GradeBook API",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/db")
async def database_health():
    """Database connectivity; 503 while the database is unreachable"""
    if await health_check_db():
        return {"status": "healthy", "database": "connected"}
    logger.warning("Database health check reported unhealthy")
    return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unreachable"})
