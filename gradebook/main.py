from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time
import uuid

from .core.config import settings
from .core.database import close_db_connections, init_models
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging
from .core.security_store import create_security_store

from .routers import (
    classes, contacts, events, grades, health, maintenance,
    schools, stats, subjects, subscriptions, themes, users,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting GradeBook API ({settings.environment})")

    app.state.security_store = create_security_store()
    if settings.create_tables_on_startup:
        await init_models()

    yield

    logger.info("Shutting down GradeBook API")
    await app.state.security_store.close()
    await close_db_connections()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="GradeBook API",
        description="Multi-tenant school gradebook: schools, classes, grades, events and messaging",
        version=settings.app_version,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_request_headers(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(schools.router)
    app.include_router(classes.router)
    app.include_router(subjects.router)
    app.include_router(grades.router)
    app.include_router(stats.router)
    app.include_router(events.router)
    app.include_router(contacts.router)
    app.include_router(subscriptions.router)
    app.include_router(maintenance.router)
    app.include_router(themes.router)

    @app.get("/")
    async def root():
        return {
            "message": "GradeBook API",
            "version": settings.app_version,
            "status": "active",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
