"""FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from transit_lens.config import get_settings
from transit_lens.database import check_database_connection, close_database
from transit_lens.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from transit_lens.routers.admin import router as admin_router
from transit_lens.services.scheduler import get_scheduler, reset_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()
    logger.info("Starting Transit Lens ingestion API")

    settings = get_settings()
    if settings.scheduler_auto_start:
        await get_scheduler().start()

    yield

    await get_scheduler().stop(cancel_static=True)
    reset_scheduler()

    logger.info("Shutting down Transit Lens ingestion API")
    await close_database()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Ingestion service for GTFS static schedules and GTFS-realtime "
            "trip updates and vehicle positions"
        ),
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_request_context(request_id=request_id, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        clear_request_context()
        return response

    app.include_router(admin_router)

    @app.get("/health", tags=["meta"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint returning application status."""
        settings = get_settings()
        missing_env = settings.missing_required_env()
        db_healthy = await check_database_connection()

        scheduler_status = get_scheduler().get_status()
        scheduler_healthy = scheduler_status["running"] or not settings.scheduler_auto_start

        status = (
            "unhealthy"
            if missing_env
            else "healthy"
            if (db_healthy and scheduler_healthy)
            else "degraded"
        )

        issues: list[str] = []
        if missing_env:
            issues.append("Missing required environment variables: " + ", ".join(missing_env))
        if not db_healthy:
            issues.append("Database is not reachable")
        if settings.scheduler_auto_start and not scheduler_status["running"]:
            issues.append("Ingestion scheduler is not running")

        return {
            "service": settings.app_name,
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": db_healthy,
                "scheduler": scheduler_status,
            },
            "issues": issues,
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
