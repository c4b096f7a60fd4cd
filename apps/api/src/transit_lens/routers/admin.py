"""Admin routes for triggering and controlling feed syncs."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from transit_lens.config import get_settings
from transit_lens.errors import (
    ArchiveError,
    IngestError,
    NetworkError,
    SchemaValidationError,
)
from transit_lens.logging import get_logger
from transit_lens.services.scheduler import get_scheduler

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class SyncReportResponse(BaseModel):
    """Outcome of one static sync or realtime cycle."""

    status: Literal["success", "partial", "failed"]
    sync_id: str
    kind: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: Optional[int] = None
    feed_version_id: Optional[int] = None
    skipped_unchanged: bool = False
    results: Dict[str, Dict[str, Any]]
    errors: List[str]


class SyncRunningResponse(BaseModel):
    """Returned when a static sync outlives the request timeout."""

    status: Literal["running"] = "running"
    detail: str


class SchedulerStatusResponse(BaseModel):
    running: bool
    realtime: Dict[str, Any]
    static: Dict[str, Any]


# No auth: the admin surface is meant to sit behind the deployment's network boundary.
@router.post(
    "/sync/static",
    response_model=SyncReportResponse | SyncRunningResponse,
    summary="Run a static GTFS sync",
    description=(
        "Fetch the static feed and load it if it is a new version. "
        "Joins a sync already in progress. If the sync takes longer than "
        "STATIC_SYNC_TIMEOUT_SEC the response is 202 and the sync keeps running."
    ),
)
async def sync_static(response: Response) -> Dict[str, Any]:
    """Trigger a static sync and wait for it up to the configured timeout."""
    settings = get_settings()
    task = get_scheduler().trigger_static()

    try:
        # The shield keeps the sync (and any open transaction) alive past the timeout
        report = await asyncio.wait_for(
            asyncio.shield(task), timeout=settings.static_sync_timeout_sec
        )
    except asyncio.TimeoutError:
        logger.info("Static sync still running after request timeout")
        response.status_code = 202
        return {
            "status": "running",
            "detail": "Static sync is still running; check /admin/sync/status",
        }
    except NetworkError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (ArchiveError, SchemaValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except IngestError as exc:
        raise HTTPException(
            status_code=500, detail=f"Static sync failed: {type(exc).__name__}: {exc}"
        ) from exc

    return report.to_dict()


@router.post(
    "/sync/realtime/run-once",
    response_model=SyncReportResponse,
    summary="Snapshot both realtime streams once",
)
async def run_realtime_once() -> Dict[str, Any]:
    """Execute one realtime cycle immediately."""
    report = await get_scheduler().run_realtime_once()
    return report.to_dict()


@router.post(
    "/sync/realtime/start",
    response_model=SchedulerStatusResponse,
    summary="Start the ingestion scheduler",
)
async def start_scheduler() -> Dict[str, Any]:
    scheduler = get_scheduler()
    await scheduler.start()
    return scheduler.get_status()


@router.post(
    "/sync/realtime/stop",
    response_model=SchedulerStatusResponse,
    summary="Stop the ingestion scheduler",
)
async def stop_scheduler() -> Dict[str, Any]:
    scheduler = get_scheduler()
    await scheduler.stop()
    return scheduler.get_status()


@router.get(
    "/sync/status",
    response_model=SchedulerStatusResponse,
    summary="Get scheduler status",
)
async def sync_status() -> Dict[str, Any]:
    return get_scheduler().get_status()
