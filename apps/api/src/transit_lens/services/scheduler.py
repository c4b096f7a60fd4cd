"""Ingestion scheduler - drives the realtime and static sync orchestrators."""

from __future__ import annotations

import asyncio
import math
from contextlib import suppress
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from transit_lens.config import get_settings
from transit_lens.logging import get_logger
from transit_lens.services.gtfs_rt.worker import GtfsRtWorker
from transit_lens.services.gtfs_static.importer import GtfsImporter

if TYPE_CHECKING:
    from transit_lens.config import IngestConfig
    from transit_lens.services.results import SyncReport

logger = get_logger(__name__)


class IngestScheduler:
    """Runs realtime cycles at a fixed rate and static syncs on a long cadence.

    Usage:
        scheduler = get_scheduler()
        await scheduler.start()   # launches background loops
        await scheduler.stop()    # cancels them

        # On-demand static sync; joins a run already in progress:
        report = await scheduler.trigger_static()
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        realtime_worker: GtfsRtWorker | None = None,
        importer: GtfsImporter | None = None,
    ) -> None:
        self.config = config or get_settings().ingest_config()
        self._realtime_worker = realtime_worker or GtfsRtWorker(self.config)
        self._importer = importer or GtfsImporter(self.config)

        self._running = False
        self._realtime_task: asyncio.Task[None] | None = None
        self._static_task: asyncio.Task[None] | None = None
        self._static_run: asyncio.Task[SyncReport] | None = None
        self._realtime_lock = asyncio.Lock()

        self._realtime_cycles = 0
        self._missed_ticks = 0
        self._last_realtime_at: datetime | None = None
        self._last_realtime_status: str | None = None
        self._static_runs = 0
        self._last_static_at: datetime | None = None
        self._last_static_status: str | None = None
        self._last_static_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def static_in_progress(self) -> bool:
        return self._static_run is not None and not self._static_run.done()

    async def start(self) -> None:
        """Start the background loops."""
        if self._running:
            logger.warning("Scheduler already running, ignoring start request")
            return

        self._running = True
        self._realtime_task = asyncio.create_task(self._realtime_loop())
        if self.config.static_sync_interval_seconds > 0:
            self._static_task = asyncio.create_task(self._static_loop())
        logger.info(
            "Scheduler started",
            realtime_interval_sec=self.config.realtime_interval_seconds,
            static_interval_sec=self.config.static_sync_interval_seconds,
        )

    async def stop(self, cancel_static: bool = False) -> None:
        """Stop the background loops.

        A static sync already in progress keeps running unless
        ``cancel_static`` is set.
        """
        if self._running:
            self._running = False
            for task in (self._realtime_task, self._static_task):
                if task and not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
            self._realtime_task = None
            self._static_task = None
            logger.info("Scheduler stopped")

        run = self._static_run
        if cancel_static and run is not None and not run.done():
            run.cancel()
            with suppress(asyncio.CancelledError, Exception):
                await run

    async def run_realtime_once(self) -> SyncReport:
        """Run one realtime cycle; concurrent callers queue instead of overlapping."""
        async with self._realtime_lock:
            report = await self._realtime_worker.run_once()
        self._realtime_cycles += 1
        self._last_realtime_at = report.started_at
        self._last_realtime_status = report.status
        return report

    def trigger_static(self) -> asyncio.Task[SyncReport]:
        """Start a static sync, or return the one already in progress."""
        run = self._static_run
        if run is not None and not run.done():
            logger.info("Static sync already in progress, joining it")
            return run

        run = asyncio.create_task(self._run_static())
        run.add_done_callback(self._on_static_done)
        self._static_run = run
        return run

    def get_status(self) -> dict[str, Any]:
        """Get current scheduler status for health/admin endpoints."""
        return {
            "running": self._running,
            "realtime": {
                "interval_sec": self.config.realtime_interval_seconds,
                "cycles": self._realtime_cycles,
                "missed_ticks": self._missed_ticks,
                "last_run_at": _iso(self._last_realtime_at),
                "last_status": self._last_realtime_status,
            },
            "static": {
                "interval_sec": self.config.static_sync_interval_seconds,
                "in_progress": self.static_in_progress,
                "runs": self._static_runs,
                "last_run_at": _iso(self._last_static_at),
                "last_status": self._last_static_status,
                "last_error": self._last_static_error,
            },
        }

    async def _run_static(self) -> SyncReport:
        self._last_static_at = datetime.now(timezone.utc)
        return await self._importer.run()

    def _on_static_done(self, task: asyncio.Task[SyncReport]) -> None:
        self._static_runs += 1
        if task.cancelled():
            self._last_static_status = "cancelled"
            return
        exc = task.exception()
        if exc is not None:
            self._last_static_status = "failed"
            self._last_static_error = f"{type(exc).__name__}: {exc}"
            logger.error("Static sync failed", error=self._last_static_error)
            return
        report = task.result()
        self._last_static_status = "skipped_unchanged" if report.skipped_unchanged else report.status
        self._last_static_error = None

    async def _realtime_loop(self) -> None:
        """Fixed-rate loop: a slow cycle delays the next tick, never overlaps it."""
        loop = asyncio.get_running_loop()
        interval = self.config.realtime_interval_seconds
        next_tick = loop.time()

        while self._running:
            try:
                await self.run_realtime_once()
            except Exception as exc:
                logger.error("Realtime cycle failed unexpectedly", exc_info=exc)

            next_tick += interval
            delay = next_tick - loop.time()
            if delay < 0:
                missed = math.ceil(-delay / interval)
                self._missed_ticks += missed
                next_tick += missed * interval
                delay = next_tick - loop.time()
                logger.warning("Realtime cycle overran its interval", missed_ticks=missed)

            try:
                await asyncio.sleep(max(delay, 0))
            except asyncio.CancelledError:
                break

    async def _static_loop(self) -> None:
        """Static sync on startup and then every ``static_sync_interval_seconds``."""
        while self._running:
            # Shielded so that stopping the loop never interrupts a running sync
            with suppress(Exception):
                await asyncio.shield(self.trigger_static())

            try:
                await asyncio.sleep(self.config.static_sync_interval_seconds)
            except asyncio.CancelledError:
                break


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# Singleton instance for the app lifecycle
_scheduler_instance: IngestScheduler | None = None


def get_scheduler() -> IngestScheduler:
    """Get or create the singleton scheduler instance."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = IngestScheduler()
    return _scheduler_instance


def reset_scheduler() -> None:
    """Reset the singleton (for testing)."""
    global _scheduler_instance
    _scheduler_instance = None
