"""GTFS-RT snapshot worker - one fetch/decode/write cycle over every stream."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from transit_lens.config import get_settings
from transit_lens.logging import get_logger
from transit_lens.services.fetcher import FeedFetcher
from transit_lens.services.gtfs_rt.decoder import GtfsRtDecoder
from transit_lens.services.gtfs_rt.writer import SnapshotWriter
from transit_lens.services.results import SubTaskResult, SyncReport

if TYPE_CHECKING:
    from transit_lens.config import IngestConfig

logger = get_logger(__name__)


class GtfsRtWorker:
    """Snapshots every configured realtime stream once per ``run_once`` call.

    Streams are processed concurrently and in isolation: a failed fetch,
    decode or write of one stream is recorded in its result and the other
    stream still completes. Scheduling lives in IngestScheduler.
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        fetcher: FeedFetcher | None = None,
        decoder: GtfsRtDecoder | None = None,
        writer: SnapshotWriter | None = None,
    ) -> None:
        self.config = config or get_settings().ingest_config()
        self._fetcher = fetcher or FeedFetcher(timeout_sec=self.config.fetch_timeout_sec)
        self._decoder = decoder or GtfsRtDecoder()
        self._writer = writer or SnapshotWriter(self.config.storage_path)

    async def run_once(self) -> SyncReport:
        """Execute one cycle; both snapshots share the cycle's ingestion timestamp."""
        report = SyncReport(kind="realtime")
        ingest_ts = int(time.time() * 1000)
        logger.info("Starting realtime cycle", sync_id=report.sync_id, ingest_ts=ingest_ts)

        results = await asyncio.gather(
            *(
                self._ingest_stream(kind, url, ingest_ts, report.sync_id)
                for kind, url in self.config.realtime_urls.items()
            )
        )
        for result in results:
            report.add(result)
        report.finish()

        logger.info(
            "Realtime cycle complete",
            sync_id=report.sync_id,
            ingest_ts=ingest_ts,
            duration_ms=report.duration_ms,
            status=report.status,
            counts={name: result.count for name, result in report.results.items()},
        )
        return report

    async def _ingest_stream(
        self, kind: str, url: str, ingest_ts: int, sync_id: str
    ) -> SubTaskResult:
        """Fetch, decode and snapshot one stream. Isolated per stream."""
        try:
            data = await self._fetcher.fetch(url, headers=self.config.request_headers)
            events = self._decoder.decode(kind, data, ingest_ts)
            path = self._writer.snapshot_path(kind, ingest_ts)
            lines = await self._writer.write(path, events)
        except Exception as exc:
            logger.error(
                "Realtime stream ingest failed",
                feed_type=kind,
                sync_id=sync_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return SubTaskResult.failure(kind, exc)

        return SubTaskResult.success(kind, lines, path=str(path))
