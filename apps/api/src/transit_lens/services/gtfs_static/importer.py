"""GTFS static importer - orchestrates fetch, version check, parse and load."""

from __future__ import annotations

import asyncio
import shutil
import time
from typing import TYPE_CHECKING

from transit_lens.config import get_settings
from transit_lens.database import get_session_context
from transit_lens.errors import ArchiveError, IngestError
from transit_lens.logging import get_logger
from transit_lens.services.fetcher import FeedFetcher
from transit_lens.services.gtfs_static.ledger import (
    FeedVersionLedger,
    VersionConflictError,
    read_feed_info,
)
from transit_lens.services.gtfs_static.loader import BatchLoader
from transit_lens.services.gtfs_static.parser import GtfsParser, Record
from transit_lens.services.gtfs_static.schemas import FEED_INFO, TABLE_SCHEMAS
from transit_lens.services.results import SubTaskResult, SyncReport

if TYPE_CHECKING:
    from pathlib import Path

    from transit_lens.config import IngestConfig
    from transit_lens.services.gtfs_static.loader import SessionFactory
    from transit_lens.services.gtfs_static.schemas import TableSchema

logger = get_logger(__name__)


def resolve_feed_dir(extracted: Path) -> Path:
    """Return the directory holding the feed's .txt files.

    Some publishers zip the feed inside a single top-level folder.
    """
    if (extracted / FEED_INFO.filename).is_file():
        return extracted
    children = [child for child in extracted.iterdir() if not child.name.startswith(".")]
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return extracted


class GtfsImporter:
    """Runs one static sync: fetch, detect a new version, load every table.

    Usage:
        importer = GtfsImporter(settings.ingest_config())
        report = await importer.run()
    """

    def __init__(
        self,
        config: IngestConfig | None = None,
        fetcher: FeedFetcher | None = None,
        parser: GtfsParser | None = None,
        ledger: FeedVersionLedger | None = None,
        loader: BatchLoader | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.config = config or get_settings().ingest_config()
        self._session_factory = session_factory or get_session_context
        self._fetcher = fetcher or FeedFetcher(timeout_sec=self.config.fetch_timeout_sec)
        self._parser = parser or GtfsParser()
        self._ledger = ledger or FeedVersionLedger(self.config.feed_source_id)
        self._loader = loader or BatchLoader(
            batch_size=self.config.batch_size, session_factory=self._session_factory
        )

    async def run(self) -> SyncReport:
        """Execute one static sync.

        An unchanged feed ends the run with ``skipped_unchanged`` set and
        nothing written. Table failures are recorded per table and do not
        stop the other tables. The scratch directory is always removed.

        Raises:
            NetworkError: If the archive cannot be downloaded.
            ArchiveError: If the archive or its feed_info.txt is unusable.
            SchemaValidationError: If feed_info.txt is invalid.
            StorageError: If the version ledger cannot be read or written.
            FilesystemError: If the scratch directory cannot be prepared.
        """
        report = SyncReport(kind="static")
        ingest_ts = int(time.time() * 1000)
        log = logger.bind(sync_id=report.sync_id, feed_source_id=self.config.feed_source_id)
        log.info("Starting GTFS static sync", url=self.config.static_feed_url)

        scratch_dir: Path | None = None
        try:
            scratch_dir = await self._fetcher.fetch_archive(
                self.config.static_feed_url,
                self.config.scratch_path,
                ingest_ts,
                headers=self.config.request_headers,
            )
            feed_dir = resolve_feed_dir(scratch_dir)
            feed_info = await asyncio.to_thread(read_feed_info, feed_dir / FEED_INFO.filename)

            async with self._session_factory() as session:
                candidate = await self._ledger.is_new_version(session, feed_info)
            if candidate is None:
                report.skipped_unchanged = True
                log.info(
                    "Static feed unchanged, skipping load",
                    feed_start_date=feed_info.feed_start_date.isoformat(),
                )
                return report

            try:
                async with self._session_factory() as session:
                    version = await self._ledger.create_version(session, candidate)
            except VersionConflictError as exc:
                # A concurrent sync recorded the same version first and loads it
                report.skipped_unchanged = True
                log.info("Static feed version recorded concurrently", reason=str(exc))
                return report

            feed_version_id = version.feed_version_id
            report.feed_version_id = feed_version_id
            results = await asyncio.gather(
                *(
                    self._load_table(feed_dir, schema, feed_version_id)
                    for schema in TABLE_SCHEMAS.values()
                )
            )
            for result in results:
                report.add(result)
        except IngestError as exc:
            report.errors.append(str(exc))
            log.error("GTFS static sync failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            if scratch_dir is not None:
                await asyncio.to_thread(shutil.rmtree, scratch_dir, ignore_errors=True)
            report.finish()

        log.info(
            "GTFS static sync complete",
            feed_version_id=report.feed_version_id,
            duration_ms=report.duration_ms,
            status=report.status,
            failed_tables=report.failed,
        )
        return report

    async def _load_table(
        self, feed_dir: Path, schema: TableSchema, feed_version_id: int
    ) -> SubTaskResult:
        """Parse and load one table. Isolated: failures become a failure result."""
        path = feed_dir / schema.filename
        try:
            if not path.is_file():
                if schema.optional_file:
                    logger.info("Optional GTFS file absent", table=schema.table)
                    return SubTaskResult.success(schema.table, 0, missing=True)
                msg = f"Static feed has no {schema.filename}"
                raise ArchiveError(msg)

            # The whole file is validated before the first write
            records = await asyncio.to_thread(self._parse_all, path, schema)
            loaded = await self._loader.load(records, feed_version_id, schema.table)
        except Exception as exc:
            logger.error(
                "Table load failed",
                table=schema.table,
                feed_version_id=feed_version_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return SubTaskResult.failure(schema.table, exc)

        return SubTaskResult.success(
            schema.table,
            loaded.rows,
            inserted=loaded.inserted,
            batches=loaded.batches,
        )

    def _parse_all(self, path: Path, schema: TableSchema) -> list[Record]:
        return list(self._parser.parse_file(path, schema))
