"""Feed version ledger - the non-overlapping timeline of static schedules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from transit_lens.errors import ArchiveError, SchemaValidationError, StorageError
from transit_lens.logging import get_logger
from transit_lens.services.gtfs_static.normalizer import parse_gtfs_date
from transit_lens.services.gtfs_static.parser import GtfsParser
from transit_lens.services.gtfs_static.schemas import FEED_INFO

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# First key of the two-int advisory lock; the second is the feed source id
ADVISORY_LOCK_NAMESPACE = 0x67_74_66_73

ONE_DAY = timedelta(days=1)


class VersionConflictError(StorageError):
    """Raised when another run already recorded a version with the same start date."""


@dataclass(frozen=True)
class FeedInfo:
    """The parts of feed_info.txt that identify a published schedule."""

    publisher_name: str
    feed_start_date: date
    feed_end_date: date
    feed_version: str | None = None


@dataclass(frozen=True)
class FeedVersionInfo:
    """A feed version window; ``feed_version_id`` is None until it is stored."""

    feed_source_id: int
    valid_from: date
    valid_to: date
    feed_version_id: int | None = None
    fetched_at: datetime | None = None

    def covers(self, day: date) -> bool:
        return self.valid_from <= day <= self.valid_to


@dataclass
class OverlapPlan:
    """Truncations needed before a candidate version can be inserted."""

    valid_to: date
    truncations: list[tuple[int, date]] = field(default_factory=list)


def read_feed_info(path: Path) -> FeedInfo:
    """Read the first row of an extracted feed's feed_info.txt.

    Raises:
        ArchiveError: If the feed has no feed_info.txt.
        SchemaValidationError: If the file is empty or its dates are invalid.
    """
    if not path.is_file():
        msg = f"Static feed has no {FEED_INFO.filename}; cannot determine its version"
        raise ArchiveError(msg)

    record = next(GtfsParser().parse_file(path, FEED_INFO), None)
    if record is None:
        msg = f"{FEED_INFO.filename} has no rows"
        raise SchemaValidationError(msg, filename=FEED_INFO.filename)

    start = parse_gtfs_date(record["feed_start_date"] or "")
    end = parse_gtfs_date(record["feed_end_date"] or "")
    if end < start:
        msg = f"{FEED_INFO.filename}: feed_end_date {end} precedes feed_start_date {start}"
        raise SchemaValidationError(msg, filename=FEED_INFO.filename, line=2)

    return FeedInfo(
        publisher_name=record["feed_publisher_name"] or "",
        feed_start_date=start,
        feed_end_date=end,
        feed_version=record.get("feed_version"),
    )


def resolve_overlaps(existing: list[FeedVersionInfo], candidate: FeedVersionInfo) -> OverlapPlan:
    """Plan how to insert ``candidate`` without overlapping ``existing``.

    Earlier versions still valid on the candidate's start date end the day
    before it. If a later version already exists, the candidate itself ends
    the day before that one starts.

    Raises:
        VersionConflictError: If a version with the same start date exists.
    """
    plan = OverlapPlan(valid_to=candidate.valid_to)
    for version in existing:
        if version.feed_source_id != candidate.feed_source_id:
            continue
        if version.valid_from == candidate.valid_from:
            msg = (
                f"Feed source {candidate.feed_source_id} already has a version "
                f"starting {candidate.valid_from}"
            )
            raise VersionConflictError(msg)
        if version.valid_from < candidate.valid_from:
            if version.valid_to >= candidate.valid_from and version.feed_version_id is not None:
                plan.truncations.append((version.feed_version_id, candidate.valid_from - ONE_DAY))
        elif plan.valid_to >= version.valid_from:
            plan.valid_to = version.valid_from - ONE_DAY
    return plan


class FeedVersionLedger:
    """Decides whether a fetched feed is new and records versions atomically."""

    def __init__(self, feed_source_id: int) -> None:
        self.feed_source_id = feed_source_id

    def candidate_for(self, feed_info: FeedInfo) -> FeedVersionInfo:
        return FeedVersionInfo(
            feed_source_id=self.feed_source_id,
            valid_from=feed_info.feed_start_date,
            valid_to=feed_info.feed_end_date,
        )

    async def is_new_version(
        self, session: AsyncSession, feed_info: FeedInfo
    ) -> FeedVersionInfo | None:
        """Return a candidate version, or None if one already starts on this date."""
        try:
            result = await session.execute(
                text(
                    "SELECT feed_version_id FROM feed_versions "
                    "WHERE feed_source_id = :feed_source_id AND valid_from = :valid_from "
                    "LIMIT 1"
                ),
                {
                    "feed_source_id": self.feed_source_id,
                    "valid_from": feed_info.feed_start_date,
                },
            )
            existing = result.fetchone()
        except SQLAlchemyError as exc:
            msg = f"Could not query feed versions: {exc}"
            raise StorageError(msg) from exc

        if existing is not None:
            logger.info(
                "Feed version already recorded",
                feed_source_id=self.feed_source_id,
                feed_version_id=existing[0],
                valid_from=feed_info.feed_start_date.isoformat(),
            )
            return None
        return self.candidate_for(feed_info)

    async def create_version(
        self, session: AsyncSession, candidate: FeedVersionInfo
    ) -> FeedVersionInfo:
        """Truncate overlapping versions and insert ``candidate`` in one transaction.

        The transaction holds an advisory lock on the feed source, so a
        concurrent creator waits and then sees this version's row. The
        session must not have a transaction in progress.

        Raises:
            VersionConflictError: If a version with the same start date exists.
            StorageError: If the transaction fails; nothing is changed.
        """
        try:
            async with session.begin():
                await session.execute(
                    text("SELECT pg_advisory_xact_lock(:namespace, :feed_source_id)"),
                    {"namespace": ADVISORY_LOCK_NAMESPACE, "feed_source_id": self.feed_source_id},
                )
                result = await session.execute(
                    text(
                        "SELECT feed_version_id, valid_from, valid_to, fetched_at "
                        "FROM feed_versions WHERE feed_source_id = :feed_source_id "
                        "ORDER BY valid_from FOR UPDATE"
                    ),
                    {"feed_source_id": self.feed_source_id},
                )
                existing = [
                    FeedVersionInfo(
                        feed_source_id=self.feed_source_id,
                        feed_version_id=row[0],
                        valid_from=row[1],
                        valid_to=row[2],
                        fetched_at=row[3],
                    )
                    for row in result.fetchall()
                ]

                plan = resolve_overlaps(existing, candidate)
                for feed_version_id, valid_to in plan.truncations:
                    await session.execute(
                        text(
                            "UPDATE feed_versions SET valid_to = :valid_to "
                            "WHERE feed_version_id = :feed_version_id"
                        ),
                        {"valid_to": valid_to, "feed_version_id": feed_version_id},
                    )

                inserted = await session.execute(
                    text(
                        "INSERT INTO feed_versions (feed_source_id, valid_from, valid_to) "
                        "VALUES (:feed_source_id, :valid_from, :valid_to) "
                        "RETURNING feed_version_id, fetched_at"
                    ),
                    {
                        "feed_source_id": self.feed_source_id,
                        "valid_from": candidate.valid_from,
                        "valid_to": plan.valid_to,
                    },
                )
                row = inserted.fetchone()
        except StorageError:
            raise
        except SQLAlchemyError as exc:
            msg = f"Feed version transaction failed: {exc}"
            raise StorageError(msg) from exc

        if row is None:
            msg = "Feed version insert returned no row"
            raise StorageError(msg)

        version = replace(
            candidate, feed_version_id=row[0], fetched_at=row[1], valid_to=plan.valid_to
        )
        logger.info(
            "Feed version created",
            feed_source_id=self.feed_source_id,
            feed_version_id=version.feed_version_id,
            valid_from=version.valid_from.isoformat(),
            valid_to=version.valid_to.isoformat(),
            truncated=[feed_version_id for feed_version_id, _ in plan.truncations],
        )
        return version

    async def active_version(self, session: AsyncSession, on_date: date) -> FeedVersionInfo | None:
        """Return the version whose validity window contains ``on_date``."""
        try:
            result = await session.execute(
                text(
                    "SELECT feed_version_id, valid_from, valid_to, fetched_at "
                    "FROM feed_versions "
                    "WHERE feed_source_id = :feed_source_id "
                    "AND valid_from <= :on_date AND valid_to >= :on_date "
                    "ORDER BY valid_from DESC LIMIT 1"
                ),
                {"feed_source_id": self.feed_source_id, "on_date": on_date},
            )
            row = result.fetchone()
        except SQLAlchemyError as exc:
            msg = f"Could not query active feed version: {exc}"
            raise StorageError(msg) from exc

        if row is None:
            return None
        return FeedVersionInfo(
            feed_source_id=self.feed_source_id,
            feed_version_id=row[0],
            valid_from=row[1],
            valid_to=row[2],
            fetched_at=row[3],
        )
