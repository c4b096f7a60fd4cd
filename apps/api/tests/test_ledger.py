"""Tests for the feed version ledger."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from transit_lens.errors import ArchiveError, SchemaValidationError, StorageError
from transit_lens.services.gtfs_static.ledger import (
    FeedInfo,
    FeedVersionInfo,
    FeedVersionLedger,
    VersionConflictError,
    read_feed_info,
    resolve_overlaps,
)

from .fixtures.gtfs_fixture import FEED_INFO_TXT, build_feed_info
from .fixtures.session_fixture import build_mock_session, build_result

if TYPE_CHECKING:
    from pathlib import Path

FETCHED_AT = datetime(2024, 2, 20, 12, 0, tzinfo=timezone.utc)


def _version(
    valid_from: date, valid_to: date, feed_version_id: int | None = None, source: int = 1
) -> FeedVersionInfo:
    return FeedVersionInfo(
        feed_source_id=source,
        valid_from=valid_from,
        valid_to=valid_to,
        feed_version_id=feed_version_id,
    )


class TestReadFeedInfo:
    """Tests for feed_info.txt parsing."""

    def test_reads_window(self, tmp_path: Path) -> None:
        path = tmp_path / "feed_info.txt"
        path.write_text(FEED_INFO_TXT, encoding="utf-8")

        info = read_feed_info(path)

        assert info.publisher_name == "ZTM Poznan"
        assert info.feed_start_date == date(2024, 1, 1)
        assert info.feed_end_date == date(2024, 6, 1)
        assert info.feed_version is None

    def test_missing_file_raises_archive_error(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="feed_info.txt"):
            read_feed_info(tmp_path / "feed_info.txt")

    def test_header_only_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "feed_info.txt"
        path.write_text(FEED_INFO_TXT.splitlines()[0] + "\n", encoding="utf-8")

        with pytest.raises(SchemaValidationError, match="no rows"):
            read_feed_info(path)

    def test_end_before_start_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "feed_info.txt"
        path.write_text(build_feed_info("20240601", "20240101"), encoding="utf-8")

        with pytest.raises(SchemaValidationError, match="precedes"):
            read_feed_info(path)


class TestResolveOverlaps:
    """Tests for the pure overlap planning step."""

    def test_new_version_truncates_overlapping_predecessor(self) -> None:
        v1 = _version(date(2024, 1, 1), date(2024, 6, 1), feed_version_id=1)
        v2 = _version(date(2024, 3, 1), date(2024, 9, 1))

        plan = resolve_overlaps([v1], v2)

        assert plan.truncations == [(1, date(2024, 2, 29))]
        assert plan.valid_to == date(2024, 9, 1)

    def test_non_overlapping_predecessor_untouched(self) -> None:
        v1 = _version(date(2024, 1, 1), date(2024, 2, 29), feed_version_id=1)
        v2 = _version(date(2024, 3, 1), date(2024, 9, 1))

        assert resolve_overlaps([v1], v2).truncations == []

    def test_predecessor_ending_on_new_start_is_truncated(self) -> None:
        v1 = _version(date(2024, 1, 1), date(2024, 3, 1), feed_version_id=1)
        v2 = _version(date(2024, 3, 1), date(2024, 9, 1))

        assert resolve_overlaps([v1], v2).truncations == [(1, date(2024, 2, 29))]

    def test_later_version_clips_candidate(self) -> None:
        later = _version(date(2024, 5, 1), date(2024, 12, 31), feed_version_id=2)
        candidate = _version(date(2024, 3, 1), date(2024, 9, 1))

        plan = resolve_overlaps([later], candidate)

        assert plan.truncations == []
        assert plan.valid_to == date(2024, 4, 30)

    def test_several_predecessors(self) -> None:
        existing = [
            _version(date(2024, 1, 1), date(2024, 12, 31), feed_version_id=1),
            _version(date(2023, 1, 1), date(2023, 12, 31), feed_version_id=2),
        ]
        candidate = _version(date(2024, 7, 1), date(2024, 12, 31))

        plan = resolve_overlaps(existing, candidate)

        assert plan.truncations == [(1, date(2024, 6, 30))]

    def test_same_start_conflicts(self) -> None:
        v1 = _version(date(2024, 1, 1), date(2024, 6, 1), feed_version_id=1)

        with pytest.raises(VersionConflictError):
            resolve_overlaps([v1], _version(date(2024, 1, 1), date(2024, 8, 1)))

    def test_other_feed_sources_ignored(self) -> None:
        other = _version(date(2024, 1, 1), date(2024, 6, 1), feed_version_id=9, source=2)

        plan = resolve_overlaps([other], _version(date(2024, 1, 1), date(2024, 6, 1)))

        assert plan.truncations == []

    def test_resulting_windows_never_overlap(self) -> None:
        existing = [
            _version(date(2024, 1, 1), date(2024, 6, 1), feed_version_id=1),
            _version(date(2024, 8, 1), date(2024, 12, 31), feed_version_id=2),
        ]
        candidate = _version(date(2024, 3, 1), date(2024, 10, 1))

        plan = resolve_overlaps(existing, candidate)
        truncated = dict(plan.truncations)
        windows = sorted(
            [(v.valid_from, truncated.get(v.feed_version_id, v.valid_to)) for v in existing]
            + [(candidate.valid_from, plan.valid_to)]
        )

        for (_, end), (next_start, _) in zip(windows, windows[1:]):
            assert end < next_start


class TestFeedVersionLedger:
    """Tests for the ledger's database operations against a mock session."""

    async def test_is_new_version_returns_candidate(self) -> None:
        session = build_mock_session([build_result([])])
        info = FeedInfo("ZTM", date(2024, 3, 1), date(2024, 9, 1))

        candidate = await FeedVersionLedger(1).is_new_version(session, info)

        assert candidate == _version(date(2024, 3, 1), date(2024, 9, 1))

    async def test_is_new_version_none_when_already_recorded(self) -> None:
        session = build_mock_session([build_result([(4,)])])
        info = FeedInfo("ZTM", date(2024, 3, 1), date(2024, 9, 1))

        assert await FeedVersionLedger(1).is_new_version(session, info) is None

    async def test_is_new_version_wraps_db_errors(self) -> None:
        session = build_mock_session()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        info = FeedInfo("ZTM", date(2024, 3, 1), date(2024, 9, 1))

        with pytest.raises(StorageError):
            await FeedVersionLedger(1).is_new_version(session, info)

    async def test_create_version_truncates_then_inserts(self) -> None:
        session = build_mock_session(
            [
                build_result([]),  # advisory lock
                build_result([(1, date(2024, 1, 1), date(2024, 6, 1), FETCHED_AT)]),
                build_result([]),  # truncate
                build_result([(2, FETCHED_AT)]),  # insert
            ]
        )
        candidate = _version(date(2024, 3, 1), date(2024, 9, 1))

        version = await FeedVersionLedger(1).create_version(session, candidate)

        assert version.feed_version_id == 2
        assert version.valid_to == date(2024, 9, 1)
        session.begin.assert_called_once()

        statements = [str(call.args[0]) for call in session.execute.await_args_list]
        assert "pg_advisory_xact_lock" in statements[0]
        assert "FOR UPDATE" in statements[1]
        assert statements[2].startswith("UPDATE feed_versions SET valid_to")
        assert statements[3].startswith("INSERT INTO feed_versions")

        truncate_params = session.execute.await_args_list[2].args[1]
        assert truncate_params == {"valid_to": date(2024, 2, 29), "feed_version_id": 1}

    async def test_create_version_conflict_inserts_nothing(self) -> None:
        session = build_mock_session(
            [
                build_result([]),
                build_result([(1, date(2024, 3, 1), date(2024, 6, 1), FETCHED_AT)]),
            ]
        )

        with pytest.raises(VersionConflictError):
            await FeedVersionLedger(1).create_version(
                session, _version(date(2024, 3, 1), date(2024, 9, 1))
            )

        assert session.execute.await_count == 2

    async def test_create_version_failure_raises_storage_error(self) -> None:
        session = build_mock_session(
            [
                build_result([]),
                build_result([]),
                OperationalError("INSERT", {}, Exception("connection lost")),
            ]
        )

        with pytest.raises(StorageError, match="transaction failed"):
            await FeedVersionLedger(1).create_version(
                session, _version(date(2024, 3, 1), date(2024, 9, 1))
            )

        # The transaction context manager saw the error and rolls back
        transaction = session.begin.return_value
        exc_type = transaction.__aexit__.await_args.args[0]
        assert exc_type is OperationalError

    async def test_active_version(self) -> None:
        session = build_mock_session(
            [build_result([(2, date(2024, 3, 1), date(2024, 9, 1), FETCHED_AT)])]
        )

        version = await FeedVersionLedger(1).active_version(session, date(2024, 4, 1))

        assert version is not None
        assert version.feed_version_id == 2
        assert version.covers(date(2024, 4, 1))

    async def test_active_version_none(self) -> None:
        session = build_mock_session([build_result([])])

        assert await FeedVersionLedger(1).active_version(session, date(2020, 1, 1)) is None
