"""Tests for StaticQueries."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from transit_lens.errors import StorageError
from transit_lens.services.gtfs_static.queries import StaticQueries

from .fixtures.session_fixture import build_mock_session, build_result

VERSION_ROW = (5, date(2024, 1, 1), date(2024, 6, 1), datetime(2024, 1, 2, tzinfo=timezone.utc))


def _rows_result(rows: list[dict[str, object]]) -> object:
    result = build_result()
    result.mappings.return_value.all.return_value = rows
    return result


class TestStaticQueries:
    """Unit tests for reading the active version's tables."""

    async def test_reads_active_version(self) -> None:
        rows = [{"feed_version_id": 5, "stop_id": "1558"}, {"feed_version_id": 5, "stop_id": "2186"}]
        session = build_mock_session([build_result([VERSION_ROW]), _rows_result(rows)])

        result = await StaticQueries(1).fetch_table(session, "stops", date(2024, 3, 1))

        assert result == rows
        select_sql = str(session.execute.await_args_list[1].args[0])
        assert "FROM stops" in select_sql
        assert 'ORDER BY "stop_id"' in select_sql
        assert session.execute.await_args_list[1].args[1] == {"feed_version_id": 5}

    async def test_no_active_version(self) -> None:
        session = build_mock_session([build_result([])])

        result = await StaticQueries(1).fetch_table(session, "routes", date(2030, 1, 1))

        assert result == []
        assert session.execute.await_count == 1

    async def test_composite_order(self) -> None:
        session = build_mock_session([build_result([VERSION_ROW]), _rows_result([])])

        await StaticQueries(1).fetch_table(session, "stop_times", date(2024, 3, 1))

        select_sql = str(session.execute.await_args_list[1].args[0])
        assert 'ORDER BY "trip_id", "stop_sequence"' in select_sql

    async def test_unknown_table(self) -> None:
        session = build_mock_session()

        with pytest.raises(ValueError, match="Unknown GTFS table"):
            await StaticQueries(1).fetch_table(session, "fares", date(2024, 3, 1))

        session.execute.assert_not_awaited()

    async def test_database_error(self) -> None:
        session = build_mock_session(
            [build_result([VERSION_ROW]), OperationalError("SELECT", {}, Exception("gone"))]
        )

        with pytest.raises(StorageError, match="Could not read stops"):
            await StaticQueries(1).fetch_table(session, "stops", date(2024, 3, 1))
