"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from transit_lens.config import FEED_TRIP_UPDATES, FEED_VEHICLE_POSITIONS, IngestConfig
from transit_lens.main import app
from transit_lens.services.scheduler import reset_scheduler


@pytest.fixture(autouse=True)
def _reset_scheduler_singleton() -> None:
    """Reset the scheduler singleton between tests."""
    reset_scheduler()


@pytest.fixture
def ingest_config(tmp_path: Path) -> IngestConfig:
    """Orchestrator configuration writing under a temporary directory."""
    return IngestConfig(
        feed_source_id=1,
        static_feed_url="https://example.com/gtfs.zip",
        realtime_urls={
            FEED_TRIP_UPDATES: "https://example.com/trip_updates.pb",
            FEED_VEHICLE_POSITIONS: "https://example.com/vehicle_positions.pb",
        },
        storage_path=tmp_path / "gtfs_rt",
        scratch_path=tmp_path / "scratch",
        realtime_interval_seconds=0.05,
        static_sync_interval_seconds=0,
    )


@pytest.fixture
def mock_db_connection() -> Any:
    """Mock database connection check."""
    with patch("transit_lens.main.check_database_connection", new_callable=AsyncMock) as mock:
        mock.return_value = True
        yield mock


@pytest.fixture
async def client(mock_db_connection: Any) -> AsyncGenerator[AsyncClient, None]:  # noqa: ARG001
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
