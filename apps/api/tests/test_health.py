"""Tests for health endpoint."""

from unittest.mock import patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_endpoint_returns_200(client: AsyncClient) -> None:
    """Test that health endpoint returns 200 with expected fields."""
    response = await client.get("/health")

    assert response.status_code == 200

    data = response.json()
    assert data["service"] == "Transit Lens Ingestion API"
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert "timestamp" in data
    assert isinstance(data["checks"]["database"], bool)
    scheduler = data["checks"]["scheduler"]
    assert scheduler["running"] is False
    assert "missed_ticks" in scheduler["realtime"]
    assert "in_progress" in scheduler["static"]
    assert data["issues"] == []


@pytest.mark.asyncio
async def test_health_endpoint_includes_version(client: AsyncClient) -> None:
    """Test that health endpoint includes app version."""
    response = await client.get("/health")
    data = response.json()

    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_health_endpoint_includes_environment(client: AsyncClient) -> None:
    """Test that health endpoint includes environment."""
    response = await client.get("/health")
    data = response.json()

    assert data["environment"] in ["development", "staging", "production"]


@pytest.mark.asyncio
async def test_health_endpoint_has_request_id_header(client: AsyncClient) -> None:
    """Test that health endpoint response includes X-Request-ID header."""
    response = await client.get("/health")

    assert "X-Request-ID" in response.headers
    assert len(response.headers["X-Request-ID"]) > 0


@pytest.mark.asyncio
async def test_health_endpoint_echoes_request_id(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_health_degraded_without_database(client: AsyncClient) -> None:
    """Database outage degrades health rather than failing it."""
    with patch("transit_lens.main.check_database_connection", return_value=False):
        response = await client.get("/health")

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "degraded"
    assert data["checks"]["database"] is False
    assert "Database is not reachable" in data["issues"]
