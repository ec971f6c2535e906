"""Tests for health check endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test basic health check endpoint."""
    response = await client.get("/api/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert "version" in data
    assert data["environment"] == "test"
    assert data["dependencies"]["central_database"]["status"] == "healthy"
    assert data["dependencies"]["tenant_connections"]["cached_handles"] == 0


@pytest.mark.asyncio
async def test_health_check_needs_no_tenant_or_token(client: AsyncClient):
    """Health is reachable with an unknown host and no credentials."""
    response = await client.get("/api/health", headers={"Host": "unknown.example.com"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    """Test root endpoint."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()

    assert data["service"] == "pos-management-service"
    assert "version" in data
    assert data["status"] == "running"


@pytest.mark.asyncio
async def test_response_carries_request_id(client: AsyncClient):
    response = await client.get("/api/health")

    assert response.headers["X-Request-ID"]
    assert "X-Process-Time" in response.headers
