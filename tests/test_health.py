"""
Health check endpoint tests.
"""

import pytest


@pytest.mark.asyncio
async def test_health_endpoint(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "slabline"}


@pytest.mark.asyncio
async def test_readiness_with_database(client):
    response = await client.get("/api/health/ready")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


@pytest.mark.asyncio
async def test_liveness(client):
    response = await client.get("/api/health/live")
    assert response.json() == {"status": "alive"}
