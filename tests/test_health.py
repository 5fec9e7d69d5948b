"""
Tests for the probes, request correlation and the split service entry points
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

import chat_main
import payments_main


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["environment"] == "test"


@pytest.mark.asyncio
async def test_live(client: AsyncClient):
    response = await client.get("/health/live")
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_ready(client: AsyncClient):
    response = await client.get("/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_not_ready_when_database_is_down(client: AsyncClient, database):
    database.ping = AsyncMock(return_value=False)

    response = await client.get("/health/ready")
    assert response.status_code == 503

    response = await client.get("/health")
    assert response.json()["status"] == "degraded"


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    response = await client.get("/api")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_request_id_is_generated_and_echoed(client: AsyncClient):
    response = await client.get("/health/live")
    assert response.headers["X-Request-ID"]

    response = await client.get("/health/live", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


@pytest_asyncio.fixture
async def service_client(database):
    """Client factory for the split deployables, sharing the test database"""
    clients = []

    async def make(service_app):
        service_app.state.db = database
        ac = AsyncClient(transport=ASGITransport(app=service_app), base_url="http://test")
        clients.append((service_app, ac))
        return ac

    yield make
    for service_app, ac in clients:
        await ac.aclose()
        service_app.state.db = None


@pytest.mark.asyncio
async def test_chat_service_routes(service_client):
    ac = await service_client(chat_main.app)

    assert (await ac.post("/api/chat", json={"message": "hi"})).status_code == 401
    assert (await ac.get("/api/conversations")).status_code == 401
    assert (await ac.get("/api/pricing/tiers")).status_code == 200

    assert (await ac.post("/api/webhooks/stripe", content=b"{}")).status_code == 404
    assert (await ac.post("/api/payments/link", json={})).status_code == 404
    assert (await ac.get("/api/api-keys")).status_code == 404


@pytest.mark.asyncio
async def test_payments_service_routes(service_client):
    ac = await service_client(payments_main.app)

    assert (await ac.post("/api/webhooks/stripe", content=b"{}")).status_code == 400
    assert (await ac.post("/api/payments/link", json={})).status_code == 401
    assert (await ac.get("/api/api-keys")).status_code == 401

    assert (await ac.post("/api/chat", json={"message": "hi"})).status_code == 404
    assert (await ac.get("/api/pricing/tiers")).status_code == 404


@pytest.mark.asyncio
async def test_payments_service_serves_probes(service_client):
    ac = await service_client(payments_main.app)
    response = await ac.get("/health/ready")
    assert response.status_code == 200
