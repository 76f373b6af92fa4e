"""Health endpoint smoke test."""

import pytest
from httpx import ASGITransport, AsyncClient

from tableside.main import app


@pytest.mark.asyncio
async def test_healthcheck_returns_ok() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Tableside Venue API"
    assert response.headers["X-Request-ID"]
    assert "strict-transport-security" in response.headers
