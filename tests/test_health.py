"""Tests for the aggregated health check endpoint."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from projectflow.infra.fastapi._health import router
from projectflow.infra.persistence.pending_requests import PendingRequestStoreError


@pytest.fixture
def health_app() -> FastAPI:
    app = FastAPI()
    app.state.health_checks = {}
    app.include_router(router)
    return app


@pytest.mark.unit
class TestHealthz:
    @pytest.mark.asyncio
    async def test_no_probes_is_healthy(self, health_app: FastAPI) -> None:
        transport = ASGITransport(app=health_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "checks": {}}

    @pytest.mark.asyncio
    async def test_all_healthy(self, health_app: FastAPI) -> None:
        health_app.state.health_checks["pending_request_store"] = AsyncMock(return_value=None)
        transport = ASGITransport(app=health_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/healthz")
        assert resp.status_code == 200
        assert resp.json()["checks"]["pending_request_store"]["status"] == "ok"

    @pytest.mark.asyncio
    async def test_degraded_when_store_fails(self, health_app: FastAPI) -> None:
        health_app.state.health_checks["pending_request_store"] = AsyncMock(
            side_effect=PendingRequestStoreError("Pending request store is unreachable")
        )
        transport = ASGITransport(app=health_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/healthz")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["pending_request_store"] == {
            "status": "error",
            "detail": "PendingRequestStoreError",
        }
