"""Aggregated health check endpoint.

Subsystems register an async probe in ``app.state.health_checks`` (name ->
coroutine function that raises when unhealthy). The OAuth lifespan
registers the pending request store.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


async def _run_check(name: str, probe: Any) -> dict[str, str]:
    try:
        await probe()
        return {"status": "ok"}
    except Exception as exc:
        logger.warning("health_check: %s unhealthy: %s", name, exc)
        return {"status": "error", "detail": type(exc).__name__}


@router.get("/healthz")
async def healthz(request: Request) -> Any:
    """Aggregated health check endpoint.

    Returns HTTP 200 when every registered probe passes, HTTP 503 when any
    subsystem is degraded.
    """
    probes: dict[str, Any] = getattr(request.app.state, "health_checks", {})
    checks = {name: await _run_check(name, probe) for name, probe in probes.items()}

    all_ok = all(c["status"] == "ok" for c in checks.values())
    result = {
        "status": "ok" if all_ok else "degraded",
        "checks": checks,
    }
    return JSONResponse(content=result, status_code=200 if all_ok else 503)
