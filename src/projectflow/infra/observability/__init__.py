"""ProjectFlow Infra Observability - structlog logging."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from projectflow.foundation.application import (
    LIFESPAN_PRIORITY_OBSERVABILITY,
    LifespanContribution,
)
from projectflow.infra.observability.logging import (
    LoggingSettings,
    SensitiveDataProcessor,
    configure_logging,
    get_logger,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def _observability_lifespan(app: Any) -> AsyncIterator[None]:
    """Lifespan hook that configures logging on startup.

    Args:
        app: The FastAPI application instance.
    """
    configure_logging()
    yield


lifespan_contribution = LifespanContribution(
    hook=_observability_lifespan,
    priority=LIFESPAN_PRIORITY_OBSERVABILITY,  # Start early, shut down late
)

__all__ = [
    "LoggingSettings",
    "SensitiveDataProcessor",
    "configure_logging",
    "get_logger",
    "lifespan_contribution",
]
