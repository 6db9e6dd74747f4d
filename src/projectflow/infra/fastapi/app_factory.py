"""FastAPI application factory.

Provides :func:`create_app`, which wires routers, middleware, error
handlers and lifespan hooks from explicit contribution lists into one
FastAPI application. Contributions are ordered by priority so packages can
declare where they sit without knowing about each other.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from projectflow.infra.fastapi._health import router as health_router
from projectflow.infra.fastapi.error_handlers import error_handler_contributions
from projectflow.infra.fastapi.middleware.request_id import contribution as request_id_contribution
from projectflow.infra.fastapi.settings import AppSettings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import APIRouter
    from projectflow.foundation.application import (
        ErrorHandlerContribution,
        LifespanContribution,
        MiddlewareContribution,
    )

logger = logging.getLogger(__name__)


def compose_lifespan(hooks: list[LifespanContribution]) -> Any:
    """Combine lifespan hooks into a single FastAPI ``lifespan`` factory.

    Hooks are entered in ascending priority and exited in reverse
    (stack semantics via :class:`AsyncExitStack`).
    """
    ordered = sorted(hooks, key=lambda h: h.priority)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for contribution in ordered:
                logger.info(
                    "Entering lifespan hook (priority=%d): %r",
                    contribution.priority,
                    contribution.hook,
                )
                await stack.enter_async_context(contribution.hook(app))
            yield

    return lifespan


def create_app(
    settings: AppSettings | None = None,
    *,
    routers: list[APIRouter] | None = None,
    middleware: list[MiddlewareContribution] | None = None,
    lifespan_hooks: list[LifespanContribution] | None = None,
    error_handlers: list[ErrorHandlerContribution] | None = None,
    include_health: bool = True,
) -> FastAPI:
    """Create a FastAPI application from explicit contributions.

    The request ID middleware, the OAuth error handlers and the health
    router are always registered; the lists passed in are added on top.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        routers: Routers to include.
        middleware: Additional middleware contributions.
        lifespan_hooks: Lifespan hooks, entered in priority order.
        error_handlers: Additional error handlers, registered after the defaults.
        include_health: Whether to mount ``/healthz``.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or AppSettings()

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description=settings.description,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        debug=settings.debug,
        lifespan=compose_lifespan(list(lifespan_hooks or [])),
    )
    app.state.expose_error_details = settings.expose_error_details
    app.state.health_checks = {}

    # --- CORS (always added, configured via settings) ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allow_origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
        expose_headers=settings.cors.expose_headers,
    )

    # Sort by priority ascending, then add in reverse (LIFO for Starlette)
    middleware_contribs = [request_id_contribution, *(middleware or [])]
    middleware_contribs.sort(key=lambda m: m.priority)
    for mw in reversed(middleware_contribs):
        app.add_middleware(mw.middleware_class, **mw.kwargs)
        logger.info(
            "Registered middleware %s (priority=%d)",
            mw.middleware_class.__name__,
            mw.priority,
        )

    for eh in [*error_handler_contributions, *(error_handlers or [])]:
        app.add_exception_handler(eh.exception_class, eh.handler)

    all_routers = [health_router, *(routers or [])] if include_health else list(routers or [])
    for router in all_routers:
        app.include_router(router)
        logger.info("Included router: %r", router)

    return app
