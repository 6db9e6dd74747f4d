"""Authorization server application factory.

Usage::

    uvicorn projectflow.domain.oauth.app:create_oauth_app --factory

Tests pass a prebuilt :class:`OAuthServices` (in-memory store, fake
identity provider); the OAuth lifespan then leaves it untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from projectflow.domain.oauth.router import router as oauth_router
from projectflow.domain.oauth.services import install_services
from projectflow.domain.oauth.services import lifespan_contribution as oauth_lifespan
from projectflow.infra.fastapi import AppSettings, create_app
from projectflow.infra.observability import lifespan_contribution as observability_lifespan

if TYPE_CHECKING:
    from fastapi import FastAPI

    from projectflow.domain.oauth.services import OAuthServices


def create_oauth_app(
    settings: AppSettings | None = None,
    *,
    services: OAuthServices | None = None,
) -> FastAPI:
    """Create the OAuth authorization server application.

    Args:
        settings: Application settings. If ``None``, loaded from environment.
        services: Prebuilt services. If ``None``, the OAuth lifespan builds
            them from ``OAUTH_*`` / ``DATABASE_*`` environment variables.
    """
    app = create_app(
        settings,
        routers=[oauth_router],
        lifespan_hooks=[observability_lifespan, oauth_lifespan],
    )
    if services is not None:
        install_services(app, services)
    return app
