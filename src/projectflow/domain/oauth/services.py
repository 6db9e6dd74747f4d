"""OAuth services registry and lifespan hook.

Everything the endpoints need (settings, pending request store, identity
provider client and the three handlers) is built once at startup into an
:class:`OAuthServices` instance stored on ``app.state.oauth``. Routes reach
it only through the :func:`get_oauth_services` dependency.

The registry is process-local. With ``OAUTH_STORE_BACKEND=memory`` the
pending requests it holds are not visible to other instances.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request

from projectflow.domain.oauth.authorize import AuthorizeHandler
from projectflow.domain.oauth.revocation import RevocationHandler
from projectflow.domain.oauth.token import TokenHandler
from projectflow.foundation.application import LIFESPAN_PRIORITY_OAUTH, LifespanContribution
from projectflow.infra.auth.identity_provider import IdentityProviderClient
from projectflow.infra.auth.settings import get_oauth_settings
from projectflow.infra.observability import get_logger
from projectflow.infra.persistence.database import DatabaseManager, DatabaseSettings
from projectflow.infra.persistence.memory_store import InMemoryPendingRequestStore
from projectflow.infra.persistence.pending_requests import (
    PendingRequestStoreError,
    SqlPendingRequestStore,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from projectflow.foundation.domain.ports import IdentityProviderPort, PendingRequestStorePort
    from projectflow.infra.auth.settings import OAuthSettings

logger = get_logger(__name__)


@dataclass(slots=True)
class OAuthServices:
    """Explicit registry of the authorization server's collaborators.

    Attributes:
        settings: OAuth settings.
        store: Pending request store.
        identity_provider: Identity provider client.
        database: Database manager when the SQL store is in use.
        authorize: Authorize endpoint handler.
        token: Token endpoint handler.
        revocation: Revocation endpoint handler.
    """

    settings: OAuthSettings
    store: PendingRequestStorePort
    identity_provider: IdentityProviderPort
    database: DatabaseManager | None = None
    authorize: AuthorizeHandler = field(init=False)
    token: TokenHandler = field(init=False)
    revocation: RevocationHandler = field(init=False)

    def __post_init__(self) -> None:
        self.authorize = AuthorizeHandler(self.store, self.identity_provider, self.settings)
        self.token = TokenHandler(self.store, self.identity_provider, self.settings)
        self.revocation = RevocationHandler(self.identity_provider)

    @classmethod
    async def from_settings(
        cls,
        settings: OAuthSettings,
        database_settings: DatabaseSettings | None = None,
    ) -> OAuthServices:
        """Build the production collaborators described by ``settings``."""
        identity_provider = IdentityProviderClient.from_settings(settings)
        if not identity_provider.is_configured:
            logger.warning("oauth_identity_provider_not_configured")

        if settings.store_backend == "memory":
            logger.warning("oauth_store_in_memory")
            return cls(
                settings=settings,
                store=InMemoryPendingRequestStore(),
                identity_provider=identity_provider,
            )

        database = DatabaseManager(database_settings or DatabaseSettings())
        store = SqlPendingRequestStore(database.get_engine())
        if settings.create_tables:
            await store.create_table()
        return cls(
            settings=settings,
            store=store,
            identity_provider=identity_provider,
            database=database,
        )

    async def aclose(self) -> None:
        await self.identity_provider.aclose()
        if self.database is not None:
            await self.database.dispose()


def install_services(app: Any, services: OAuthServices) -> None:
    """Attach services to an application and register the store health probe."""
    app.state.oauth = services
    checks = getattr(app.state, "health_checks", None)
    if checks is not None:
        checks["pending_request_store"] = services.store.ping


async def _purge_expired(services: OAuthServices) -> None:
    try:
        removed = await services.store.purge_expired()
    except PendingRequestStoreError:
        logger.warning("pending_request_purge_failed", exc_info=True)
        return
    if removed:
        logger.info("pending_requests_purged_on_startup", count=removed)


@asynccontextmanager
async def _oauth_lifespan(app: Any) -> AsyncIterator[None]:
    """Build the services registry unless one was injected.

    Startup:
        1. Build OAuthServices from environment settings.
        2. Register the store health probe.
        3. Purge pending requests that expired while the process was down.

    Shutdown:
        1. Close the identity provider client and dispose the engine
           (only for services this hook created).

    Args:
        app: The FastAPI application instance.
    """
    services: OAuthServices | None = getattr(app.state, "oauth", None)
    owned = services is None
    if services is None:
        services = await OAuthServices.from_settings(get_oauth_settings())
        install_services(app, services)
        await _purge_expired(services)
        logger.info("oauth_lifespan_started", store_backend=services.settings.store_backend)

    try:
        yield
    finally:
        if owned:
            await services.aclose()
            app.state.oauth = None
        logger.info("oauth_lifespan_shutdown_complete")


lifespan_contribution = LifespanContribution(
    hook=_oauth_lifespan,
    priority=LIFESPAN_PRIORITY_OAUTH,
)


def get_oauth_services(request: Request) -> OAuthServices:
    """FastAPI dependency returning the application's OAuthServices.

    Raises:
        RuntimeError: If the application was started without the OAuth lifespan.
    """
    services: OAuthServices | None = getattr(request.app.state, "oauth", None)
    if services is None:
        msg = "OAuth services are not initialised; is the OAuth lifespan registered?"
        raise RuntimeError(msg)
    return services


OAuthServicesDep = Annotated[OAuthServices, Depends(get_oauth_services)]
