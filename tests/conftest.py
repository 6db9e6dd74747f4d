"""Shared fixtures for the authorization server tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from projectflow.domain.oauth.app import create_oauth_app
from projectflow.domain.oauth.services import OAuthServices
from projectflow.foundation.domain.ports import AuthSession
from projectflow.infra.auth.identity_provider import IdentityProviderError
from projectflow.infra.auth.settings import OAuthSettings
from projectflow.infra.fastapi.settings import AppSettings
from projectflow.infra.persistence.memory_store import InMemoryPendingRequestStore

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from fastapi import FastAPI

SESSION_COOKIE = "sb-auth-token"

# RFC 7636 Appendix B.
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

CURSOR_UA = "Cursor/1.0 (darwin arm64)"
BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 Safari/605.1.15"


class FakeIdentityProvider:
    """In-process stand-in for the identity provider.

    ``session`` is returned to any caller presenting the session cookie.
    ``refresh_tokens`` maps accepted refresh tokens to the session issued
    for them. Revocations are recorded in ``revoked``.
    """

    def __init__(self, session: AuthSession | None = None) -> None:
        self.session = session
        self.refresh_tokens: dict[str, AuthSession] = {}
        self.revoked: list[tuple[str, str | None]] = []
        self.probe_error: IdentityProviderError | None = None
        self.revoke_error: IdentityProviderError | None = None
        self.closed = False

    async def get_session(self, cookies: Mapping[str, str]) -> AuthSession | None:
        if self.probe_error is not None:
            raise self.probe_error
        if not cookies.get(SESSION_COOKIE):
            return None
        return self.session

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        session = self.refresh_tokens.get(refresh_token)
        if session is None:
            raise IdentityProviderError(400, "invalid_grant", "Invalid Refresh Token")
        return session

    async def revoke_token(self, token: str, token_type_hint: str | None = None) -> None:
        if self.revoke_error is not None:
            raise self.revoke_error
        self.revoked.append((token, token_type_hint))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def auth_session() -> AuthSession:
    return AuthSession(
        user_id="user-123",
        access_token="session-access-token",
        refresh_token="session-refresh-token",
    )


@pytest.fixture()
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def store() -> InMemoryPendingRequestStore:
    return InMemoryPendingRequestStore()


@pytest.fixture()
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(
        issuer="https://auth.example.com",
        app_url="https://app.example.com",
        store_backend="memory",
        identity_provider_url="https://idp.example.com",
        session_cookie_name=SESSION_COOKIE,
    )


@pytest.fixture()
def services(
    oauth_settings: OAuthSettings,
    store: InMemoryPendingRequestStore,
    identity_provider: FakeIdentityProvider,
) -> OAuthServices:
    return OAuthServices(
        settings=oauth_settings,
        store=store,
        identity_provider=identity_provider,
    )


@pytest.fixture()
def oauth_app(services: OAuthServices) -> FastAPI:
    """Fresh application with injected in-memory services."""
    return create_oauth_app(AppSettings(environment="test"), services=services)


@pytest.fixture()
def client(oauth_app: FastAPI) -> Iterator[TestClient]:
    """TestClient for the authorization server (lifespan hooks executed)."""
    with TestClient(oauth_app, raise_server_exceptions=False) as c:
        yield c
