"""Tests for TokenHandler: authorization_code and refresh_token grants."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock
from urllib.parse import quote

import pytest

from projectflow.domain.oauth.authorization_code import (
    AuthorizationCodePayload,
    encode_authorization_code,
)
from projectflow.domain.oauth.token import TokenHandler
from projectflow.foundation.domain.exceptions import (
    InvalidGrantError,
    InvalidRequestError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from projectflow.foundation.domain.pending_request import (
    CodeChallengeMethod,
    PendingAuthorizationRequest,
)
from projectflow.foundation.domain.ports import AuthSession
from projectflow.infra.persistence.pending_requests import PendingRequestStoreError

if TYPE_CHECKING:
    from conftest import FakeIdentityProvider

    from projectflow.infra.auth.settings import OAuthSettings
    from projectflow.infra.persistence.memory_store import InMemoryPendingRequestStore

RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
REDIRECT_URI = "cursor://anysphere.cursor-retrieval/oauth/callback"
NOW_MS = 1_700_000_000_000


def _code(**overrides: object) -> str:
    fields: dict[str, object] = {
        "user_id": "user-123",
        "code_challenge": RFC_CHALLENGE,
        "code_challenge_method": "S256",
        "redirect_uri": REDIRECT_URI,
        "expires_at": NOW_MS + 600_000,
        "access_token": "session-access-token",
        "refresh_token": "session-refresh-token",
        "scope": "projects:read tasks:read",
        "state": "xyz",
    }
    fields.update(overrides)
    return encode_authorization_code(AuthorizationCodePayload(**fields))  # type: ignore[arg-type]


def _exchange(code: str, **overrides: str) -> dict[str, str]:
    params = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": REDIRECT_URI,
        "code_verifier": RFC_VERIFIER,
    }
    params.update(overrides)
    return params


@pytest.fixture()
def handler(
    store: InMemoryPendingRequestStore,
    identity_provider: FakeIdentityProvider,
    oauth_settings: OAuthSettings,
) -> TokenHandler:
    return TokenHandler(store, identity_provider, oauth_settings, clock=lambda: NOW_MS)


@pytest.mark.unit
class TestGrantDispatch:
    @pytest.mark.asyncio
    async def test_missing_grant_type(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidRequestError, match="grant_type"):
            await handler.handle({})

    @pytest.mark.asyncio
    async def test_unsupported_grant_type(self, handler: TokenHandler) -> None:
        with pytest.raises(UnsupportedGrantTypeError) as exc_info:
            await handler.handle({"grant_type": "client_credentials"})
        assert exc_info.value.error == "unsupported_grant_type"
        assert "grant_type" in exc_info.value.description

    @pytest.mark.asyncio
    async def test_non_string_parameter_is_invalid_request(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidRequestError):
            await handler.handle({"grant_type": ["authorization_code"]})

    @pytest.mark.asyncio
    async def test_unknown_client_rejected_when_allow_list_set(
        self,
        store: InMemoryPendingRequestStore,
        identity_provider: FakeIdentityProvider,
        oauth_settings: OAuthSettings,
    ) -> None:
        settings = oauth_settings.model_copy(update={"allowed_client_ids": ["cursor"]})
        handler = TokenHandler(store, identity_provider, settings, clock=lambda: NOW_MS)
        with pytest.raises(UnauthorizedClientError):
            await handler.handle(_exchange(_code(), client_id="intruder"))


@pytest.mark.unit
class TestAuthorizationCodeGrant:
    @pytest.mark.asyncio
    async def test_valid_exchange_returns_session_tokens(
        self, handler: TokenHandler, oauth_settings: OAuthSettings
    ) -> None:
        response = await handler.handle(_exchange(_code()))
        assert response.access_token == "session-access-token"
        assert response.refresh_token == "session-refresh-token"
        assert response.token_type == "Bearer"
        assert response.expires_in == oauth_settings.access_token_expires_in
        assert response.scope == "projects:read tasks:read"

    @pytest.mark.asyncio
    async def test_empty_scope_is_omitted(self, handler: TokenHandler) -> None:
        response = await handler.handle(_exchange(_code(scope="")))
        assert response.scope is None

    @pytest.mark.asyncio
    async def test_url_encoded_code_is_accepted(self, handler: TokenHandler) -> None:
        code = _code()
        response = await handler.handle(_exchange(quote(code, safe="")))
        assert response.access_token == "session-access-token"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["code", "redirect_uri", "code_verifier"])
    async def test_missing_parameter(self, handler: TokenHandler, missing: str) -> None:
        params = _exchange(_code())
        del params[missing]
        with pytest.raises(InvalidRequestError, match=missing):
            await handler.handle(params)

    @pytest.mark.asyncio
    async def test_invalid_verifier_format_rejected_before_store_access(
        self, identity_provider: FakeIdentityProvider, oauth_settings: OAuthSettings
    ) -> None:
        store = AsyncMock()
        handler = TokenHandler(store, identity_provider, oauth_settings, clock=lambda: NOW_MS)
        params = _exchange(_code(), code_verifier="invalid-verifier-with-special-chars!@#$%")
        with pytest.raises(InvalidRequestError, match="code_verifier"):
            await handler.handle(params)
        store.find_by_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_code(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidGrantError, match="format"):
            await handler.handle(_exchange("not-a-valid-code"))

    @pytest.mark.asyncio
    async def test_expired_code(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidGrantError, match="expired"):
            await handler.handle(_exchange(_code(expires_at=NOW_MS - 1)))

    @pytest.mark.asyncio
    async def test_redirect_uri_mismatch(self, handler: TokenHandler) -> None:
        params = _exchange(_code(), redirect_uri="cursor://evil/callback")
        with pytest.raises(InvalidGrantError, match="redirect_uri"):
            await handler.handle(params)

    @pytest.mark.asyncio
    async def test_redirect_uri_trailing_slash_and_case_tolerated(
        self, handler: TokenHandler
    ) -> None:
        params = _exchange(_code(), redirect_uri=REDIRECT_URI.upper() + "/")
        response = await handler.handle(params)
        assert response.access_token == "session-access-token"

    @pytest.mark.asyncio
    async def test_state_mismatch(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidGrantError, match="state"):
            await handler.handle(_exchange(_code(), state="other"))

    @pytest.mark.asyncio
    async def test_wrong_verifier(self, handler: TokenHandler) -> None:
        params = _exchange(_code(), code_verifier="a" * 43)
        with pytest.raises(InvalidGrantError, match="Code verifier does not match code challenge"):
            await handler.handle(params)

    @pytest.mark.asyncio
    async def test_plain_method(self, handler: TokenHandler) -> None:
        code = _code(code_challenge="plain-verifier-value", code_challenge_method="plain")
        response = await handler.handle(_exchange(code, code_verifier="plain-verifier-value"))
        assert response.access_token == "session-access-token"

    @pytest.mark.asyncio
    async def test_code_without_tokens(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidGrantError, match="tokens"):
            await handler.handle(_exchange(_code(access_token=None)))

    @pytest.mark.asyncio
    async def test_redemption_deletes_pending_row(
        self, handler: TokenHandler, store: InMemoryPendingRequestStore
    ) -> None:
        code = _code()
        pending = PendingAuthorizationRequest.new(
            client_id="cursor",
            code_challenge=RFC_CHALLENGE,
            code_challenge_method=CodeChallengeMethod.S256,
            redirect_uri=REDIRECT_URI,
            state="xyz",
            scope=None,
            ttl_seconds=600,
        ).promoted(user_id="user-123", authorization_code=code)
        await store.insert(pending)

        await handler.handle(_exchange(code))
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_failed_validation_keeps_pending_row(
        self, handler: TokenHandler, store: InMemoryPendingRequestStore
    ) -> None:
        code = _code()
        pending = PendingAuthorizationRequest.new(
            client_id="cursor",
            code_challenge=RFC_CHALLENGE,
            code_challenge_method=CodeChallengeMethod.S256,
            redirect_uri=REDIRECT_URI,
            state=None,
            scope=None,
            ttl_seconds=600,
        ).promoted(user_id="user-123", authorization_code=code)
        await store.insert(pending)

        with pytest.raises(InvalidGrantError):
            await handler.handle(_exchange(code, code_verifier="b" * 43))
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_code_without_pending_row_still_redeems(self, handler: TokenHandler) -> None:
        code = _code()
        first = await handler.handle(_exchange(code))
        second = await handler.handle(_exchange(code))
        assert first.access_token == second.access_token

    @pytest.mark.asyncio
    async def test_store_failure_does_not_block_exchange(
        self, identity_provider: FakeIdentityProvider, oauth_settings: OAuthSettings
    ) -> None:
        store = AsyncMock()
        store.find_by_code.side_effect = PendingRequestStoreError("db down")
        handler = TokenHandler(store, identity_provider, oauth_settings, clock=lambda: NOW_MS)
        response = await handler.handle(_exchange(_code()))
        assert response.access_token == "session-access-token"


@pytest.mark.unit
class TestRefreshTokenGrant:
    @pytest.mark.asyncio
    async def test_refresh_returns_rotated_tokens(
        self, handler: TokenHandler, identity_provider: FakeIdentityProvider
    ) -> None:
        identity_provider.refresh_tokens["rt-old"] = AuthSession(
            user_id="user-123", access_token="at-new", refresh_token="rt-new"
        )
        response = await handler.handle({"grant_type": "refresh_token", "refresh_token": "rt-old"})
        assert response.access_token == "at-new"
        assert response.refresh_token == "rt-new"
        assert response.token_type == "Bearer"

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidRequestError, match="refresh_token"):
            await handler.handle({"grant_type": "refresh_token"})

    @pytest.mark.asyncio
    async def test_rejected_refresh_token_is_invalid_grant(self, handler: TokenHandler) -> None:
        with pytest.raises(InvalidGrantError, match="refresh_token"):
            await handler.handle({"grant_type": "refresh_token", "refresh_token": "unknown"})
