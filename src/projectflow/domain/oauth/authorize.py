"""Authorize endpoint handler.

Two entry states, decided by probing the caller's browser session:

Unauthenticated:
    Remember the request as a pending authorization request (best effort),
    then either redirect a browser to the login page or answer an agent
    with ``authorization_pending`` (HTTP 401) pointing at the same page.

Authenticated:
    Package the session's tokens into a self-contained authorization code,
    promote the matching pending request if one exists, and redirect to the
    client's redirect URI. Non-HTTP redirect URIs go through a same-origin
    bounce page because many platforms refuse a cross-origin redirect to a
    custom scheme.

Pending-request writes are last-write-wins per client: a second
unauthenticated call from the same client overwrites the live pending row
instead of adding another one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from projectflow.domain.oauth.authorization_code import (
    AuthorizationCodePayload,
    encode_authorization_code,
    now_ms,
)
from projectflow.domain.oauth.clients import (
    ClientKind,
    append_query,
    classify_client,
    is_http_uri,
    is_safe_redirect_uri,
)
from projectflow.foundation.domain.exceptions import (
    AuthorizationPendingError,
    InvalidRequestError,
    UnauthorizedClientError,
)
from projectflow.foundation.domain.pending_request import (
    CodeChallengeMethod,
    PendingAuthorizationRequest,
)
from projectflow.infra.auth.identity_provider import IdentityProviderError
from projectflow.infra.auth.pkce import SUPPORTED_METHODS, is_valid_code_challenge
from projectflow.infra.observability import get_logger
from projectflow.infra.persistence.pending_requests import PendingRequestStoreError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from projectflow.foundation.domain.ports import (
        AuthSession,
        IdentityProviderPort,
        PendingRequestStorePort,
    )
    from projectflow.infra.auth.settings import OAuthSettings

logger = get_logger(__name__)

_REQUIRED_PARAMS = ("client_id", "redirect_uri", "code_challenge")


@dataclass(frozen=True, slots=True)
class AuthorizeRequest:
    """Validated ``/authorize`` query parameters."""

    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: CodeChallengeMethod
    state: str | None = None
    scope: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> AuthorizeRequest:
        """Validate raw query parameters.

        Raises:
            InvalidRequestError: On missing or malformed parameters.
        """
        missing = [name for name in _REQUIRED_PARAMS if not params.get(name)]
        if missing:
            raise InvalidRequestError(f"Missing required parameters: {', '.join(missing)}")

        response_type = params.get("response_type")
        if response_type and response_type != "code":
            raise InvalidRequestError("response_type must be 'code'")

        code_challenge = params["code_challenge"]
        if not is_valid_code_challenge(code_challenge):
            raise InvalidRequestError("Invalid code_challenge format")

        method = params.get("code_challenge_method") or CodeChallengeMethod.S256.value
        if method not in SUPPORTED_METHODS:
            raise InvalidRequestError("code_challenge_method must be 'S256' or 'plain'")

        redirect_uri = params["redirect_uri"].strip()
        if not is_safe_redirect_uri(redirect_uri):
            raise InvalidRequestError("Invalid redirect_uri")

        return cls(
            client_id=params["client_id"],
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=CodeChallengeMethod(method),
            state=params.get("state") or None,
            scope=params.get("scope") or None,
        )


@dataclass(frozen=True, slots=True)
class AuthorizeRedirect:
    """Where to send the caller, and why."""

    location: str
    reason: str
    status_code: int = 302


class AuthorizeHandler:
    """Orchestrates the authorize endpoint.

    Args:
        store: Pending request store.
        identity_provider: Session prober.
        settings: OAuth settings.
        clock: Epoch-millisecond clock used for code and pending-request expiry.
    """

    def __init__(
        self,
        store: PendingRequestStorePort,
        identity_provider: IdentityProviderPort,
        settings: OAuthSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider
        self._settings = settings
        self._clock = clock

    async def handle(
        self,
        params: Mapping[str, str],
        headers: Mapping[str, str],
        cookies: Mapping[str, str],
    ) -> AuthorizeRedirect:
        """Answer one ``/authorize`` call.

        Args:
            params: Raw query parameters.
            headers: Request headers (``user-agent`` is consulted).
            cookies: Request cookies (the browser session lives here).

        Returns:
            The redirect to send.

        Raises:
            InvalidRequestError: On malformed parameters.
            UnauthorizedClientError: If the client is not allow-listed.
            AuthorizationPendingError: For agents while the user is signed out.
        """
        request = AuthorizeRequest.from_params(params)
        if not self._settings.is_client_allowed(request.client_id):
            raise UnauthorizedClientError(request.client_id)

        session = await self._probe_session(cookies)
        if session is None:
            return await self._handle_unauthenticated(request, params, headers)
        return await self._handle_authenticated(request, session)

    async def _probe_session(self, cookies: Mapping[str, str]) -> AuthSession | None:
        try:
            return await self._identity_provider.get_session(cookies)
        except IdentityProviderError as exc:
            logger.warning("authorize_session_probe_failed", error=exc.error)
            return None

    # -- Unauthenticated -------------------------------------------------------

    async def _handle_unauthenticated(
        self,
        request: AuthorizeRequest,
        params: Mapping[str, str],
        headers: Mapping[str, str],
    ) -> AuthorizeRedirect:
        await self._remember_pending(request)

        login_uri = self._settings.verification_uri_complete(dict(params))
        kind = classify_client(
            request.client_id,
            request.redirect_uri,
            headers.get("user-agent"),
            self._settings,
        )
        if kind is ClientKind.PROGRAMMATIC:
            logger.info("authorize_pending", client_id=request.client_id)
            raise AuthorizationPendingError(
                verification_uri=self._settings.verification_uri,
                verification_uri_complete=login_uri,
            )
        logger.info("authorize_login_redirect", client_id=request.client_id)
        return AuthorizeRedirect(location=login_uri, reason="login")

    async def _remember_pending(self, request: AuthorizeRequest) -> None:
        """Insert or overwrite the client's live pending row. Never raises."""
        try:
            existing = await self._store.find_live_for_client(request.client_id)
            fresh = PendingAuthorizationRequest.new(
                client_id=request.client_id,
                code_challenge=request.code_challenge,
                code_challenge_method=request.code_challenge_method,
                redirect_uri=request.redirect_uri,
                state=request.state,
                scope=request.scope,
                ttl_seconds=self._settings.pending_request_ttl_seconds,
                now=datetime.fromtimestamp(self._clock() / 1000, UTC),
            )
            if existing is None:
                await self._store.insert(fresh)
                logger.info("authorize_pending_stored", client_id=request.client_id)
            else:
                await self._store.update_request(
                    existing.id,
                    code_challenge=fresh.code_challenge,
                    code_challenge_method=fresh.code_challenge_method,
                    redirect_uri=fresh.redirect_uri,
                    state=fresh.state,
                    scope=fresh.scope,
                    expires_at=fresh.expires_at,
                )
                logger.info("authorize_pending_updated", client_id=request.client_id)
        except PendingRequestStoreError:
            logger.warning(
                "authorize_pending_store_failed",
                client_id=request.client_id,
                exc_info=True,
            )

    # -- Authenticated ---------------------------------------------------------

    async def _handle_authenticated(
        self,
        request: AuthorizeRequest,
        session: AuthSession,
    ) -> AuthorizeRedirect:
        if not is_valid_code_challenge(request.code_challenge):
            raise InvalidRequestError("Invalid code_challenge format")

        payload = AuthorizationCodePayload(
            user_id=session.user_id,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method.value,
            redirect_uri=request.redirect_uri,
            expires_at=self._clock() + self._settings.code_ttl_seconds * 1000,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            scope=request.scope or "",
            state=request.state,
        )
        code = encode_authorization_code(payload)
        await self._promote_pending(request, session.user_id, code)

        if is_http_uri(request.redirect_uri):
            location = append_query(request.redirect_uri, {"code": code, "state": request.state})
            reason = "redirect"
        else:
            location = append_query(
                self._settings.bounce_uri,
                {"code": code, "state": request.state, "redirectUri": request.redirect_uri},
            )
            reason = "bounce"
        logger.info("authorize_code_issued", client_id=request.client_id, target=reason)
        return AuthorizeRedirect(location=location, reason=reason)

    async def _promote_pending(self, request: AuthorizeRequest, user_id: str, code: str) -> None:
        try:
            pending = await self._store.find_live(request.client_id, request.code_challenge)
            if pending is not None:
                await self._store.promote(pending.id, user_id=user_id, authorization_code=code)
                logger.info("authorize_pending_promoted", client_id=request.client_id)
        except PendingRequestStoreError:
            logger.warning(
                "authorize_pending_promote_failed",
                client_id=request.client_id,
                exc_info=True,
            )
