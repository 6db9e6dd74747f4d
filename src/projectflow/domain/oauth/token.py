"""Token endpoint handler.

authorization_code grant:
    The code is self-contained, so it is verified from its own payload:
    format, state, expiry, redirect URI binding and PKCE. The pending
    request store is only consulted for single-use bookkeeping; a missing
    row is not an error. The row is deleted after every check passed, so
    two concurrent redemptions of one code can both succeed.

refresh_token grant:
    Delegated to the identity provider. Any provider failure is reported
    as ``invalid_grant``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from projectflow.domain.oauth.authorization_code import decode_authorization_code, now_ms
from projectflow.domain.oauth.clients import normalize_redirect_uri
from projectflow.domain.oauth.schemas import TokenResponse
from projectflow.foundation.domain.exceptions import (
    InvalidGrantError,
    InvalidRequestError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from projectflow.infra.auth.identity_provider import IdentityProviderError
from projectflow.infra.auth.pkce import is_valid_code_verifier, verify_code_verifier
from projectflow.infra.observability import get_logger
from projectflow.infra.persistence.pending_requests import PendingRequestStoreError

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from projectflow.foundation.domain.ports import IdentityProviderPort, PendingRequestStorePort
    from projectflow.infra.auth.settings import OAuthSettings

logger = get_logger(__name__)

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"


def _param(params: Mapping[str, Any], name: str) -> str | None:
    value = params.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"Parameter {name} must be a string")
    return value


class TokenHandler:
    """Issues bearer tokens for authorization codes and refresh tokens.

    Args:
        store: Pending request store (single-use bookkeeping only).
        identity_provider: Used for the refresh_token grant.
        settings: OAuth settings.
        clock: Epoch-millisecond clock used for code expiry.
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

    async def handle(self, params: Mapping[str, Any]) -> TokenResponse:
        """Dispatch on ``grant_type``.

        Raises:
            InvalidRequestError: Missing grant_type or grant parameters.
            UnsupportedGrantTypeError: Unknown grant_type.
            InvalidGrantError: The grant was rejected.
        """
        grant_type = _param(params, "grant_type")
        if grant_type is None:
            raise InvalidRequestError("Missing required parameter: grant_type")

        client_id = _param(params, "client_id")
        if client_id is not None and not self._settings.is_client_allowed(client_id):
            raise UnauthorizedClientError(client_id)

        if grant_type == GRANT_AUTHORIZATION_CODE:
            return await self._exchange_code(params)
        if grant_type == GRANT_REFRESH_TOKEN:
            return await self._refresh(params)
        raise UnsupportedGrantTypeError(grant_type)

    async def _exchange_code(self, params: Mapping[str, Any]) -> TokenResponse:
        code = _param(params, "code")
        redirect_uri = _param(params, "redirect_uri")
        code_verifier = _param(params, "code_verifier")
        if code is None or redirect_uri is None or code_verifier is None:
            supplied = {"code": code, "redirect_uri": redirect_uri, "code_verifier": code_verifier}
            missing = [name for name, value in supplied.items() if value is None]
            raise InvalidRequestError(f"Missing required parameters: {', '.join(missing)}")

        if not is_valid_code_verifier(code_verifier):
            raise InvalidRequestError("Invalid code_verifier format")

        code = unquote(code)
        pending_id = await self._find_pending(code)

        payload = decode_authorization_code(code)

        request_state = _param(params, "state")
        if (
            request_state is not None
            and payload.state is not None
            and request_state != payload.state
        ):
            raise InvalidGrantError("state does not match the authorization request")

        if payload.is_expired(self._clock()):
            raise InvalidGrantError("Authorization code has expired")

        if normalize_redirect_uri(payload.redirect_uri) != normalize_redirect_uri(redirect_uri):
            raise InvalidGrantError("redirect_uri does not match the authorization request")

        if not verify_code_verifier(
            code_verifier, payload.code_challenge, payload.code_challenge_method
        ):
            raise InvalidGrantError("Code verifier does not match code challenge")

        if payload.access_token is None or payload.refresh_token is None:
            raise InvalidGrantError("Authorization code does not contain session tokens")

        if pending_id is not None:
            await self._forget_pending(pending_id)

        logger.info("token_issued", grant_type=GRANT_AUTHORIZATION_CODE, user_id=payload.user_id)
        return TokenResponse(
            access_token=payload.access_token,
            token_type="Bearer",
            expires_in=self._settings.access_token_expires_in,
            refresh_token=payload.refresh_token,
            scope=payload.scope or None,
        )

    async def _refresh(self, params: Mapping[str, Any]) -> TokenResponse:
        refresh_token = _param(params, "refresh_token")
        if refresh_token is None:
            raise InvalidRequestError("Missing required parameter: refresh_token")

        try:
            session = await self._identity_provider.refresh_session(refresh_token)
        except IdentityProviderError as exc:
            logger.info("token_refresh_rejected", error=exc.error, status=exc.status_code)
            raise InvalidGrantError("Invalid or expired refresh_token") from exc

        logger.info("token_issued", grant_type=GRANT_REFRESH_TOKEN, user_id=session.user_id)
        return TokenResponse(
            access_token=session.access_token,
            token_type="Bearer",
            expires_in=self._settings.access_token_expires_in,
            refresh_token=session.refresh_token or refresh_token,
            scope=_param(params, "scope"),
        )

    async def _find_pending(self, code: str) -> UUID | None:
        try:
            pending = await self._store.find_by_code(code)
        except PendingRequestStoreError:
            logger.warning("token_pending_lookup_failed", exc_info=True)
            return None
        return pending.id if pending is not None else None

    async def _forget_pending(self, pending_id: UUID) -> None:
        try:
            await self._store.delete(pending_id)
        except PendingRequestStoreError:
            logger.warning("token_pending_delete_failed", exc_info=True)
