"""Async HTTP client for the identity/session provider.

The web app signs users in against a Supabase-style auth API and keeps the
session in a cookie. This client reads that cookie, verifies it with the
provider, relays refresh-token grants and forwards revocations. All methods
use httpx.AsyncClient with explicit timeouts and structured error handling.

Design decisions:
- Lifespan-scoped client: the authorize endpoint probes the provider on
  every call, so one shared httpx.AsyncClient is kept for the application
  lifetime and released through :meth:`IdentityProviderClient.aclose`.
- A rejected session (401/403) is "not signed in", not an error.
- Revocation is best-effort and never raises.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

import httpx

from projectflow.foundation.domain.ports import AuthSession

if TYPE_CHECKING:
    from collections.abc import Mapping

    from projectflow.infra.auth.settings import OAuthSettings

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_EXPIRES_IN = 3600
_BASE64_COOKIE_PREFIX = "base64-"
_MAX_COOKIE_CHUNKS = 16


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects a request or cannot be reached.

    Attributes:
        status_code: HTTP status from the provider, or None for transport failures.
        error: Error code reported by the provider (e.g., "invalid_grant").
        error_description: Human-readable error from the provider.
    """

    def __init__(self, status_code: int | None, error: str, error_description: str) -> None:
        self.status_code = status_code
        self.error = error
        self.error_description = error_description
        super().__init__(f"Identity provider request failed: {error} ({status_code})")


def read_session_cookie(cookies: Mapping[str, str], name: str) -> str | None:
    """Return the raw session cookie, joining ``<name>.0``, ``<name>.1``... chunks."""
    raw = cookies.get(name)
    if raw:
        return raw
    chunks: list[str] = []
    for index in range(_MAX_COOKIE_CHUNKS):
        chunk = cookies.get(f"{name}.{index}")
        if chunk is None:
            break
        chunks.append(chunk)
    return "".join(chunks) or None


def decode_session_cookie(raw: str) -> dict[str, Any] | None:
    """Decode a session cookie into its token fields.

    Accepts plain JSON, ``base64-`` prefixed base64url JSON, and the legacy
    array form ``[access_token, refresh_token, ...]``. Returns None for
    anything unreadable.
    """
    value = unquote(raw)
    if value.startswith(_BASE64_COOKIE_PREFIX):
        encoded = value[len(_BASE64_COOKIE_PREFIX) :]
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        return None
    if isinstance(data, list) and len(data) >= 2:
        return {"access_token": data[0], "refresh_token": data[1]}
    if isinstance(data, dict):
        return data
    return None


def _error_from_response(response: httpx.Response) -> IdentityProviderError:
    content_type = response.headers.get("content-type", "")
    body: dict[str, Any] = {}
    if content_type.startswith("application/json"):
        try:
            parsed = response.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            body = parsed
    return IdentityProviderError(
        status_code=response.status_code,
        error=str(body.get("error") or body.get("error_code") or "unknown"),
        error_description=str(
            body.get("error_description") or body.get("msg") or response.reason_phrase
        ),
    )



def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a successful response body, which must be a JSON object."""
    try:
        body = response.json()
    except ValueError as exc:
        raise IdentityProviderError(
            response.status_code, "invalid_response", "Provider returned a non-JSON body"
        ) from exc
    if not isinstance(body, dict):
        raise IdentityProviderError(
            response.status_code, "invalid_response", "Provider returned a non-object body"
        )
    return body


class IdentityProviderClient:
    """Async HTTP client for the identity provider's auth API.

    Supports both shared and lazily-created httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused across calls (caller manages lifecycle).
    - If ``client`` is omitted, an internal client is created lazily on first use.
      Call :meth:`aclose` to release the internal client when done.

    Args:
        base_url: Provider base URL (e.g., "https://abc.supabase.co").
        api_key: Provider API key, sent as the ``apikey`` header.
        session_cookie_name: Name of the browser session cookie.
        timeout: HTTP request timeout in seconds.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session_cookie_name: str = "sb-auth-token",
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session_cookie_name = session_cookie_name
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    @classmethod
    def from_settings(cls, settings: OAuthSettings) -> IdentityProviderClient:
        return cls(
            base_url=settings.identity_provider_url,
            api_key=settings.identity_provider_api_key,
            session_cookie_name=settings.session_cookie_name,
            timeout=settings.identity_provider_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url)

    async def get_session(self, cookies: Mapping[str, str]) -> AuthSession | None:
        """Verify the caller's browser session.

        Args:
            cookies: Request cookies.

        Returns:
            AuthSession when the cookie holds a session the provider accepts,
            None when there is no cookie or the provider rejects it.

        Raises:
            IdentityProviderError: On transport failure or unexpected provider errors.
        """
        raw = read_session_cookie(cookies, self._session_cookie_name)
        if raw is None:
            return None
        tokens = decode_session_cookie(raw)
        if tokens is None:
            logger.info("identity_session_cookie_unreadable")
            return None
        access_token = tokens.get("access_token")
        refresh_token = tokens.get("refresh_token")
        if not access_token or not refresh_token:
            return None

        self._require_configured()
        client = self._get_client()
        try:
            response = await client.get(
                f"{self._base_url}/auth/v1/user",
                headers=self._headers(bearer=str(access_token)),
                timeout=self._timeout,
            )
        except httpx.TransportError as exc:
            raise IdentityProviderError(None, "unavailable", str(exc)) from exc

        if response.status_code in (401, 403):
            return None
        if response.is_error:
            raise _error_from_response(response)

        user_id = _json_object(response).get("id")
        if not user_id:
            return None
        return AuthSession(
            user_id=str(user_id),
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            expires_in=_parse_expires_in(tokens.get("expires_in")),
            token_type=str(tokens.get("token_type") or "Bearer"),
        )

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new token pair.

        Args:
            refresh_token: Current refresh token.

        Returns:
            AuthSession with a new access token and rotated refresh token.

        Raises:
            IdentityProviderError: On 4xx/5xx (expired/revoked token) or transport failure.
        """
        self._require_configured()
        client = self._get_client()
        try:
            response = await client.post(
                f"{self._base_url}/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _error_from_response(exc.response) from exc
        except httpx.TransportError as exc:
            raise IdentityProviderError(None, "unavailable", str(exc)) from exc

        body = _json_object(response)
        if not body.get("access_token"):
            raise IdentityProviderError(
                response.status_code, "invalid_response", "Provider returned no access_token"
            )
        user = body.get("user")
        if not isinstance(user, dict):
            user = {}
        return AuthSession(
            user_id=str(user.get("id", "")),
            access_token=str(body["access_token"]),
            refresh_token=str(body.get("refresh_token", "")),
            expires_in=_parse_expires_in(body.get("expires_in")),
            token_type=str(body.get("token_type") or "Bearer"),
        )

    async def revoke_token(self, token: str, token_type_hint: str | None = None) -> None:
        """Revoke a token at the provider (RFC 7009).

        This method is best-effort: revocation failure does not raise.

        Args:
            token: Access or refresh token to revoke.
            token_type_hint: Optional hint ("access_token" or "refresh_token").
        """
        if not self.is_configured:
            logger.warning("identity_revoke_skipped_unconfigured")
            return
        payload: dict[str, str] = {"token": token}
        if token_type_hint:
            payload["token_type_hint"] = token_type_hint
        client = self._get_client()
        try:
            response = await client.post(
                f"{self._base_url}/auth/v1/oauth/revoke",
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "identity_revoke_failed",
                extra={"status": exc.response.status_code},
            )
        except httpx.TransportError:
            logger.warning("identity_revoke_connection_error")

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._api_key, "Accept": "application/json"}
        if bearer is not None:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise IdentityProviderError(
                None, "not_configured", "OAUTH_IDENTITY_PROVIDER_URL is not set"
            )

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None


def _parse_expires_in(raw: Any) -> int:
    try:
        return int(str(raw)) if raw is not None else _DEFAULT_EXPIRES_IN
    except ValueError:
        return _DEFAULT_EXPIRES_IN
