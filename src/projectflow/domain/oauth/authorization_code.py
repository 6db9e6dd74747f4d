"""Self-contained authorization codes.

An authorization code is not a reference to server-side state: it carries
everything the token endpoint needs, including the session's bearer
tokens::

    <random-prefix>.<base64url(JSON payload)>

Payload keys (camelCase on the wire): ``userId``, ``codeChallenge``,
``codeChallengeMethod``, ``scope``, ``redirectUri``, ``accessToken``,
``refreshToken``, ``expiresAt`` (epoch milliseconds) and optional ``state``.

The encoding is tamper-evident only in the sense that a modified payload
will fail PKCE or redirect checks; it is not signed. A code is therefore
as sensitive as the tokens inside it and must never be logged.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import secrets
import time
from dataclasses import dataclass
from typing import Any

from projectflow.foundation.domain.exceptions import InvalidGrantError
from projectflow.foundation.domain.pending_request import CodeChallengeMethod

_PREFIX_BYTES = 16
_FORMAT_ERROR = "Invalid authorization code format"


class MalformedAuthorizationCodeError(InvalidGrantError):
    """Raised when a code cannot be split, decoded or parsed into a payload."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"{_FORMAT_ERROR}: {reason}")
        self.reason = reason


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class AuthorizationCodePayload:
    """Decoded contents of an authorization code.

    Attributes:
        user_id: Identity provider user the code was issued to.
        code_challenge: PKCE challenge bound at authorization time.
        code_challenge_method: ``S256`` or ``plain``.
        redirect_uri: Redirect URI the code was issued for.
        expires_at: Absolute deadline, epoch milliseconds.
        access_token: Session access token, relayed verbatim at exchange.
        refresh_token: Session refresh token, relayed verbatim at exchange.
        scope: Space-delimited scopes ("" when none were requested).
        state: Client state echoed with the code, if any.
    """

    user_id: str
    code_challenge: str
    code_challenge_method: str
    redirect_uri: str
    expires_at: int
    access_token: str | None
    refresh_token: str | None
    scope: str = ""
    state: str | None = None

    def is_expired(self, at_ms: int) -> bool:
        return self.expires_at <= at_ms

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "userId": self.user_id,
            "codeChallenge": self.code_challenge,
            "codeChallengeMethod": self.code_challenge_method,
            "scope": self.scope,
            "redirectUri": self.redirect_uri,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
        }
        if self.state is not None:
            data["state"] = self.state
        return data

    @classmethod
    def from_wire(cls, data: Any) -> AuthorizationCodePayload:
        """Build a payload from decoded JSON.

        Raises:
            MalformedAuthorizationCodeError: If the structure is not a valid payload.
        """
        if not isinstance(data, dict):
            raise MalformedAuthorizationCodeError("payload is not an object")
        for key in ("userId", "codeChallenge", "redirectUri"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise MalformedAuthorizationCodeError(f"missing {key}")
        expires_at = data.get("expiresAt")
        if (
            isinstance(expires_at, bool)
            or not isinstance(expires_at, (int, float))
            or not math.isfinite(expires_at)
        ):
            raise MalformedAuthorizationCodeError("missing expiresAt")
        state = data.get("state")
        return cls(
            user_id=data["userId"],
            code_challenge=data["codeChallenge"],
            code_challenge_method=str(data.get("codeChallengeMethod") or CodeChallengeMethod.S256),
            redirect_uri=data["redirectUri"],
            expires_at=int(expires_at),
            access_token=_optional_str(data.get("accessToken")),
            refresh_token=_optional_str(data.get("refreshToken")),
            scope=str(data.get("scope") or ""),
            state=state if isinstance(state, str) else None,
        )


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def encode_authorization_code(payload: AuthorizationCodePayload) -> str:
    """Encode a payload as ``<random-prefix>.<base64url(JSON)>``.

    The random prefix makes two codes for identical payloads distinct.
    """
    raw = json.dumps(payload.to_wire(), separators=(",", ":")).encode("utf-8")
    body = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
    return f"{secrets.token_urlsafe(_PREFIX_BYTES)}.{body}"


def decode_authorization_code(code: str) -> AuthorizationCodePayload:
    """Decode a code produced by :func:`encode_authorization_code`.

    Raises:
        MalformedAuthorizationCodeError: On wrong part count, bad base64,
            non-JSON content or a payload missing required fields.
    """
    parts = code.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedAuthorizationCodeError("expected <prefix>.<payload>")
    body = parts[1]
    try:
        raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    except (binascii.Error, ValueError) as exc:
        raise MalformedAuthorizationCodeError("payload is not base64url") from exc
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedAuthorizationCodeError("payload is not JSON") from exc
    return AuthorizationCodePayload.from_wire(data)
