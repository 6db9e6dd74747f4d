"""Port interface for the identity/session provider.

The identity provider owns user credentials and issues the bearer token
pair. The authorization server only probes the caller's browser session,
relays refresh requests and forwards revocations.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class AuthSession:
    """An authenticated session issued by the identity provider.

    Attributes:
        user_id: Identity provider user identifier.
        access_token: Bearer access token.
        refresh_token: Refresh token (rotated on each refresh).
        expires_in: Access token lifetime in seconds.
        token_type: Always "Bearer".
    """

    user_id: str
    access_token: str
    refresh_token: str
    expires_in: int = 3600
    token_type: str = "Bearer"


@runtime_checkable
class IdentityProviderPort(Protocol):
    """Port for session probing, refresh and revocation."""

    async def get_session(self, cookies: Mapping[str, str]) -> AuthSession | None:
        """Return the caller's session, or None when not signed in.

        Raises:
            IdentityProviderError: If the provider could not be consulted.
        """
        ...

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new session.

        Raises:
            IdentityProviderError: If the provider rejects the token or fails.
        """
        ...

    async def revoke_token(self, token: str, token_type_hint: str | None = None) -> None:
        """Revoke a token. Best effort, never raises."""
        ...

    async def aclose(self) -> None:
        """Release any network resources."""
        ...
