"""Pending authorization request value objects.

A pending authorization request bridges an unauthenticated ``/authorize``
call to the moment the user completes login in a browser. It is created on
the first unauthenticated call, updated in place by later calls from the
same client, promoted to ``authorized`` once the user signs in and removed
when the resulting authorization code is redeemed.

Pure domain objects with no external dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4


class PendingRequestStatus(StrEnum):
    """Lifecycle state of a pending authorization request."""

    PENDING = "pending"
    AUTHORIZED = "authorized"


class CodeChallengeMethod(StrEnum):
    """PKCE code challenge transformation (RFC 7636 section 4.2)."""

    S256 = "S256"
    PLAIN = "plain"


@dataclass(frozen=True, slots=True)
class PendingAuthorizationRequest:
    """Durable record of an authorize call waiting for the user.

    Immutable; stores return fresh instances and updates go through
    :func:`dataclasses.replace`.

    Attributes:
        id: Opaque row identifier.
        client_id: OAuth client identifier.
        code_challenge: PKCE challenge sent by the client.
        code_challenge_method: ``S256`` or ``plain``.
        redirect_uri: Redirect URI sent by the client.
        state: Opaque client state, if any.
        scope: Space-delimited scopes, if any.
        user_id: Set when the request is promoted.
        authorization_code: Set when the request is promoted.
        status: ``pending`` until promoted, then ``authorized``.
        expires_at: Absolute expiry (UTC). Expired rows never satisfy a lookup.
        created_at: Creation time (UTC).
    """

    id: UUID
    client_id: str
    code_challenge: str
    code_challenge_method: CodeChallengeMethod
    redirect_uri: str
    expires_at: datetime
    created_at: datetime
    state: str | None = None
    scope: str | None = None
    user_id: str | None = None
    authorization_code: str | None = None
    status: PendingRequestStatus = PendingRequestStatus.PENDING

    @classmethod
    def new(
        cls,
        *,
        client_id: str,
        code_challenge: str,
        code_challenge_method: CodeChallengeMethod,
        redirect_uri: str,
        state: str | None,
        scope: str | None,
        ttl_seconds: int,
        now: datetime | None = None,
    ) -> PendingAuthorizationRequest:
        """Create a fresh ``pending`` request expiring ``ttl_seconds`` from now."""
        created = now or datetime.now(UTC)
        return cls(
            id=uuid4(),
            client_id=client_id,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            redirect_uri=redirect_uri,
            state=state,
            scope=scope,
            expires_at=created + timedelta(seconds=ttl_seconds),
            created_at=created,
        )

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def promoted(self, *, user_id: str, authorization_code: str) -> PendingAuthorizationRequest:
        """Return a copy marked ``authorized`` and bound to the issued code."""
        return replace(
            self,
            user_id=user_id,
            authorization_code=authorization_code,
            status=PendingRequestStatus.AUTHORIZED,
        )
