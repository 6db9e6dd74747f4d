"""Port interface for pending authorization request persistence.

The store is used as a key-value record with conditional lookups. Every
lookup ignores rows whose ``expires_at`` has passed. No multi-row
transactions are assumed: concurrent writers for the same client race and
the last accepted write wins.

Example:
    >>> from projectflow.foundation.domain.ports import PendingRequestStorePort
    >>> async def forget(store: PendingRequestStorePort, code: str) -> None:
    ...     row = await store.find_by_code(code)
    ...     if row is not None:
    ...         await store.delete(row.id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from projectflow.foundation.domain.pending_request import (
        CodeChallengeMethod,
        PendingAuthorizationRequest,
    )


@runtime_checkable
class PendingRequestStorePort(Protocol):
    """Port for pending authorization request storage.

    Implementations raise ``PendingRequestStoreError`` when the backing
    store is unavailable; callers decide whether that is fatal.
    """

    async def find_live_for_client(self, client_id: str) -> PendingAuthorizationRequest | None:
        """Return the newest live ``pending`` row for a client, if any."""
        ...

    async def find_live(
        self, client_id: str, code_challenge: str
    ) -> PendingAuthorizationRequest | None:
        """Return the live row matching ``(client_id, code_challenge)``, if any."""
        ...

    async def find_by_code(self, authorization_code: str) -> PendingAuthorizationRequest | None:
        """Return the live row bound to an issued authorization code, if any."""
        ...

    async def insert(self, request: PendingAuthorizationRequest) -> None:
        """Insert a new row."""
        ...

    async def update_request(
        self,
        request_id: UUID,
        *,
        code_challenge: str,
        code_challenge_method: CodeChallengeMethod,
        redirect_uri: str,
        state: str | None,
        scope: str | None,
        expires_at: datetime,
    ) -> None:
        """Overwrite the client-supplied fields of an existing row."""
        ...

    async def promote(self, request_id: UUID, *, user_id: str, authorization_code: str) -> None:
        """Mark a row ``authorized`` and bind it to a user and code."""
        ...

    async def delete(self, request_id: UUID) -> bool:
        """Delete a row. Returns True if a row was removed."""
        ...

    async def purge_expired(self) -> int:
        """Delete every expired row. Returns the number removed."""
        ...

    async def ping(self) -> None:
        """Raise if the store is unreachable."""
        ...
