"""In-memory pending request store.

Process-local and therefore only suitable for a single-instance
development server (``OAUTH_STORE_BACKEND=memory``) and for tests. It is an
explicit object owned by the services registry, never a module-level map,
so a multi-instance deployment cannot share it by accident.

Semantics mirror :class:`SqlPendingRequestStore`: expired rows never satisfy
a lookup and ``(client_id, code_challenge)`` is unique among live rows.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from projectflow.foundation.domain.pending_request import (
    PendingAuthorizationRequest,
    PendingRequestStatus,
)
from projectflow.infra.persistence.pending_requests import PendingRequestStoreError

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from projectflow.foundation.domain.pending_request import CodeChallengeMethod


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryPendingRequestStore:
    """Dict-backed implementation of the pending request store port."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._rows: dict[UUID, PendingAuthorizationRequest] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._rows)

    def all(self) -> list[PendingAuthorizationRequest]:
        """Every stored row, expired or not, oldest first."""
        return sorted(self._rows.values(), key=lambda r: r.created_at)

    async def find_live_for_client(self, client_id: str) -> PendingAuthorizationRequest | None:
        now = self._clock()
        candidates = [
            r
            for r in self._rows.values()
            if r.client_id == client_id
            and r.status == PendingRequestStatus.PENDING
            and r.is_live(now)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.created_at)

    async def find_live(
        self, client_id: str, code_challenge: str
    ) -> PendingAuthorizationRequest | None:
        now = self._clock()
        for row in self._rows.values():
            if (
                row.client_id == client_id
                and row.code_challenge == code_challenge
                and row.is_live(now)
            ):
                return row
        return None

    async def find_by_code(self, authorization_code: str) -> PendingAuthorizationRequest | None:
        now = self._clock()
        for row in self._rows.values():
            if row.authorization_code == authorization_code and row.is_live(now):
                return row
        return None

    async def insert(self, request: PendingAuthorizationRequest) -> None:
        now = self._clock()
        for row_id, row in list(self._rows.items()):
            if row.client_id == request.client_id and row.code_challenge == request.code_challenge:
                if row.is_live(now):
                    raise PendingRequestStoreError(
                        "A live pending request already exists for this client and challenge"
                    )
                del self._rows[row_id]
        self._rows[request.id] = request

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
        row = self._rows.get(request_id)
        if row is None:
            return
        self._rows[request_id] = replace(
            row,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            redirect_uri=redirect_uri,
            state=state,
            scope=scope,
            expires_at=expires_at,
        )

    async def promote(self, request_id: UUID, *, user_id: str, authorization_code: str) -> None:
        row = self._rows.get(request_id)
        if row is None:
            return
        self._rows[request_id] = row.promoted(
            user_id=user_id, authorization_code=authorization_code
        )

    async def delete(self, request_id: UUID) -> bool:
        return self._rows.pop(request_id, None) is not None

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [row_id for row_id, row in self._rows.items() if not row.is_live(now)]
        for row_id in expired:
            del self._rows[row_id]
        return len(expired)

    async def ping(self) -> None:
        return None
