"""SQL-backed store for pending authorization requests.

One table, ``oauth_pending_requests``, used as a key-value record with
conditional single-row operations. No multi-row transactions: concurrent
authorize calls for the same client race and the last accepted write wins.

SQL operations:
- find_live_for_client: newest live ``pending`` row for a client
- find_live: live row for ``(client_id, code_challenge)``
- find_by_code: live row bound to an issued authorization code
- insert: clears an expired row holding the same ``(client_id, code_challenge)``
  and inserts the new one
- update_request / promote: ``UPDATE ... WHERE id = ?``
- delete: ``DELETE ... WHERE id = ?``
- purge_expired: ``DELETE ... WHERE expires_at <= now``

Every read compares ``expires_at`` against the store clock, so an expired
row never satisfies a lookup even before it is purged.

The ``authorization_code`` index is a hash index: codes embed full access
tokens and can exceed the btree row size limit.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

from projectflow.foundation.domain.pending_request import (
    CodeChallengeMethod,
    PendingAuthorizationRequest,
    PendingRequestStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.sql import Executable

logger = logging.getLogger(__name__)

metadata = MetaData()

pending_requests = Table(
    "oauth_pending_requests",
    metadata,
    Column("id", Uuid(), primary_key=True),
    Column("client_id", String(255), nullable=False),
    Column("code_challenge", String(128), nullable=False),
    Column("code_challenge_method", String(10), nullable=False, server_default="S256"),
    Column("redirect_uri", Text(), nullable=False),
    Column("state", Text(), nullable=True),
    Column("scope", Text(), nullable=True),
    Column("user_id", String(255), nullable=True),
    Column("authorization_code", Text(), nullable=True),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("client_id", "code_challenge", name="uq_oauth_pending_client_challenge"),
    CheckConstraint("status IN ('pending', 'authorized')", name="ck_oauth_pending_status"),
    CheckConstraint(
        "code_challenge_method IN ('S256', 'plain')", name="ck_oauth_pending_method"
    ),
    Index("ix_oauth_pending_authorization_code", "authorization_code", postgresql_using="hash"),
    Index("ix_oauth_pending_expires_at", "expires_at"),
)

_c = pending_requests.c


class PendingRequestStoreError(Exception):
    """Raised when the pending request store cannot complete an operation."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _row_to_request(row: Mapping[str, Any]) -> PendingAuthorizationRequest:
    return PendingAuthorizationRequest(
        id=row["id"],
        client_id=row["client_id"],
        code_challenge=row["code_challenge"],
        code_challenge_method=CodeChallengeMethod(row["code_challenge_method"]),
        redirect_uri=row["redirect_uri"],
        state=row["state"],
        scope=row["scope"],
        user_id=row["user_id"],
        authorization_code=row["authorization_code"],
        status=PendingRequestStatus(row["status"]),
        expires_at=row["expires_at"],
        created_at=row["created_at"],
    )


class SqlPendingRequestStore:
    """Pending request store on an async SQLAlchemy engine.

    Args:
        engine: Async engine (psycopg driver in production).
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(self, engine: AsyncEngine, clock: Callable[[], datetime] = _utcnow) -> None:
        self._engine = engine
        self._clock = clock

    async def create_table(self) -> None:
        """Create the table and its indexes if they do not exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as exc:
            raise PendingRequestStoreError("Failed to create pending request table") from exc
        logger.info("pending_request_table_ready")

    async def find_live_for_client(self, client_id: str) -> PendingAuthorizationRequest | None:
        stmt = (
            select(pending_requests)
            .where(
                _c.client_id == client_id,
                _c.status == PendingRequestStatus.PENDING.value,
                _c.expires_at > self._clock(),
            )
            .order_by(_c.created_at.desc())
            .limit(1)
        )
        return await self._fetch_one(stmt)

    async def find_live(
        self, client_id: str, code_challenge: str
    ) -> PendingAuthorizationRequest | None:
        stmt = select(pending_requests).where(
            _c.client_id == client_id,
            _c.code_challenge == code_challenge,
            _c.expires_at > self._clock(),
        )
        return await self._fetch_one(stmt)

    async def find_by_code(self, authorization_code: str) -> PendingAuthorizationRequest | None:
        stmt = (
            select(pending_requests)
            .where(
                _c.authorization_code == authorization_code,
                _c.expires_at > self._clock(),
            )
            .limit(1)
        )
        return await self._fetch_one(stmt)

    async def insert(self, request: PendingAuthorizationRequest) -> None:
        """Insert a row, first clearing an expired row with the same key."""
        clear_expired = delete(pending_requests).where(
            _c.client_id == request.client_id,
            _c.code_challenge == request.code_challenge,
            _c.expires_at <= self._clock(),
        )
        stmt = insert(pending_requests).values(
            id=request.id,
            client_id=request.client_id,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method.value,
            redirect_uri=request.redirect_uri,
            state=request.state,
            scope=request.scope,
            user_id=request.user_id,
            authorization_code=request.authorization_code,
            status=request.status.value,
            expires_at=request.expires_at,
            created_at=request.created_at,
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(clear_expired)
                await conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PendingRequestStoreError("Failed to insert pending request") from exc

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
        stmt = (
            update(pending_requests)
            .where(_c.id == request_id)
            .values(
                code_challenge=code_challenge,
                code_challenge_method=code_challenge_method.value,
                redirect_uri=redirect_uri,
                state=state,
                scope=scope,
                expires_at=expires_at,
            )
        )
        await self._execute(stmt, "update")

    async def promote(self, request_id: UUID, *, user_id: str, authorization_code: str) -> None:
        stmt = (
            update(pending_requests)
            .where(_c.id == request_id)
            .values(
                user_id=user_id,
                authorization_code=authorization_code,
                status=PendingRequestStatus.AUTHORIZED.value,
            )
        )
        await self._execute(stmt, "promote")

    async def delete(self, request_id: UUID) -> bool:
        stmt = delete(pending_requests).where(_c.id == request_id)
        return await self._execute(stmt, "delete") > 0

    async def purge_expired(self) -> int:
        """Delete expired rows. Returns the number of rows removed."""
        stmt = delete(pending_requests).where(_c.expires_at <= self._clock())
        removed = await self._execute(stmt, "purge")
        if removed:
            logger.info("pending_requests_purged", extra={"count": removed})
        return removed

    async def ping(self) -> None:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise PendingRequestStoreError("Pending request store is unreachable") from exc

    async def _fetch_one(self, stmt: Executable) -> PendingAuthorizationRequest | None:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().first()
        except SQLAlchemyError as exc:
            raise PendingRequestStoreError("Failed to read pending request") from exc
        return _row_to_request(row) if row is not None else None

    async def _execute(self, stmt: Executable, operation: str) -> int:
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as exc:
            msg = f"Failed to {operation} pending request"
            raise PendingRequestStoreError(msg) from exc
        return int(result.rowcount or 0)
