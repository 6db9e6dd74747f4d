"""ProjectFlow Infra Persistence - database engine and pending request stores."""

from projectflow.infra.persistence.database import DatabaseManager, DatabaseSettings
from projectflow.infra.persistence.memory_store import InMemoryPendingRequestStore
from projectflow.infra.persistence.pending_requests import (
    PendingRequestStoreError,
    SqlPendingRequestStore,
    metadata,
    pending_requests,
)

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "InMemoryPendingRequestStore",
    "PendingRequestStoreError",
    "SqlPendingRequestStore",
    "metadata",
    "pending_requests",
]
