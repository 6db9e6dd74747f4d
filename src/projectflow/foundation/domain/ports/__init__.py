"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the OAuth handlers use to interact
with external services. Implementations (adapters) live in infrastructure.
"""

from projectflow.foundation.domain.ports.identity_provider import (
    AuthSession,
    IdentityProviderPort,
)
from projectflow.foundation.domain.ports.pending_request_store import PendingRequestStorePort

__all__ = ["AuthSession", "IdentityProviderPort", "PendingRequestStorePort"]
