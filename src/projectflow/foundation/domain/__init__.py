"""ProjectFlow Foundation Domain - OAuth errors, value objects and ports."""

from projectflow.foundation.domain.exceptions import (
    AuthorizationPendingError,
    InvalidGrantError,
    InvalidRequestError,
    OAuthError,
    ServerError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from projectflow.foundation.domain.pending_request import (
    CodeChallengeMethod,
    PendingAuthorizationRequest,
    PendingRequestStatus,
)
from projectflow.foundation.domain.ports import (
    AuthSession,
    IdentityProviderPort,
    PendingRequestStorePort,
)

__all__ = [
    "AuthSession",
    "AuthorizationPendingError",
    "CodeChallengeMethod",
    "IdentityProviderPort",
    "InvalidGrantError",
    "InvalidRequestError",
    "OAuthError",
    "PendingAuthorizationRequest",
    "PendingRequestStatus",
    "PendingRequestStorePort",
    "ServerError",
    "UnauthorizedClientError",
    "UnsupportedGrantTypeError",
]
