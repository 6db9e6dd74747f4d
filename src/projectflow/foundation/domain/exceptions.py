"""OAuth error hierarchy for type-safe error handling.

Every error the authorization server reports to a client is one of the
OAuth 2.1 error codes (RFC 6749 section 5.2, RFC 8628 section 3.5). Each
exception carries the wire ``error`` code, the HTTP status it maps to, a
human-readable ``error_description`` and structured context for logging.

Example:
    >>> from projectflow.foundation.domain.exceptions import InvalidGrantError
    >>> raise InvalidGrantError("Authorization code has expired")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AuthorizationPendingError",
    "InvalidGrantError",
    "InvalidRequestError",
    "OAuthError",
    "ServerError",
    "UnauthorizedClientError",
    "UnsupportedGrantTypeError",
]


class OAuthError(Exception):
    """Base class for all errors reported through the OAuth endpoints.

    Attributes:
        error: OAuth error code placed in the ``error`` response field.
        status_code: HTTP status used for the response.
        description: Human-readable text for ``error_description``.
        context: Structured debugging information (never sent to clients).

    Example:
        >>> raise OAuthError("Operation failed", context={"client_id": "cursor"})
        OAuthError: Operation failed (client_id=cursor)
    """

    error: str = "server_error"
    status_code: int = 500

    def __init__(self, description: str, context: dict[str, Any] | None = None) -> None:
        """Initialize the error with a description and optional context.

        Args:
            description: Human-readable error description sent to the client.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(description)
        self.description = description
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.description} ({context_str})"
        return self.description

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.description!r}, context={self.context!r})"


class InvalidRequestError(OAuthError):
    """Raised for missing or malformed request parameters.

    Covers absent required parameters, bad JSON bodies and verifier or
    challenge values outside their allowed character sets.
    """

    error = "invalid_request"
    status_code = 400


class InvalidGrantError(OAuthError):
    """Raised when a presented grant cannot be honoured.

    Expired or malformed authorization codes, redirect URI or state
    mismatches, PKCE failures and rejected refresh tokens all map here.
    """

    error = "invalid_grant"
    status_code = 400


class UnsupportedGrantTypeError(OAuthError):
    """Raised when ``grant_type`` names a grant this server does not implement."""

    error = "unsupported_grant_type"
    status_code = 400

    def __init__(self, grant_type: str) -> None:
        super().__init__(
            f"Unsupported grant_type: {grant_type}",
            context={"grant_type": grant_type},
        )
        self.grant_type = grant_type


class UnauthorizedClientError(OAuthError):
    """Raised when the client identifier is not on the configured allow-list."""

    error = "unauthorized_client"
    status_code = 400

    def __init__(self, client_id: str) -> None:
        super().__init__(
            "Client is not authorized to use this authorization server",
            context={"client_id": client_id},
        )
        self.client_id = client_id


class AuthorizationPendingError(OAuthError):
    """Raised when a programmatic client must wait for the user to log in.

    Maps to HTTP 401 with a ``WWW-Authenticate`` challenge. The client is
    expected to open ``verification_uri`` in a browser and retry.

    Attributes:
        verification_uri: Login/consent page for the user.
        verification_uri_complete: Same page with the original request parameters.
    """

    error = "authorization_pending"
    status_code = 401

    def __init__(self, verification_uri: str, verification_uri_complete: str) -> None:
        super().__init__(
            "User authorization is pending. Open verification_uri in a browser to sign in."
        )
        self.verification_uri = verification_uri
        self.verification_uri_complete = verification_uri_complete


class ServerError(OAuthError):
    """Raised for unexpected failures that must still be reported in OAuth form."""

    error = "server_error"
    status_code = 500
