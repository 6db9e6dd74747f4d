"""OAuth 2.1 error response handlers for FastAPI.

Translates :class:`~projectflow.foundation.domain.exceptions.OAuthError`
subclasses into the JSON error shape of RFC 6749 section 5.2::

    {"error": "invalid_grant", "error_description": "..."}

Responses carry ``Cache-Control: no-store`` and ``Pragma: no-cache``
because error bodies from the token endpoint must never be cached.

Usage:
    from projectflow.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from projectflow.foundation.application import ErrorHandlerContribution
from projectflow.foundation.domain.exceptions import (
    AuthorizationPendingError,
    OAuthError,
    ServerError,
)
from projectflow.infra.fastapi.middleware.request_id import get_request_id

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class OAuthErrorResponse(BaseModel):
    """OAuth 2.1 error response body.

    Extension fields ``verification_uri`` and ``verification_uri_complete``
    are only present for ``authorization_pending``.
    """

    error: str = Field(
        ...,
        description="OAuth error code",
        examples=["invalid_request", "invalid_grant", "unsupported_grant_type"],
    )
    error_description: str | None = Field(
        default=None,
        description="Human-readable explanation",
    )
    verification_uri: str | None = Field(
        default=None,
        description="Page the user opens to approve a pending authorization",
    )
    verification_uri_complete: str | None = Field(
        default=None,
        description="verification_uri with the original request parameters",
    )


_SENSITIVE_PATTERNS = [
    (
        re.compile(r"postgresql(\+\w+)?://[^@]*@[^/\s]*"),
        "postgresql://[REDACTED]@[REDACTED]",
    ),
    (
        re.compile(r"password\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "password=[REDACTED]",
    ),
    (
        re.compile(r"(access_|refresh_)?token\s*[=:]\s*['\"]?[^'\"\s,]+['\"]?", re.IGNORECASE),
        "token=[REDACTED]",
    ),
    (
        re.compile(r"api[_-]?key\s*[=:]\s*['\"]?[^'\"\s,]+['\"]?", re.IGNORECASE),
        "api_key=[REDACTED]",
    ),
    (
        re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+"),
        "Bearer [REDACTED]",
    ),
]


def _redact_sensitive_strings(text: str) -> str:
    """Redact connection strings, tokens and keys from free text."""
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _create_error_response(
    body: OAuthErrorResponse,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers={**NO_STORE_HEADERS, **(headers or {})},
    )


def _get_correlation_id() -> str:
    request_id = get_request_id()
    return request_id if request_id else "unknown"


def _expose_error_details(request: Request) -> bool:
    state_value = getattr(request.app.state, "expose_error_details", None)
    if state_value is not None:
        return bool(state_value)
    return bool(getattr(request.app, "debug", False))


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    """Translate an OAuthError into ``{error, error_description}``.

    Args:
        request: FastAPI request object.
        exc: OAuthError instance carrying ``error`` and ``status_code``.

    Returns:
        JSONResponse with the error's status code.
    """
    logger.info(
        "oauth_error",
        extra={
            "error": exc.error,
            "path": str(request.url.path),
            "correlation_id": _get_correlation_id(),
        },
    )
    body = OAuthErrorResponse(error=exc.error, error_description=exc.description)
    return _create_error_response(body, exc.status_code)


async def authorization_pending_handler(
    request: Request,
    exc: AuthorizationPendingError,
) -> JSONResponse:
    """Translate AuthorizationPendingError to 401 with a WWW-Authenticate challenge.

    Per RFC 6750 section 3 every 401 carries ``WWW-Authenticate``. The
    ``authorization_uri`` parameter tells agent clients where to send the user.

    Args:
        request: FastAPI request object.
        exc: AuthorizationPendingError with the verification URIs.

    Returns:
        JSONResponse with 401 status, pending body and WWW-Authenticate header.
    """
    body = OAuthErrorResponse(
        error=exc.error,
        error_description=exc.description,
        verification_uri=exc.verification_uri,
        verification_uri_complete=exc.verification_uri_complete,
    )
    challenge = (
        'Bearer error="invalid_token", '
        'error_description="authorization_pending", '
        f'authorization_uri="{exc.verification_uri_complete}"'
    )
    return _create_error_response(body, 401, headers={"WWW-Authenticate": challenge})


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate FastAPI request validation failures to ``invalid_request``."""
    fields = [
        ".".join(str(part) for part in error.get("loc", []) if part not in ("query", "body"))
        for error in exc.errors()
    ]
    fields = [f for f in fields if f]
    description = (
        f"Invalid or missing parameters: {', '.join(fields)}" if fields else "Invalid request"
    )
    body = OAuthErrorResponse(error="invalid_request", error_description=description)
    return _create_error_response(body, 400)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler reporting ``server_error``.

    Logs full exception details but returns a sanitized response. Outside
    production (or in debug mode) the description includes the exception
    type and a redacted message; in production it is generic.

    Args:
        request: FastAPI request object.
        exc: Any unhandled exception.

    Returns:
        JSONResponse with 500 status.
    """
    correlation_id = _get_correlation_id()

    logger.exception(
        "unhandled_exception",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )

    if _expose_error_details(request):
        description = _redact_sensitive_strings(f"{type(exc).__name__}: {exc}")
    else:
        description = (
            f"An internal error occurred. Reference correlation ID {correlation_id}."
        )

    body = OAuthErrorResponse(error=ServerError.error, error_description=description)
    return _create_error_response(body, ServerError.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI application.

    Handlers are registered from most specific to least specific:
    1. AuthorizationPendingError -> 401 + WWW-Authenticate
    2. OAuthError -> the error's status (400 for client errors)
    3. RequestValidationError -> 400 invalid_request
    4. Exception -> 500 server_error (catch-all)

    Args:
        app: FastAPI application instance
    """
    for contribution in error_handler_contributions:
        app.add_exception_handler(contribution.exception_class, contribution.handler)


error_handler_contributions: list[ErrorHandlerContribution] = [
    ErrorHandlerContribution(AuthorizationPendingError, authorization_pending_handler),
    ErrorHandlerContribution(OAuthError, oauth_error_handler),
    ErrorHandlerContribution(RequestValidationError, request_validation_handler),
    ErrorHandlerContribution(Exception, unhandled_exception_handler),
]
