"""Request ID middleware for correlation and tracing.

Pure ASGI middleware that extracts or generates an ``X-Request-ID`` for
every request, exposes it through a context variable, binds it into the
structlog context and echoes it on the response.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog

from projectflow.foundation.application import MiddlewareContribution

if TYPE_CHECKING:
    from collections.abc import Callable

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request ID, or an empty string outside a request."""
    return request_id_ctx.get()


def _is_valid_uuid(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def _extract_header(headers: list[tuple[bytes, bytes]], name: bytes) -> str:
    for key, value in headers:
        if key.lower() == name:
            return value.decode("latin-1")
    return ""


class RequestIdMiddleware:
    """Pure ASGI middleware for X-Request-ID header extraction and propagation.

    Invalid or missing client IDs are replaced with a fresh UUID4 rather
    than rejected, so a misconfigured client never blocks an OAuth flow.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> app.add_middleware(RequestIdMiddleware)
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _extract_header(scope.get("headers", []), b"x-request-id")
        if not _is_valid_uuid(request_id):
            request_id = str(uuid.uuid4())

        token = request_id_ctx.set(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_request_id(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            request_id_ctx.reset(token)
            structlog.contextvars.unbind_contextvars("request_id")


contribution = MiddlewareContribution(
    middleware_class=RequestIdMiddleware,
    priority=10,  # Outermost band (0-99)
)
