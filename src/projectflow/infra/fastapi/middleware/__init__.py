"""ASGI middleware for the authorization server."""

from projectflow.infra.fastapi.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIdMiddleware,
    get_request_id,
    request_id_ctx,
)

__all__ = ["REQUEST_ID_HEADER", "RequestIdMiddleware", "get_request_id", "request_id_ctx"]
