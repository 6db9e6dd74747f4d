"""ProjectFlow Infra FastAPI - app factory, settings, error handlers, middleware."""

from projectflow.infra.fastapi.app_factory import compose_lifespan, create_app
from projectflow.infra.fastapi.error_handlers import (
    OAuthErrorResponse,
    register_exception_handlers,
)
from projectflow.infra.fastapi.settings import AppSettings, CORSSettings

__all__ = [
    "AppSettings",
    "CORSSettings",
    "OAuthErrorResponse",
    "compose_lifespan",
    "create_app",
    "register_exception_handlers",
]
