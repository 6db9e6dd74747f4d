"""Structured logging configuration using structlog.

This module provides environment-aware structured logging with:
- JSON output for production environments
- Console output with colors for development
- Automatic correlation ID binding from RequestIdMiddleware
- Redaction of tokens, authorization codes and verifiers

Authorization codes embed the user's bearer tokens, so they are treated
exactly like tokens: any log field that could carry one is redacted.

Usage:
    # During application startup
    from projectflow.infra.observability.logging import configure_logging
    configure_logging()

    # In application code
    from projectflow.infra.observability import get_logger
    logger = get_logger(__name__)
    logger.info("authorize_pending_stored", client_id="cursor")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import MutableMapping

Processor = structlog.types.Processor

SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "authorization",
        "api_key",
        "apikey",
        "secret",
        "bearer",
        "credential",
        "code",
        "cookie",
        "cookies",
    }
)

# Substrings that mark compound field names as sensitive.
SENSITIVE_SUBSTRINGS: tuple[str, ...] = ("password", "token", "secret", "verifier", "_code")

REDACTED_VALUE: str = "***REDACTED***"


class LoggingSettings(BaseSettings):
    """Logging configuration settings from environment variables.

    Loads configuration from environment variables:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment name (development, staging, production, test)

    Example:
        >>> LoggingSettings(log_level="debug", environment="production").use_json_logs
        True
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Minimum log level to output",
    )
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Environment name for format selection",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        if isinstance(v, str):
            return v.upper()
        return str(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            msg = f"log_level must be one of {valid_levels}"
            raise ValueError(msg)
        return v

    @property
    def use_json_logs(self) -> bool:
        """JSON in production, console rendering everywhere else."""
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


class SensitiveDataProcessor:
    """Structlog processor to redact sensitive fields from log context.

    Redacts values for fields matching:
    1. Exact field names in SENSITIVE_FIELDS (case-insensitive)
    2. Field names containing any of SENSITIVE_SUBSTRINGS

    Example:
        >>> processor = SensitiveDataProcessor()
        >>> processor(None, "info", {"event": "exchange", "authorization_code": "x.y"})
        {'event': 'exchange', 'authorization_code': '***REDACTED***'}
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict.keys()):
            if self._is_sensitive(key):
                event_dict[key] = REDACTED_VALUE
        return event_dict

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        return any(part in key_lower for part in SENSITIVE_SUBSTRINGS)


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached LoggingSettings instance.

    Clear cache with ``get_logging_settings.cache_clear()`` for testing.
    """
    return LoggingSettings()


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog for structured logging.

    Configures structlog with:
    - Context variable merging (for correlation IDs from RequestIdMiddleware)
    - Log level filtering
    - ISO 8601 timestamps (UTC)
    - Sensitive data redaction
    - Environment-aware rendering (JSON for production, console for development)

    The standard library root logger is set to the same level so that
    infrastructure modules logging through ``logging.getLogger`` are emitted
    alongside structlog output.

    Should be called once during application startup (in lifespan handler).

    Args:
        settings: Optional LoggingSettings instance. If not provided,
            settings are loaded from environment variables.
    """
    if settings is None:
        settings = get_logging_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
        structlog.processors.format_exc_info,
    ]

    if settings.use_json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(levelname)s %(name)s %(message)s", level=settings.log_level_int)
    logging.getLogger().setLevel(settings.log_level_int)


def get_logger(name: str | None = None) -> structlog.typing.WrappedLogger:
    """Get a structlog logger bound to the given name.

    The logger inherits context from RequestIdMiddleware (request_id)
    and any additional bound context.

    Example:
        >>> from projectflow.infra.observability import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("token_issued", client_id="cursor", grant_type="authorization_code")
    """
    logger = structlog.get_logger()
    if name is not None:
        logger = logger.bind(logger=name)
    return logger
