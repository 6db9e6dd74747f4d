"""Contribution types for wiring the application together.

Each infrastructure package exposes module-level contributions (middleware,
error handlers, lifespan hooks) that the app factory collects, orders by
priority and registers. They are framework-agnostic and live in the
foundation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MIDDLEWARE_PRIORITY_MIN = 0
MIDDLEWARE_PRIORITY_MAX = 499

# Lifespan ordering: lower starts first and shuts down last.
LIFESPAN_PRIORITY_OBSERVABILITY = 50
LIFESPAN_PRIORITY_OAUTH = 100


@dataclass(frozen=True, slots=True)
class MiddlewareContribution:
    """Describes a middleware to register on the application.

    Attributes:
        middleware_class: The ASGI middleware class.
        priority: Ordering priority. Lower numbers execute first (outermost).
            Bands: 0-99 outermost, 100-199 security, 200-299 context, 300-399 policy.
            Must be in range [0, 499].
        kwargs: Additional keyword arguments to pass to ``add_middleware()``.
    """

    middleware_class: type[Any]
    priority: int = 400
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not MIDDLEWARE_PRIORITY_MIN <= self.priority <= MIDDLEWARE_PRIORITY_MAX:
            msg = (
                f"Middleware priority must be between {MIDDLEWARE_PRIORITY_MIN} "
                f"and {MIDDLEWARE_PRIORITY_MAX}, got {self.priority}"
            )
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ErrorHandlerContribution:
    """Describes an exception handler to register on the application.

    Attributes:
        exception_class: The exception type to handle.
        handler: The async handler callable ``(Request, Exception) -> Response``.
    """

    exception_class: type[BaseException]
    handler: Any  # Callable[[Request, Exception], Awaitable[Response]]


@dataclass(frozen=True, slots=True)
class LifespanContribution:
    """Describes a lifespan hook entered when the application starts.

    Attributes:
        hook: An async context manager factory ``(app) -> AsyncContextManager[None]``.
        priority: Ordering priority. Lower priorities start first (and shut down last).
    """

    hook: Any  # Callable[[Any], AsyncContextManager[None]]
    priority: int = 500
