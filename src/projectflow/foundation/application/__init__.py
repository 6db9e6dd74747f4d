"""ProjectFlow Foundation Application - contribution types for app wiring."""

from projectflow.foundation.application.contributions import (
    LIFESPAN_PRIORITY_OAUTH,
    LIFESPAN_PRIORITY_OBSERVABILITY,
    ErrorHandlerContribution,
    LifespanContribution,
    MiddlewareContribution,
)

__all__ = [
    "LIFESPAN_PRIORITY_OAUTH",
    "LIFESPAN_PRIORITY_OBSERVABILITY",
    "ErrorHandlerContribution",
    "LifespanContribution",
    "MiddlewareContribution",
]
