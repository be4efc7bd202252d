"""Utility modules for bookrec.

- **errors** -- exception hierarchy rooted at BookRecError.
- **concurrency** -- fan-out with a join deadline, single-call timeouts.
- **logging** -- structlog setup (console in development, JSON in production).
"""

from bookrec.utils.concurrency import FanOutResult, call_with_timeout, fan_out
from bookrec.utils.errors import (
    BookRecError,
    ConfigurationError,
    ProviderUnavailableError,
    RecommendationUnavailable,
    UpstreamTimeout,
    ValidationError,
)
from bookrec.utils.logging import bound_request, configure_logging, get_logger

__all__ = [
    "BookRecError",
    "ConfigurationError",
    "FanOutResult",
    "ProviderUnavailableError",
    "RecommendationUnavailable",
    "UpstreamTimeout",
    "ValidationError",
    "bound_request",
    "call_with_timeout",
    "configure_logging",
    "fan_out",
    "get_logger",
]
