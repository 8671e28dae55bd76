"""Utility functions and helpers.

This module provides various utilities for check-search:
- security: Secret redaction, repository name validation
- async_helpers: Error hierarchy, retry, rate limiting, cancellation
- logging: Structured logging with secret sanitization
- health: Health check utilities
- metrics: Application metrics collection
"""

from check_search.utils.async_helpers import (
    CancellationToken,
    CheckSearchError,
    CheckStateError,
    CollaboratorError,
    InvalidCriteria,
    NoFixAvailable,
    RateLimiter,
    RateLimitError,
    create_retry,
)
from check_search.utils.health import (
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from check_search.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from check_search.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from check_search.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Errors and async helpers
    "CancellationToken",
    "CheckSearchError",
    "CheckStateError",
    "CollaboratorError",
    "InvalidCriteria",
    "NoFixAvailable",
    "RateLimitError",
    "RateLimiter",
    "create_retry",
    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "Timer",
    "get_metrics",
    # Health
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
]
