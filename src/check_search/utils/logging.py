"""Structured logging configuration with secret sanitization.

This module configures structlog for check-search:
- Configurable log levels and output formats (JSON/console)
- Automatic secret sanitization so search access tokens never reach output
- Context injection (check_id, query) for correlation across concurrent checks
- File and console output support
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog
from structlog.typing import WrappedLogger

from check_search.utils.security import SecretRedactor


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_redactor: SecretRedactor | None = None


def _get_redactor() -> SecretRedactor:
    """Get or create the global secret redactor."""
    global _redactor
    if _redactor is None:
        _redactor = SecretRedactor(placeholder="[REDACTED]")
    return _redactor


def sanitize_log_value(value: Any) -> Any:
    """Recursively sanitize secrets from log values.

    Args:
        value: Value to sanitize (can be nested dict/list/str)

    Returns:
        Sanitized value with secrets redacted
    """
    redactor = _get_redactor()

    if isinstance(value, str):
        return redactor.redact(value)
    elif isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    else:
        return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor to sanitize secrets from log entries."""
    result = sanitize_log_value(event_dict)
    return cast(MutableMapping[str, Any], result)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add service name and version to every log entry."""
    event_dict["service"] = "check-search"

    try:
        from check_search._version import __version__

        event_dict["version"] = __version__
    except (ImportError, RuntimeError):
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        # For development (colored console output)
        configure_logging(level="DEBUG", log_format="console")

        # For CI jobs (JSON for log aggregation)
        configure_logging(level="INFO", log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    # Results go to stdout, so logs stay on stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            console_logger = logging.getLogger("check_search.logging")
            console_logger.warning(f"Could not create log file {file_path}: {e}")

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str | None = None) -> WrappedLogger:
    """Get a structured logger instance."""
    return cast(WrappedLogger, structlog.get_logger(name))


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls.

    Example:
        bind_context(check_id="import-star")
        log.info("check_started")  # Includes check_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove contextual variables."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names for consistency."""

    # Check lifecycle
    CHECK_REGISTERED = "check_registered"
    CHECK_STARTED = "check_started"
    CHECK_COMPLETED = "check_completed"
    CHECK_CANCELLED = "check_cancelled"
    CHECK_FAILED = "check_failed"
    CHECK_ALREADY_RUNNING = "check_already_running"
    CHECK_RESTARTED = "check_restarted"
    CHECK_TOGGLED = "check_toggled"
    CHECK_INVALID_CRITERIA = "check_invalid_criteria"

    # Query and stream
    QUERY_BUILT = "query_built"
    SEARCH_PAGE_FETCHED = "search_page_fetched"
    SEARCH_ERROR = "search_error"
    DUPLICATE_HIT_DROPPED = "duplicate_hit_dropped"
    RESULT_LIMIT_REACHED = "result_limit_reached"

    # Verdicts and diagnostics
    VIOLATION_FOUND = "violation_found"
    VERDICT_INCONCLUSIVE = "verdict_inconclusive"
    DIAGNOSTICS_PUBLISHED = "diagnostics_published"
    DIAGNOSTICS_CLEARED = "diagnostics_cleared"

    # Registry
    REGISTRY_DISPOSED = "registry_disposed"

    # Health checks
    HEALTH_CHECK_START = "health_check_start"
    HEALTH_CHECK_COMPLETE = "health_check_complete"
