"""Tests for the logging configuration module."""

import json
import logging
from pathlib import Path

import structlog

from check_search.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    sanitize_log_value,
    secret_sanitizer,
    unbind_context,
)

SG_TOKEN = "sgp_0123456789abcdef0123456789abcdef01234567"


class TestSanitizeLogValue:
    """Tests for sanitize_log_value function."""

    def test_sanitize_string_with_sourcegraph_token(self) -> None:
        """Test that Sourcegraph tokens are redacted."""
        result = sanitize_log_value(f"Using token {SG_TOKEN}")
        assert "sgp_" not in result
        assert "[REDACTED]" in result

    def test_sanitize_authorization_header(self) -> None:
        """Test that Authorization header values are redacted."""
        result = sanitize_log_value("Authorization: token abcdef0123456789")
        assert "abcdef0123456789" not in result

    def test_sanitize_string_without_secrets(self) -> None:
        """Test that strings without secrets are unchanged."""
        text = r"repo:^github\.com/org/app$ content:import"
        assert sanitize_log_value(text) == text

    def test_sanitize_nested_dict(self) -> None:
        """Test that nested dicts are recursively sanitized."""
        data = {"message": "test", "nested": {"header": f"token {SG_TOKEN}"}}
        result = sanitize_log_value(data)
        assert "[REDACTED]" in result["nested"]["header"]

    def test_sanitize_list_and_tuple(self) -> None:
        """Test that sequences keep their type."""
        result = sanitize_log_value(("normal", SG_TOKEN))
        assert isinstance(result, tuple)
        assert result[0] == "normal"
        assert result[1] == "[REDACTED]"

    def test_sanitize_non_string(self) -> None:
        """Test that non-strings are passed through."""
        assert sanitize_log_value(123) == 123
        assert sanitize_log_value(True) is True
        assert sanitize_log_value(None) is None


class TestProcessors:
    """Tests for the structlog processors."""

    def test_sanitizer_redacts_secrets(self) -> None:
        """Test that the processor redacts secrets."""
        event_dict = {"event": "search_configured", "access_token": SG_TOKEN}
        result = secret_sanitizer(None, "info", event_dict)  # type: ignore[arg-type]
        assert result["access_token"] == "[REDACTED]"

    def test_sanitizer_preserves_non_secrets(self) -> None:
        """Test that non-secret values are preserved."""
        event_dict = {"event": "check_completed", "diagnostics": 3}
        result = secret_sanitizer(None, "info", event_dict)  # type: ignore[arg-type]
        assert result == event_dict

    def test_context_processor(self) -> None:
        """Test the service name and version are added."""
        result = add_context_processor(None, "info", {"event": "x"})  # type: ignore[arg-type]
        assert result["service"] == "check-search"
        assert "version" in result


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_enums(self) -> None:
        """Test configuration with enum values."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_with_string_values(self) -> None:
        """Test configuration with string values."""
        configure_logging(level="warning", log_format="JSON")
        assert logging.getLogger().level == logging.WARNING

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test JSON entries land in the log file with secrets redacted."""
        log_file = tmp_path / "logs" / "check-search.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )

        structlog.get_logger("test").info("search_configured", access_token=SG_TOKEN)
        logging.shutdown()

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["event"] == "search_configured"
        assert entry["access_token"] == "[REDACTED]"
        assert entry["service"] == "check-search"

    def test_get_logger(self) -> None:
        """Test that get_logger returns a logger."""
        configure_logging()
        assert get_logger("test") is not None


class TestContextFunctions:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self) -> None:
        """Test binding and clearing context."""
        bind_context(check_id="import-star", rule="import-star")
        assert structlog.contextvars.get_contextvars()["check_id"] == "import-star"

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_unbind_context(self) -> None:
        """Test unbinding specific context keys."""
        bind_context(key1="value1", key2="value2")
        unbind_context("key1")

        assert structlog.contextvars.get_contextvars() == {"key2": "value2"}
        clear_context()


class TestEnums:
    """Tests for logging enums and event names."""

    def test_log_levels(self) -> None:
        """Test that all expected log levels exist."""
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]

    def test_log_formats(self) -> None:
        """Test that all expected formats exist."""
        assert LogFormat.JSON.value == "json"
        assert LogFormat.CONSOLE.value == "console"

    def test_event_names_are_snake_case(self) -> None:
        """Test every standard event name is snake_case."""
        names = [v for k, v in vars(LogEventNames).items() if k.isupper()]
        assert names
        assert all(name == name.lower() and " " not in name for name in names)
