"""Security utilities for secret redaction and input validation.

Search backend access tokens travel through configuration and HTTP headers,
so every log entry is passed through SecretRedactor before it is rendered.
Redaction is fail-closed: a pattern that fails to compile or execute raises
rather than letting text through unredacted.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


# Repository names: "host/owner/repo" or "owner/repo"
REPO_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+(?:/[a-zA-Z0-9_.-]+)+$")

# Characters that must never appear in repository names or query fields
QUERY_METACHARACTERS = frozenset(["\n", "\r", "\t", "\x00", '"', " "])


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)

    Attributes:
        patterns: List of compiled regex patterns to detect secrets.
        placeholder: The string to replace secrets with (default: "[REDACTED]").
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        # Generic patterns
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        # Authorization headers
        (r"(?i)authorization\s*[=:]\s*[\"']?(?:token|bearer)\s+[\w.-]+", "Authorization header"),
        # Sourcegraph
        (r"sgp_[a-fA-F0-9]{16,}(?:_[a-fA-F0-9]{40})?", "Sourcegraph access token"),
        # GitHub
        (r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
        (r"github_pat_[a-zA-Z0-9_]{22,}", "GitHub fine-grained PAT"),
        (r"gho_[a-zA-Z0-9]{36}", "GitHub OAuth token"),
        (r"ghs_[a-zA-Z0-9]{36}", "GitHub server-to-server token"),
        # GitLab
        (r"glpat-[a-zA-Z0-9_-]{20,}", "GitLab PAT"),
        # Private keys
        (
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
            "Private key header",
        ),
        # JWT tokens
        (
            r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*",
            "JWT token",
        ),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        try:
            for pattern_str, name in all_patterns:
                compiled = re.compile(pattern_str)
                self._pattern_names[compiled] = name
        except re.error as e:
            msg = f"Failed to compile secret pattern '{pattern_str}': {e}"
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(msg) from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Args:
            text: The text to scan and redact secrets from.

        Returns:
            The text with all detected secrets replaced with placeholder.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False

        try:
            return any(pattern.search(text) for pattern in self._pattern_names)
        except Exception as e:
            log.error("has_secrets_check_failed", error=str(e))
            raise RedactionError(f"Secret check failed: {e}") from e


def validate_repo_name(repo: str) -> bool:
    """Validate that a repository name is safe to embed in a search query.

    Repository names are slash-separated segments of alphanumerics,
    underscores, hyphens and periods, e.g. "github.com/owner/repo".

    Args:
        repo: The repository name to validate.

    Returns:
        True if the repository name is valid, False otherwise.
    """
    if not repo:
        return False

    if any(char in repo for char in QUERY_METACHARACTERS):
        return False

    if ".." in repo.split("/"):
        return False

    return bool(REPO_NAME_PATTERN.match(repo))


def validate_repo_pattern(pattern: str) -> bool:
    """Validate a repository scope entry: an exact name or an "org/*" wildcard."""
    if pattern.endswith("/*"):
        return validate_repo_name(pattern[:-2]) or bool(
            re.fullmatch(r"[a-zA-Z0-9_.-]+", pattern[:-2])
        )
    return validate_repo_name(pattern)


def mask_config_value(key: str, value: str) -> str:
    """Mask sensitive config values for logging.

    Args:
        key: The configuration key name.
        value: The configuration value.

    Returns:
        The masked value if the key indicates sensitivity, otherwise the original.
    """
    sensitive_keys = {"token", "key", "secret", "password", "credential"}

    key_lower = key.lower()
    if any(s in key_lower for s in sensitive_keys):
        if len(value) > 8:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    return value
