"""Data models for user-facing diagnostics."""

from dataclasses import dataclass, field
from enum import StrEnum

from .candidate import LineRange
from .verdict import FixSuggestion


class Severity(StrEnum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}[self]


class NoticeLevel(StrEnum):
    """Level of a host notice."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, order=True)
class Location:
    """Where a diagnostic applies."""

    repository: str
    file_path: str
    line_range: LineRange

    def __str__(self) -> str:
        return f"{self.repository}/{self.file_path}:{self.line_range}"


@dataclass(frozen=True)
class Diagnostic:
    """A rule violation reported to the host."""

    rule_id: str
    severity: Severity
    location: Location
    message: str
    fix: FixSuggestion | None = None
    revision: str = ""
    ordinal: int = field(default=0, compare=False)

    @property
    def key(self) -> tuple[str, str, str, LineRange]:
        """Deduplication key: (rule_id, repository, file_path, line_range)."""
        return (
            self.rule_id,
            self.location.repository,
            self.location.file_path,
            self.location.line_range,
        )

    @property
    def has_fix(self) -> bool:
        """Return True if a quick fix is attached."""
        return self.fix is not None


@dataclass(frozen=True)
class Notice:
    """A message for the host that is not tied to a single violation.

    Used for run summaries (e.g. a search that did not complete), invalid
    criteria, and Inconclusive verdicts under the "report" policy.
    """

    check_id: str
    level: NoticeLevel
    message: str
    location: Location | None = None


@dataclass(frozen=True)
class Decoration:
    """Inline decoration rendered after a line."""

    repository: str
    file_path: str
    line: int
    message: str
    severity: Severity
