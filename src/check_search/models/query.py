"""Data models for search criteria and queries."""

from dataclasses import dataclass, field
from enum import StrEnum


class PatternType(StrEnum):
    """How content patterns are interpreted by the search backend."""

    REGEXP = "regexp"
    LITERAL = "literal"


class MatchUnit(StrEnum):
    """Granularity of a search hit."""

    LINE = "line"  # One hit per matching line, with surrounding context
    FILE = "file"  # One hit per file, carrying the whole file content
    PATH = "path"  # One hit per file path, no content


@dataclass(frozen=True)
class RepositoryScope:
    """Repositories a check runs against.

    Include entries are exact names ("github.com/org/repo") or org-level
    wildcards ("github.com/org/*").
    """

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchCriteria:
    """Declarative search criteria of a rule."""

    repositories: RepositoryScope
    file_patterns: tuple[str, ...] = ()
    exclude_file_patterns: tuple[str, ...] = ()
    content_patterns: tuple[str, ...] = ()
    forbidden_patterns: tuple[str, ...] = ()
    case_sensitive: bool = True
    pattern_type: PatternType = PatternType.REGEXP
    match_unit: MatchUnit = MatchUnit.LINE
    max_results: int = 500


@dataclass(frozen=True)
class Query:
    """A query ready for the search collaborator."""

    text: str
    max_results: int
    match_unit: MatchUnit = MatchUnit.LINE
    repositories: tuple[str, ...] = field(default=(), compare=False)

    def __str__(self) -> str:
        return self.text
