"""Shared contract for rule matchers."""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar, Protocol, runtime_checkable

from check_search.models.candidate import Candidate
from check_search.models.query import MatchUnit
from check_search.models.verdict import MatchVerdict


class RuleKind(StrEnum):
    """The closed set of rules the engine knows about."""

    IMPORT_STAR = "import-star"
    NO_INLINE_PROPS = "no-inline-props"
    DEPENDENCY_RULES = "dependency-rules"
    CODE_OWNERSHIP = "code-ownership"
    TRAVIS_GO = "travis-go"


@runtime_checkable
class Rule(Protocol):
    """Protocol every rule matcher satisfies.

    evaluate() must be pure: no I/O, no mutation, and the same candidate
    always yields the same verdict.
    """

    kind: ClassVar[RuleKind]
    display_name: ClassVar[str]
    content_patterns: ClassVar[tuple[str, ...]]
    match_unit: ClassVar[MatchUnit]

    @property
    def rule_id(self) -> str: ...

    def evaluate(self, candidate: Candidate) -> MatchVerdict: ...


def leading_whitespace(line: str) -> str:
    """Return the indentation of a line."""
    return line[: len(line) - len(line.lstrip())]


def candidate_lines(candidate: Candidate) -> tuple[tuple[str, ...], int]:
    """Return the widest text window of a candidate and its first line number.

    Context lines are preferred; file-level candidates without context fall
    back to the matched text.
    """
    if candidate.context_lines:
        return candidate.context_lines, candidate.context_start
    return tuple(candidate.matched_text.splitlines()), candidate.line_range.start


def any_of(patterns: tuple[str, ...]) -> tuple[str, ...]:
    """Collapse alternative patterns into a single content pattern.

    Separate content fields in a search query must all match, so rules that
    accept any of several shapes are searched with one alternation.
    """
    if len(patterns) <= 1:
        return patterns
    return ("|".join(f"({pattern})" for pattern in patterns),)
