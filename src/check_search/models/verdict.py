"""Data models for rule verdicts."""

from dataclasses import dataclass

from .candidate import LineRange


@dataclass(frozen=True)
class FixSuggestion:
    """A mechanical correction for a violation.

    The replacement text replaces the whole lines covered by line_range.
    """

    description: str
    replacement: str
    line_range: LineRange


@dataclass(frozen=True)
class Violation:
    """The candidate breaks the rule's convention."""

    detail: str
    fix: FixSuggestion | None = None
    line_range: LineRange | None = None  # Narrower location than the candidate's


@dataclass(frozen=True)
class Clean:
    """The candidate satisfies the rule."""


@dataclass(frozen=True)
class Inconclusive:
    """The available text window is not enough to decide."""

    reason: str


MatchVerdict = Violation | Clean | Inconclusive

CLEAN = Clean()
