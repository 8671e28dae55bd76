"""Inline component props detection.

React components should describe their props with a named interface rather
than an object literal type written inline in the component signature:

    const Button: React.FC<{ label: string }> = ...     # flagged
    const Button: React.FC<ButtonProps> = ...           # clean
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar

from check_search.core.rules.base import RuleKind, leading_whitespace
from check_search.models.candidate import Candidate, LineRange
from check_search.models.query import MatchUnit
from check_search.models.verdict import (
    CLEAN,
    FixSuggestion,
    Inconclusive,
    MatchVerdict,
    Violation,
)

COMPONENT_TYPE = re.compile(
    r"\b(?:React\.)?(?:FunctionComponent|FC|VFC|SFC|Component|PureComponent|ComponentType)\s*<"
)
PROPS_PARAMETER = re.compile(r"\(\s*(?:props|\{[^(){}]*\})\s*:")
COMPONENT_NAME = re.compile(
    r"\b(?:(?:const|let|var)\s+(?P<binding>[A-Z][\w$]*)\s*:|class\s+(?P<cls>[A-Z][\w$]*)"
    r"|function\s+(?P<func>[A-Z][\w$]*))"
)


def _balanced_end(text: str, open_index: int) -> int | None:
    """Index just past the brace matching text[open_index], or None if cut off."""
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None


@dataclass(frozen=True)
class NoInlinePropsRule:
    """Flags object literal types used as component props."""

    kind: ClassVar[RuleKind] = RuleKind.NO_INLINE_PROPS
    display_name: ClassVar[str] = "Inline component props"
    content_patterns: ClassVar[tuple[str, ...]] = (
        r"(Component|FC|FunctionComponent|SFC|VFC|ComponentType)\s*<",
        r"\(\s*(props|\{[^)]*\})\s*:",
    )
    match_unit: ClassVar[MatchUnit] = MatchUnit.LINE

    @property
    def rule_id(self) -> str:
        """Stable rule identifier."""
        return self.kind.value

    def evaluate(self, candidate: Candidate) -> MatchVerdict:
        """Decide whether the candidate declares inline props."""
        lines = candidate.matched_text.splitlines() or [""]
        first = lines[0]
        if first.lstrip().startswith(("//", "/*", "*")):
            return CLEAN

        match = COMPONENT_TYPE.search(first) or PROPS_PARAMETER.search(first)
        if match is None:
            return CLEAN

        # Everything we can see from the match onward
        window = "\n".join([first[match.end():], *lines[1:], *candidate.lines_after_match()])
        stripped = window.lstrip()
        if not stripped:
            return Inconclusive(reason="props type is cut off by the end of the context window")
        if not stripped.startswith("{"):
            return CLEAN

        return Violation(
            detail="Component props are declared inline; extract them into a named interface",
            fix=self._fix(first, match.end(), candidate.line_range.start),
            line_range=LineRange.single(candidate.line_range.start),
        )

    @staticmethod
    def _fix(line: str, type_start: int, line_number: int) -> FixSuggestion | None:
        open_index = line.find("{", type_start)
        if open_index < 0:
            return None
        close_index = _balanced_end(line, open_index)
        if close_index is None:
            return None

        name_match = COMPONENT_NAME.search(line, 0, type_start)
        if name_match is None:
            return None
        name = name_match.group("binding") or name_match.group("cls") or name_match.group("func")
        props_name = f"{name}Props"

        shape = line[open_index:close_index]
        indent = leading_whitespace(line)
        rewritten = line[:open_index] + props_name + line[close_index:]
        return FixSuggestion(
            description=f"Extract props into interface {props_name}",
            replacement=f"{indent}interface {props_name} {shape}\n{rewritten}",
            line_range=LineRange.single(line_number),
        )


__all__ = ["NoInlinePropsRule"]
