"""Wildcard import detection.

Flags namespace imports such as ``import * as pkg from 'x'`` (JavaScript and
TypeScript) and ``from x import *`` (Python). When the imported module has a
known export list, the violation carries a fix that replaces the wildcard with
an explicit symbol list.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import ClassVar

from check_search.core.rules.base import RuleKind
from check_search.models.candidate import Candidate, LineRange
from check_search.models.query import MatchUnit
from check_search.models.verdict import (
    CLEAN,
    FixSuggestion,
    Inconclusive,
    MatchVerdict,
    Violation,
)

TS_IMPORT_STAR = re.compile(
    r"""^(?P<indent>\s*)import\s+(?:type\s+)?\*\s+as\s+(?P<alias>[A-Za-z_$][\w$]*)\s+
        from\s+(?P<quote>['"])(?P<module>[^'"]+)(?P=quote)\s*(?P<semi>;?)""",
    re.VERBOSE,
)
# "import * as pkg" whose from-clause has not been seen yet
TS_IMPORT_STAR_HEAD = re.compile(
    r"^\s*import\s+(?:type\s+)?\*\s+as\s+[A-Za-z_$][\w$]*(?:\s+from)?\s*$"
)
PY_IMPORT_STAR = re.compile(
    r"^(?P<indent>\s*)from\s+(?P<module>\.*[\w.]*)\s+import\s+\*\s*(?:#.*)?$"
)

# Upper bound on lines joined while looking for a from-clause
MAX_STATEMENT_LINES = 5


@dataclass(frozen=True)
class _ImportStatement:
    alias: str | None
    module: str
    indent: str
    quote: str
    semicolon: str
    line_range: LineRange
    python: bool


@dataclass(frozen=True)
class ImportStarRule:
    """Flags unqualified wildcard imports.

    Example:
        rule = ImportStarRule(exports={"x": ("a", "b")})
        rule.evaluate(candidate)  # Violation with a fix to "import { a, b } from 'x'"
    """

    kind: ClassVar[RuleKind] = RuleKind.IMPORT_STAR
    display_name: ClassVar[str] = "Wildcard imports"
    content_patterns: ClassVar[tuple[str, ...]] = (r"import\s+(type\s+)?\*\s+as\s",)
    python_patterns: ClassVar[tuple[str, ...]] = (r"^\s*from\s+\S+\s+import\s+\*",)
    match_unit: ClassVar[MatchUnit] = MatchUnit.LINE

    exports: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def rule_id(self) -> str:
        """Stable rule identifier."""
        return self.kind.value

    def evaluate(self, candidate: Candidate) -> MatchVerdict:
        """Decide whether the candidate is a wildcard import."""
        lines = candidate.matched_text.splitlines() or [""]
        first = lines[0]
        stripped = first.lstrip()

        if stripped.startswith(("//", "/*", "*", "#")):
            return CLEAN

        start = candidate.line_range.start

        match = PY_IMPORT_STAR.match(first)
        if match:
            statement = _ImportStatement(
                alias=None,
                module=match.group("module"),
                indent=match.group("indent"),
                quote="",
                semicolon="",
                line_range=LineRange.single(start),
                python=True,
            )
            return self._violation(statement, candidate)

        match = TS_IMPORT_STAR.match(first)
        if match:
            return self._violation(self._ts_statement(match, start, start), candidate)

        if not TS_IMPORT_STAR_HEAD.match(first):
            return CLEAN

        # The from-clause continues on following lines
        following = [*lines[1:], *candidate.lines_after_match()]
        joined = first
        for offset, line in enumerate(following[: MAX_STATEMENT_LINES - 1], start=1):
            joined = f"{joined} {line.strip()}"
            match = TS_IMPORT_STAR.match(joined)
            if match:
                return self._violation(self._ts_statement(match, start, start + offset), candidate)

        return Inconclusive(
            reason="wildcard import continues past the captured context window",
        )

    def _ts_statement(self, match: re.Match[str], start: int, end: int) -> _ImportStatement:
        return _ImportStatement(
            alias=match.group("alias"),
            module=match.group("module"),
            indent=match.group("indent"),
            quote=match.group("quote"),
            semicolon=match.group("semi"),
            line_range=LineRange(start, end),
            python=False,
        )

    def _violation(self, statement: _ImportStatement, candidate: Candidate) -> Violation:
        if statement.alias:
            detail = (
                f"Wildcard import of '{statement.module}' as '{statement.alias}'; "
                "import the symbols you use by name"
            )
        else:
            detail = f"Wildcard import from '{statement.module}'; import names explicitly"

        return Violation(
            detail=detail,
            fix=self._fix(statement, candidate),
            line_range=statement.line_range,
        )

    def _fix(self, statement: _ImportStatement, candidate: Candidate) -> FixSuggestion | None:
        exported = self.exports.get(statement.module)
        if not exported:
            return None

        symbols = list(exported)
        # Members used outside a partial window would lose their import
        if statement.alias and candidate.whole_file:
            used = self._used_members(statement, candidate)
            narrowed = [symbol for symbol in exported if symbol in used]
            if narrowed:
                symbols = narrowed

        names = ", ".join(symbols)
        if statement.python:
            replacement = f"{statement.indent}from {statement.module} import {names}"
        else:
            replacement = (
                f"{statement.indent}import {{ {names} }} from "
                f"{statement.quote}{statement.module}{statement.quote}{statement.semicolon}"
            )

        return FixSuggestion(
            description=f"Import {len(symbols)} named symbol(s) from '{statement.module}'",
            replacement=replacement,
            line_range=statement.line_range,
        )

    @staticmethod
    def _used_members(statement: _ImportStatement, candidate: Candidate) -> set[str]:
        pattern = re.compile(rf"(?<![\w$.]){re.escape(statement.alias or '')}\.([A-Za-z_$][\w$]*)")
        used: set[str] = set()
        for line in candidate.context_lines:
            used.update(pattern.findall(line))
        return used


def export_map(exports: Mapping[str, list[str]]) -> dict[str, tuple[str, ...]]:
    """Freeze a configured export mapping."""
    return {module: tuple(symbols) for module, symbols in exports.items()}


__all__ = ["ImportStarRule", "export_map"]
