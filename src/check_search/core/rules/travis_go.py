"""Go toolchain pinning in Travis CI configuration.

Go projects built on Travis must pin a supported Go version. Floating
versions such as ``tip`` and versions older than the configured minimum
are flagged, and so are unquoted versions that YAML reads as floats
(``go: 1.10`` is the number 1.1).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar

import yaml

from check_search.core.rules.base import RuleKind, candidate_lines
from check_search.models.candidate import Candidate, LineRange
from check_search.models.query import MatchUnit
from check_search.models.verdict import (
    CLEAN,
    FixSuggestion,
    Inconclusive,
    MatchVerdict,
    Violation,
)

VERSION = re.compile(r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?:\d+|x))?$")
GO_KEY = re.compile(r"^go\s*:")
LANGUAGE_KEY = re.compile(r"^language\s*:")


def parse_version(value: str) -> tuple[int, int] | None:
    """Parse a Go version pin into (major, minor)."""
    match = VERSION.match(value.strip())
    if match is None:
        return None
    return int(match.group("major")), int(match.group("minor") or 0)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


@dataclass(frozen=True)
class TravisGoRule:
    """Flags Travis configurations that do not pin a supported Go version."""

    kind: ClassVar[RuleKind] = RuleKind.TRAVIS_GO
    display_name: ClassVar[str] = "Travis Go version"
    content_patterns: ClassVar[tuple[str, ...]] = (r"^\s*(language|go)\s*:",)
    match_unit: ClassVar[MatchUnit] = MatchUnit.FILE

    required_fields: tuple[str, ...] = ("language", "go")
    minimum_version: str = "1.13"
    deprecated_versions: tuple[str, ...] = ("tip", "master", "stable")
    recommended_version: str = "1.14.x"

    @property
    def rule_id(self) -> str:
        """Stable rule identifier."""
        return self.kind.value

    def evaluate(self, candidate: Candidate) -> MatchVerdict:
        """Decide whether the Travis configuration pins a supported Go version."""
        lines, first_line = candidate_lines(candidate)
        text = "\n".join(lines)
        if not text.strip():
            return Inconclusive(reason="No configuration content captured")

        try:
            data = yaml.safe_load(text)
            # Untyped view keeps version strings exactly as written
            raw = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError as e:
            return Inconclusive(reason=f"Configuration does not parse as YAML: {e}")

        if not isinstance(data, dict) or not isinstance(raw, dict):
            return Inconclusive(reason="Configuration is not a YAML mapping")

        language = data.get("language")
        if language is None and "go" not in data:
            return CLEAN
        if language is not None and str(language).strip().lower() != "go":
            return CLEAN

        problems: list[str] = []
        missing = [name for name in self.required_fields if name not in data]
        if missing:
            problems.append(f"missing required field(s): {', '.join(missing)}")

        version_problems: list[str] = []
        if "go" in data:
            version_problems = self._version_problems(data.get("go"), raw.get("go"))
            problems.extend(version_problems)

        if not problems:
            return CLEAN

        go_index = self._find(lines, GO_KEY)
        language_index = self._find(lines, LANGUAGE_KEY)
        anchor = go_index if go_index is not None else language_index
        line_range = LineRange.single(first_line + (anchor or 0))

        fix = None
        if version_problems or "go" in missing:
            fix = self._fix(lines, first_line, go_index, language_index)

        return Violation(
            detail=f"Travis Go configuration: {'; '.join(problems)}",
            fix=fix,
            line_range=line_range,
        )

    def _version_problems(self, typed: Any, raw: Any) -> list[str]:
        typed_versions = _as_list(typed)
        raw_versions = _as_list(raw)
        if not raw_versions or all(str(v).strip() == "" for v in raw_versions):
            return ["no Go version is pinned"]

        problems: list[str] = []
        minimum = parse_version(self.minimum_version)
        for typed_value, raw_value in zip(typed_versions, raw_versions, strict=False):
            if not isinstance(raw_value, str):
                problems.append(f"unsupported go entry {raw_value!r}")
                continue
            written = raw_value.strip()
            if isinstance(typed_value, float) and str(typed_value) != written:
                problems.append(
                    f"unquoted version {written} is read as {typed_value}; quote it"
                )
                continue
            if written in self.deprecated_versions:
                problems.append(f"version '{written}' is deprecated")
                continue
            parsed = parse_version(written)
            if parsed is None:
                problems.append(f"version '{written}' is not a valid Go version")
            elif minimum is not None and parsed < minimum:
                problems.append(
                    f"version {written} is older than the minimum {self.minimum_version}"
                )
        return problems

    @staticmethod
    def _find(lines: tuple[str, ...], key: re.Pattern[str]) -> int | None:
        for index, line in enumerate(lines):
            if key.match(line):
                return index
        return None

    def _fix(
        self,
        lines: tuple[str, ...],
        first_line: int,
        go_index: int | None,
        language_index: int | None,
    ) -> FixSuggestion | None:
        pin = f'go: "{self.recommended_version}"'
        description = f"Pin Go {self.recommended_version}"

        if go_index is not None:
            end = go_index
            for index in range(go_index + 1, len(lines)):
                line = lines[index]
                if not line.strip():
                    continue
                if line[0].isspace() or line.startswith("-"):
                    end = index
                    continue
                break
            return FixSuggestion(
                description=description,
                replacement=pin,
                line_range=LineRange(first_line + go_index, first_line + end),
            )

        if language_index is not None:
            return FixSuggestion(
                description=description,
                replacement=f"{lines[language_index]}\n{pin}",
                line_range=LineRange.single(first_line + language_index),
            )

        return None


__all__ = ["TravisGoRule", "parse_version"]
