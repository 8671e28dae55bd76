"""Code ownership coverage.

Every file must be covered by an ownership entry that names at least one
owner and has been reviewed recently. Patterns follow CODEOWNERS semantics:
entries are matched in order and the last matching entry wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import ClassVar

from check_search.core.rules.base import RuleKind
from check_search.models.candidate import Candidate
from check_search.models.query import MatchUnit
from check_search.models.verdict import CLEAN, MatchVerdict, Violation


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a CODEOWNERS path pattern into a regular expression.

    Rules:
        - A leading "/" or a "/" inside the pattern anchors it to the root
        - A trailing "/" matches directories only (everything beneath them)
        - "**" spans directories, "*" and "?" stay within one path segment
        - A pattern also matches everything beneath a matching directory
    """
    directory_only = pattern.endswith("/")
    body = pattern.strip("/")
    anchored = pattern.startswith("/") or "/" in body

    parts: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if body.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
            continue
        if body.startswith("**", index):
            parts.append(".*")
            index += 2
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        index += 1

    regex = "".join(parts)
    if not anchored:
        regex = "(?:.*/)?" + regex

    last_segment = body.rsplit("/", 1)[-1]
    if directory_only:
        regex += "/.*"
    elif "*" not in last_segment:
        regex += "(?:/.*)?"

    return re.compile(f"^{regex}$")


@dataclass(frozen=True)
class OwnershipRecord:
    """One ownership entry with its compiled pattern."""

    pattern: str
    owners: tuple[str, ...]
    last_reviewed: date | None = None
    line: int | None = None  # Line in the CODEOWNERS file it came from

    @property
    def regex(self) -> re.Pattern[str]:
        return compile_pattern(self.pattern)

    def matches(self, path: str) -> bool:
        """Check whether this entry covers a repository-relative path."""
        return self.regex.match(path.lstrip("/")) is not None


def parse_codeowners(text: str) -> tuple[OwnershipRecord, ...]:
    """Parse CODEOWNERS file content into ownership records.

    Blank lines and "#" comments are skipped. Escaped "\\#" in patterns is
    kept literally.
    """
    records: list[OwnershipRecord] = []
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        # Trailing comments
        line = re.split(r"(?<!\\)\s+#", line, maxsplit=1)[0]
        fields = line.split()
        pattern = fields[0].replace("\\#", "#")
        records.append(
            OwnershipRecord(pattern=pattern, owners=tuple(fields[1:]), line=line_number)
        )
    return tuple(records)


@dataclass(frozen=True)
class CodeOwnershipRule:
    """Flags files without an owner or with stale ownership."""

    kind: ClassVar[RuleKind] = RuleKind.CODE_OWNERSHIP
    display_name: ClassVar[str] = "Code ownership"
    content_patterns: ClassVar[tuple[str, ...]] = ()
    match_unit: ClassVar[MatchUnit] = MatchUnit.PATH

    entries: tuple[OwnershipRecord, ...] = ()
    stale_after_days: int = 365
    as_of: date = date(1970, 1, 1)

    @property
    def rule_id(self) -> str:
        """Stable rule identifier."""
        return self.kind.value

    def owner_of(self, path: str) -> OwnershipRecord | None:
        """Return the last entry matching the path."""
        found: OwnershipRecord | None = None
        for entry in self.entries:
            if entry.matches(path):
                found = entry
        return found

    def evaluate(self, candidate: Candidate) -> MatchVerdict:
        """Decide whether the candidate's file has a current owner."""
        entry = self.owner_of(candidate.file_path)
        if entry is None:
            return Violation(detail=f"No code owner covers {candidate.file_path}")

        if not entry.owners:
            return Violation(
                detail=f"Ownership entry '{entry.pattern}' for {candidate.file_path} lists no owners"
            )

        if entry.last_reviewed is not None:
            horizon = self.as_of - timedelta(days=self.stale_after_days)
            if entry.last_reviewed < horizon:
                return Violation(
                    detail=(
                        f"Ownership of {candidate.file_path} by {', '.join(entry.owners)} "
                        f"was last reviewed {entry.last_reviewed.isoformat()}, "
                        f"more than {self.stale_after_days} days before {self.as_of.isoformat()}"
                    )
                )

        return CLEAN


__all__ = ["CodeOwnershipRule", "OwnershipRecord", "compile_pattern", "parse_codeowners"]
