"""Collection of verdicts into an ordered, deduplicated diagnostic set."""

from __future__ import annotations

from threading import Lock

import structlog

from check_search.models.candidate import Candidate, LineRange
from check_search.models.diagnostic import Diagnostic, Location, Severity
from check_search.models.verdict import Clean, Inconclusive, MatchVerdict, Violation

log = structlog.get_logger()

DiagnosticKey = tuple[str, str, str, LineRange]


def _sort_key(diagnostic: Diagnostic) -> tuple[str, str, int, int, str]:
    location = diagnostic.location
    return (
        location.repository,
        location.file_path,
        location.line_range.start,
        location.line_range.end,
        diagnostic.rule_id,
    )


class DiagnosticAggregator:
    """Accumulates verdicts for one check run.

    Only Violation verdicts become diagnostics. A diagnostic whose key
    (rule_id, repository, file_path, line_range) was already pushed replaces
    the earlier one. Snapshots are ordered by location and never observe a
    half-applied push.

    Example:
        aggregator = DiagnosticAggregator("import-star", Severity.WARNING)
        aggregator.push(rule.evaluate(candidate), candidate)
        publisher.publish("import-star", aggregator.snapshot())
    """

    def __init__(self, rule_id: str, severity: Severity = Severity.WARNING) -> None:
        self._rule_id = rule_id
        self._severity = severity
        self._lock = Lock()
        self._diagnostics: dict[DiagnosticKey, Diagnostic] = {}
        self._inconclusive: list[tuple[Candidate, Inconclusive]] = []
        self._clean = 0
        self._sequence = 0

    @property
    def rule_id(self) -> str:
        return self._rule_id

    @property
    def severity(self) -> Severity:
        return self._severity

    def push(self, verdict: MatchVerdict, candidate: Candidate) -> None:
        """Record one verdict for a candidate."""
        with self._lock:
            if isinstance(verdict, Violation):
                self._sequence += 1
                diagnostic = Diagnostic(
                    rule_id=self._rule_id,
                    severity=self._severity,
                    location=Location(
                        repository=candidate.repository,
                        file_path=candidate.file_path,
                        line_range=verdict.line_range or candidate.line_range,
                    ),
                    message=verdict.detail,
                    fix=verdict.fix,
                    revision=candidate.revision,
                    ordinal=self._sequence,
                )
                if diagnostic.key in self._diagnostics:
                    log.debug("diagnostic_replaced", location=str(diagnostic.location))
                self._diagnostics[diagnostic.key] = diagnostic
            elif isinstance(verdict, Inconclusive):
                self._inconclusive.append((candidate, verdict))
            elif isinstance(verdict, Clean):
                self._clean += 1

    def snapshot(self) -> tuple[Diagnostic, ...]:
        """Return the current diagnostics in location order."""
        with self._lock:
            return tuple(sorted(self._diagnostics.values(), key=_sort_key))

    def by_file(self) -> dict[tuple[str, str], tuple[Diagnostic, ...]]:
        """Group the current diagnostics by (repository, file_path)."""
        grouped: dict[tuple[str, str], list[Diagnostic]] = {}
        for diagnostic in self.snapshot():
            key = (diagnostic.location.repository, diagnostic.location.file_path)
            grouped.setdefault(key, []).append(diagnostic)
        return {key: tuple(items) for key, items in grouped.items()}

    def by_repository(self) -> dict[str, tuple[Diagnostic, ...]]:
        """Group the current diagnostics by repository."""
        grouped: dict[str, list[Diagnostic]] = {}
        for diagnostic in self.snapshot():
            grouped.setdefault(diagnostic.location.repository, []).append(diagnostic)
        return {key: tuple(items) for key, items in grouped.items()}

    def inconclusive(self) -> tuple[tuple[Candidate, Inconclusive], ...]:
        """Return the Inconclusive verdicts recorded so far, in push order."""
        with self._lock:
            return tuple(self._inconclusive)

    @property
    def counts(self) -> dict[str, int]:
        """Return verdict counts for this run."""
        with self._lock:
            return {
                "diagnostics": len(self._diagnostics),
                "violations": self._sequence,
                "inconclusive": len(self._inconclusive),
                "clean": self._clean,
            }

    def reset(self) -> None:
        """Forget everything recorded so far."""
        with self._lock:
            self._diagnostics.clear()
            self._inconclusive.clear()
            self._clean = 0
            self._sequence = 0
