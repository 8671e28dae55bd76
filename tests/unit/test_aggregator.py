"""Tests for DiagnosticAggregator."""

from __future__ import annotations

from typing import Any

from check_search.core.aggregator import DiagnosticAggregator
from check_search.models.candidate import LineRange
from check_search.models.diagnostic import Severity
from check_search.models.verdict import CLEAN, FixSuggestion, Inconclusive, Violation


class TestDiagnosticAggregator:
    """Test verdict accumulation."""

    def test_only_violations_become_diagnostics(self, make_candidate: Any) -> None:
        """Test Clean and Inconclusive verdicts are counted but not reported."""
        aggregator = DiagnosticAggregator("import-star")
        aggregator.push(Violation(detail="bad"), make_candidate("a", line=1))
        aggregator.push(CLEAN, make_candidate("b", line=2))
        aggregator.push(Inconclusive(reason="cut off"), make_candidate("c", line=3))

        snapshot = aggregator.snapshot()

        assert len(snapshot) == 1
        assert snapshot[0].message == "bad"
        assert snapshot[0].rule_id == "import-star"
        assert snapshot[0].severity is Severity.WARNING
        assert aggregator.counts == {
            "diagnostics": 1,
            "violations": 1,
            "inconclusive": 1,
            "clean": 1,
        }
        [(candidate, verdict)] = aggregator.inconclusive()
        assert candidate.matched_text == "c"
        assert verdict.reason == "cut off"

    def test_duplicate_location_replaces(self, make_candidate: Any) -> None:
        """Test a second violation at the same location replaces the first."""
        aggregator = DiagnosticAggregator("import-star")
        aggregator.push(Violation(detail="first"), make_candidate("a", line=5))
        aggregator.push(Violation(detail="second"), make_candidate("a", line=5))

        [diagnostic] = aggregator.snapshot()

        assert diagnostic.message == "second"
        assert diagnostic.ordinal == 2
        assert aggregator.counts["violations"] == 2

    def test_snapshot_is_location_ordered(self, make_candidate: Any) -> None:
        """Test ordering by repository, file and line regardless of push order."""
        aggregator = DiagnosticAggregator("import-star", Severity.ERROR)
        aggregator.push(Violation(detail="3"), make_candidate("x", file_path="b.ts", line=1))
        aggregator.push(Violation(detail="2"), make_candidate("x", file_path="a.ts", line=9))
        aggregator.push(Violation(detail="1"), make_candidate("x", file_path="a.ts", line=2))
        aggregator.push(
            Violation(detail="0"),
            make_candidate("x", repository="github.com/aaa/zzz", file_path="z.ts"),
        )

        assert [d.message for d in aggregator.snapshot()] == ["0", "1", "2", "3"]
        assert all(d.severity is Severity.ERROR for d in aggregator.snapshot())

    def test_verdict_range_narrows_location(self, make_candidate: Any) -> None:
        """Test a violation's own line range takes precedence over the candidate's."""
        aggregator = DiagnosticAggregator("travis-go")
        fix = FixSuggestion(description="pin", replacement='go: "1.14.x"', line_range=LineRange(4, 4))
        aggregator.push(
            Violation(detail="old", fix=fix, line_range=LineRange(4, 4)),
            make_candidate("config", line=1, end=20, revision="abc"),
        )

        [diagnostic] = aggregator.snapshot()

        assert diagnostic.location.line_range == LineRange(4, 4)
        assert diagnostic.fix == fix
        assert diagnostic.has_fix
        assert diagnostic.revision == "abc"

    def test_grouping(self, make_candidate: Any) -> None:
        """Test grouping by file and by repository."""
        aggregator = DiagnosticAggregator("import-star")
        aggregator.push(Violation(detail="a"), make_candidate("x", file_path="a.ts", line=1))
        aggregator.push(Violation(detail="b"), make_candidate("x", file_path="a.ts", line=2))
        aggregator.push(
            Violation(detail="c"),
            make_candidate("x", repository="github.com/org/web", file_path="a.ts"),
        )

        by_file = aggregator.by_file()
        assert len(by_file[("github.com/org/app", "a.ts")]) == 2
        assert len(by_file[("github.com/org/web", "a.ts")]) == 1
        assert set(aggregator.by_repository()) == {"github.com/org/app", "github.com/org/web"}

    def test_snapshot_is_immutable_copy(self, make_candidate: Any) -> None:
        """Test later pushes do not change an earlier snapshot."""
        aggregator = DiagnosticAggregator("import-star")
        aggregator.push(Violation(detail="a"), make_candidate("x", line=1))
        before = aggregator.snapshot()

        aggregator.push(Violation(detail="b"), make_candidate("x", line=2))

        assert len(before) == 1
        assert len(aggregator.snapshot()) == 2

    def test_reset(self, make_candidate: Any) -> None:
        """Test reset forgets diagnostics, counts and ordinals."""
        aggregator = DiagnosticAggregator("import-star")
        aggregator.push(Violation(detail="a"), make_candidate("x"))
        aggregator.push(CLEAN, make_candidate("y"))

        aggregator.reset()
        aggregator.push(Violation(detail="b"), make_candidate("x", line=7))

        [diagnostic] = aggregator.snapshot()
        assert diagnostic.ordinal == 1
        assert aggregator.counts["clean"] == 0
