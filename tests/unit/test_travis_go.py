"""Tests for the Travis Go version rule."""

from __future__ import annotations

from typing import Any

import pytest

from check_search.core.rules import TravisGoRule, parse_version
from check_search.models.candidate import Candidate, LineRange
from check_search.models.verdict import Clean, Inconclusive, Violation

RULE = TravisGoRule()


def travis_file(make_candidate: Any, text: str) -> Candidate:
    lines = text.splitlines()
    return make_candidate(
        ".travis.yml",
        file_path=".travis.yml",
        line=1,
        context=lines,
        context_start=1,
    )


class TestParseVersion:
    """Test Go version parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1.14", (1, 14)),
            ("1.14.x", (1, 14)),
            ("v1.13.4", (1, 13)),
            ("1", (1, 0)),
            ("tip", None),
            ("1.x.2", None),
        ],
    )
    def test_parse(self, value: str, expected: tuple[int, int] | None) -> None:
        """Test accepted and rejected version spellings."""
        assert parse_version(value) == expected


class TestTravisGoRule:
    """Test verdicts for Travis configuration files."""

    def test_pinned_supported_version(self, make_candidate: Any) -> None:
        """Test a quoted, supported version is clean."""
        verdict = RULE.evaluate(travis_file(make_candidate, 'language: go\ngo: "1.15"\n'))
        assert isinstance(verdict, Clean)

    def test_other_language_is_clean(self, make_candidate: Any) -> None:
        """Test non-Go projects are not judged."""
        verdict = RULE.evaluate(travis_file(make_candidate, "language: python\npython: 3.8\n"))
        assert isinstance(verdict, Clean)

    def test_unquoted_float_version(self, make_candidate: Any) -> None:
        """Test versions YAML reads as a different float are flagged with a fix."""
        verdict = RULE.evaluate(travis_file(make_candidate, "language: go\ngo: 1.20\n"))

        assert isinstance(verdict, Violation)
        assert "unquoted version 1.20" in verdict.detail
        assert verdict.line_range == LineRange(2, 2)
        assert verdict.fix is not None
        assert verdict.fix.replacement == 'go: "1.14.x"'
        assert verdict.fix.line_range == LineRange(2, 2)

    def test_old_version(self, make_candidate: Any) -> None:
        """Test versions older than the minimum are flagged."""
        verdict = RULE.evaluate(travis_file(make_candidate, "language: go\ngo: 1.12.x\n"))

        assert isinstance(verdict, Violation)
        assert "older than the minimum 1.13" in verdict.detail

    def test_deprecated_version_in_list(self, make_candidate: Any) -> None:
        """Test a deprecated entry in a version list replaces the whole block."""
        text = 'language: go\ngo:\n  - "1.14.x"\n  - tip\nscript: make test\n'
        verdict = RULE.evaluate(travis_file(make_candidate, text))

        assert isinstance(verdict, Violation)
        assert "'tip' is deprecated" in verdict.detail
        assert verdict.fix is not None
        assert verdict.fix.line_range == LineRange(2, 4)

    def test_missing_go_version(self, make_candidate: Any) -> None:
        """Test a Go project without a version gets one inserted."""
        verdict = RULE.evaluate(travis_file(make_candidate, "language: go\nscript: make\n"))

        assert isinstance(verdict, Violation)
        assert "missing required field(s): go" in verdict.detail
        assert verdict.line_range == LineRange(1, 1)
        assert verdict.fix is not None
        assert verdict.fix.replacement == 'language: go\ngo: "1.14.x"'
        assert verdict.fix.line_range == LineRange(1, 1)

    def test_missing_language_has_no_fix(self, make_candidate: Any) -> None:
        """Test a missing language field is reported without a fix."""
        verdict = RULE.evaluate(travis_file(make_candidate, 'go: "1.15"\n'))

        assert isinstance(verdict, Violation)
        assert "language" in verdict.detail
        assert verdict.fix is None

    def test_problems_are_combined(self, make_candidate: Any) -> None:
        """Test one violation lists every problem in the file."""
        verdict = RULE.evaluate(travis_file(make_candidate, "go:\n  - tip\n  - 1.9\n"))

        assert isinstance(verdict, Violation)
        assert "language" in verdict.detail
        assert "'tip' is deprecated" in verdict.detail
        assert "1.9 is older" in verdict.detail

    @pytest.mark.parametrize("text", ["language: [go\n", "- language\n- go\n", "   \n"])
    def test_undecidable_content(self, make_candidate: Any, text: str) -> None:
        """Test empty, malformed or non-mapping content is inconclusive."""
        candidate = make_candidate(
            ".travis.yml", file_path=".travis.yml", context=text.split("\n"), context_start=1
        )
        assert isinstance(RULE.evaluate(candidate), Inconclusive)
