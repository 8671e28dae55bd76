"""Tests for MatchStream."""

from __future__ import annotations

from typing import Any

import pytest

from check_search.core.match_stream import MatchStream, candidate_from_hit
from check_search.models.candidate import LineRange
from check_search.models.query import Query
from check_search.models.search import SearchHit
from check_search.utils.async_helpers import CollaboratorError
from check_search.utils.metrics import get_metrics

QUERY = Query(text="repo:^a/b$ count:10 content:x", max_results=10)


async def collect(stream: MatchStream) -> list[Any]:
    return [candidate async for candidate in stream]


class TestCandidateFromHit:
    """Test hit normalization."""

    def test_fields(self, make_hit: Any) -> None:
        """Test every hit field is carried into the candidate."""
        hit = make_hit(
            "import * as x from 'x'",
            file_path="/src/a.ts",
            line=3,
            context=["a", "b", "c"],
            context_start=2,
            revision="abc123",
            whole_file=True,
        )
        candidate = candidate_from_hit(hit)
        assert candidate.file_path == "src/a.ts"
        assert candidate.line_range == LineRange(3, 3)
        assert candidate.context_lines == ("a", "b", "c")
        assert candidate.context_start == 2
        assert candidate.revision == "abc123"
        assert candidate.whole_file

    def test_invalid_range(self) -> None:
        """Test a hit whose end precedes its start is a collaborator error."""
        hit = SearchHit(repository="a/b", file_path="x", start_line=5, end_line=2, text="")
        with pytest.raises(CollaboratorError, match="invalid lines"):
            candidate_from_hit(hit)


class TestMatchStream:
    """Test paging, limits, dedupe and failures."""

    async def test_pages_are_fetched_lazily(self, make_hit: Any, fake_search: Any) -> None:
        """Test the next page is only requested once the current one is consumed."""
        search = fake_search([[make_hit("a", line=1)], [make_hit("b", line=2)]])
        stream = MatchStream.open(search, QUERY)

        first = await stream.__anext__()
        assert first.matched_text == "a"
        assert len(search.calls) == 1

        second = await stream.__anext__()
        assert second.matched_text == "b"
        assert [cursor for _, cursor in search.calls] == [None, "1"]
        assert stream.pages_fetched == 2

    async def test_stops_when_cursor_is_none(self, make_hit: Any, fake_search: Any) -> None:
        """Test the stream ends after the last page."""
        search = fake_search([[make_hit("a", line=1), make_hit("b", line=2)]])
        stream = MatchStream.open(search, QUERY)

        candidates = await collect(stream)

        assert [c.matched_text for c in candidates] == ["a", "b"]
        assert stream.closed

    async def test_stops_at_max_results(self, make_hit: Any, fake_search: Any) -> None:
        """Test no more than max_results candidates are produced."""
        search = fake_search(
            [[make_hit("a", line=1), make_hit("b", line=2)], [make_hit("c", line=3)]]
        )
        stream = MatchStream.open(search, Query(text="q", max_results=2))

        candidates = await collect(stream)

        assert len(candidates) == 2
        assert len(search.calls) == 1

    async def test_duplicates_are_dropped(self, make_hit: Any, fake_search: Any) -> None:
        """Test a hit with an already-seen identity is dropped."""
        search = fake_search([[make_hit("a", line=1)], [make_hit("a again", line=1)]])
        stream = MatchStream.open(search, QUERY)

        candidates = await collect(stream)

        assert [c.matched_text for c in candidates] == ["a"]
        assert get_metrics().duplicate_hits.total() == 1

    async def test_not_restartable(self, make_hit: Any, fake_search: Any) -> None:
        """Test an exhausted stream stays exhausted."""
        search = fake_search([[make_hit("a")]])
        stream = MatchStream.open(search, QUERY)
        await collect(stream)

        assert await collect(stream) == []
        assert len(search.calls) == 1

    async def test_error_after_prefix(self, make_hit: Any, fake_search: Any) -> None:
        """Test a failure surfaces after the already-yielded prefix."""
        search = fake_search([[make_hit("a", line=1)], CollaboratorError("boom")])
        stream = MatchStream.open(search, QUERY)
        seen: list[str] = []

        with pytest.raises(CollaboratorError, match="boom"):
            async for candidate in stream:
                seen.append(candidate.matched_text)

        assert seen == ["a"]
        assert stream.closed
        assert get_metrics().search_errors.total() == 1

    async def test_unexpected_errors_are_wrapped(self, fake_search: Any) -> None:
        """Test provider exceptions become CollaboratorError."""
        search = fake_search([RuntimeError("socket closed")])
        stream = MatchStream.open(search, QUERY)

        with pytest.raises(CollaboratorError, match="socket closed"):
            await collect(stream)

    async def test_repeating_cursor(self, make_hit: Any) -> None:
        """Test a provider that never advances its cursor is an error."""

        class StuckSearch:
            async def search(self, query: Query, cursor: str | None = None) -> Any:
                from check_search.models.search import SearchPage

                return SearchPage(hits=(make_hit("a", line=1),), next_cursor="same")

        stream = MatchStream.open(StuckSearch(), QUERY)
        with pytest.raises(CollaboratorError, match="repeating cursor"):
            await collect(stream)

    async def test_aclose(self, make_hit: Any, fake_search: Any) -> None:
        """Test a closed stream yields nothing further."""
        search = fake_search([[make_hit("a", line=1)], [make_hit("b", line=2)]])
        stream = MatchStream.open(search, QUERY)
        await stream.__anext__()

        await stream.aclose()

        assert stream.closed
        assert await collect(stream) == []
        assert len(search.calls) == 1
