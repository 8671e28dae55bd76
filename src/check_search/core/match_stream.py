"""Lazy normalization of search results into candidates.

A MatchStream wraps exactly one query. It pulls pages from the search
provider on demand, converts each hit into a Candidate, drops duplicate
hits, and stops after the query's max result count. It is not restartable:
reopening means issuing a new query through MatchStream.open().
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import structlog

from check_search.models.candidate import Candidate, LineRange
from check_search.models.search import SearchHit
from check_search.utils.async_helpers import CollaboratorError
from check_search.utils.metrics import Timer, get_metrics

if TYPE_CHECKING:
    from check_search.interfaces.search import SearchProvider
    from check_search.models.query import Query

log = structlog.get_logger()


def candidate_from_hit(hit: SearchHit) -> Candidate:
    """Normalize one search hit.

    Raises:
        CollaboratorError: If the hit carries an impossible line range
    """
    try:
        line_range = LineRange(hit.start_line, hit.end_line)
    except ValueError as e:
        raise CollaboratorError(
            f"Search hit {hit.repository}/{hit.file_path} has invalid lines: {e}"
        ) from e

    return Candidate(
        repository=hit.repository,
        file_path=hit.file_path.lstrip("/"),
        line_range=line_range,
        matched_text=hit.text,
        context_lines=tuple(hit.context),
        context_start=hit.context_start,
        revision=hit.revision,
        whole_file=hit.whole_file,
    )


class MatchStream:
    """Finite, non-restartable async sequence of candidates for one query.

    Example:
        stream = MatchStream.open(search, query)
        try:
            async for candidate in stream:
                verdict = rule.evaluate(candidate)
        finally:
            await stream.aclose()
    """

    def __init__(self, search: SearchProvider, query: Query) -> None:
        self._search = search
        self._query = query
        self._seen: set[tuple[str, str, LineRange, str]] = set()
        self._iterator: AsyncGenerator[Candidate, None] | None = None
        self._produced = 0
        self._pages = 0
        self._closed = False

    @classmethod
    def open(cls, search: SearchProvider, query: Query) -> MatchStream:
        """Open a new stream; each call issues the query afresh."""
        return cls(search, query)

    @property
    def query(self) -> Query:
        """Return the query this stream consumes."""
        return self._query

    @property
    def produced(self) -> int:
        """Number of candidates yielded so far."""
        return self._produced

    @property
    def pages_fetched(self) -> int:
        """Number of result pages requested so far."""
        return self._pages

    @property
    def closed(self) -> bool:
        """Return True once the stream is exhausted or closed."""
        return self._closed

    def __aiter__(self) -> MatchStream:
        return self

    async def __anext__(self) -> Candidate:
        if self._closed:
            raise StopAsyncIteration
        if self._iterator is None:
            self._iterator = self._generate()
        try:
            return await anext(self._iterator)
        except StopAsyncIteration:
            self._closed = True
            raise
        except BaseException:
            # Errors end the stream; the prefix already yielded stays valid
            self._closed = True
            raise

    async def aclose(self) -> None:
        """Stop consuming and release the underlying generator."""
        self._closed = True
        if self._iterator is not None:
            iterator, self._iterator = self._iterator, None
            await iterator.aclose()

    async def _generate(self) -> AsyncGenerator[Candidate, None]:
        metrics = get_metrics()
        cursor: str | None = None
        limit = self._query.max_results

        while True:
            metrics.search_requests.inc()
            try:
                with Timer(metrics.search_duration):
                    page = await self._search.search(self._query, cursor)
            except CollaboratorError:
                metrics.search_errors.inc()
                raise
            except Exception as e:
                metrics.search_errors.inc()
                raise CollaboratorError(f"Search failed: {e}") from e

            self._pages += 1
            log.debug(
                "search_page_fetched",
                page=self._pages,
                hits=len(page.hits),
                last=page.is_last,
            )

            for hit in page.hits:
                candidate = candidate_from_hit(hit)
                if candidate.identity in self._seen:
                    metrics.duplicate_hits.inc()
                    log.debug(
                        "duplicate_hit_dropped",
                        repository=candidate.repository,
                        file=candidate.file_path,
                        lines=str(candidate.line_range),
                    )
                    continue
                self._seen.add(candidate.identity)

                self._produced += 1
                yield candidate

                if self._produced >= limit:
                    log.info("result_limit_reached", limit=limit)
                    return

            if page.next_cursor is None:
                return
            if page.next_cursor == cursor:
                raise CollaboratorError("Search backend returned a repeating cursor")
            cursor = page.next_cursor
