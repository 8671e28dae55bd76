"""Sourcegraph search adapter using the GraphQL API.

This module implements the SearchProvider protocol on top of Sourcegraph's
GraphQL endpoint. Each stream issues its search once; the result list is
then paged through an opaque cursor so the engine can pull results lazily.
File content needed for context windows is fetched per page and cached.

Security features:
- Access tokens are sent only in the Authorization header
- Error messages are passed through SecretRedactor before they surface
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from cachetools import TTLCache

from ..._version import __version__
from ...config.schema import RetryConfig, SearchConfig
from ...models.query import MatchUnit, Query
from ...models.search import SearchHit, SearchPage
from ...utils.async_helpers import CollaboratorError, RateLimiter, RateLimitError, create_retry
from ...utils.security import SecretRedactor

if TYPE_CHECKING:
    from types import TracebackType

log = structlog.get_logger()

SEARCH_QUERY = """
query CheckSearch($query: String!) {
  search(query: $query, version: V2) {
    results {
      limitHit
      matchCount
      results {
        __typename
        ... on FileMatch {
          repository { name }
          file { path commit { oid } }
          lineMatches { lineNumber preview }
        }
      }
    }
  }
}
"""

BLOB_QUERY = """
query CheckSearchBlob($repo: String!, $rev: String!, $path: String!) {
  repository(name: $repo) {
    commit(rev: $rev) {
      blob(path: $path) { content }
    }
  }
}
"""

PING_QUERY = "query { site { productVersion } }"

# Streams abandoned before their last page expire with the cache
RESULT_SET_TTL = 600
RESULT_SET_MAX = 64


@dataclass(frozen=True)
class _Match:
    """One pageable search result."""

    repository: str
    path: str
    commit: str
    line: int | None = None  # 1-based; None for file and path results
    preview: str = ""


class SourcegraphSearch:
    """SearchProvider backed by a Sourcegraph instance.

    Example:
        async with SourcegraphSearch(config.search, config.retry) as search:
            stream = MatchStream.open(search, query)
            async for candidate in stream:
                ...
    """

    def __init__(
        self,
        config: SearchConfig,
        retry: RetryConfig | None = None,
        client: httpx.AsyncClient | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            config: Search backend configuration
            retry: Retry policy for transient transport failures
            client: HTTP client to use; one is created and owned if omitted
            redactor: Redactor for error messages
        """
        self._config = config
        self._endpoint = f"{config.url}/.api/graphql"
        self._redactor = redactor or SecretRedactor()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._limiter = RateLimiter(
            rate=config.requests_per_second,
            capacity=max(1.0, config.requests_per_second),
        )

        retry = retry or RetryConfig()
        self._post = create_retry(
            max_attempts=retry.max_attempts,
            min_wait=retry.initial_delay,
            max_wait=retry.max_delay,
        )(self._post_once)

        self._results: TTLCache[str, tuple[_Match, ...]] = TTLCache(
            maxsize=RESULT_SET_MAX,
            ttl=RESULT_SET_TTL,
        )
        # (repository, commit, path) -> file lines
        self._content: TTLCache[tuple[str, str, str], tuple[str, ...]] = TTLCache(
            maxsize=512,
            ttl=max(config.content_cache_ttl, 1),
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"check-search/{__version__}",
        }
        if self._config.access_token:
            headers["Authorization"] = f"token {self._config.access_token}"
        return headers

    async def search(self, query: Query, cursor: str | None = None) -> SearchPage:
        """Fetch one page of results for a query.

        Args:
            query: Query to run
            cursor: Continuation from the previous page, None for the first

        Returns:
            One page of hits and the cursor for the next page

        Raises:
            CollaboratorError: If the backend fails or the cursor is unknown
        """
        if cursor is None:
            token = uuid.uuid4().hex
            matches = await self._run_search(query)
            self._results[token] = matches
            offset = 0
        else:
            token, offset = self._parse_cursor(cursor)
            found = self._results.get(token)
            if found is None:
                raise CollaboratorError("Search cursor is unknown or has expired")
            matches = found

        batch = matches[offset : offset + self._config.page_size]
        hits = [await self._to_hit(match, query.match_unit) for match in batch]

        next_offset = offset + len(batch)
        if next_offset >= len(matches):
            self._results.pop(token, None)
            return SearchPage(hits=tuple(hits), next_cursor=None)
        return SearchPage(hits=tuple(hits), next_cursor=f"{token}:{next_offset}")

    async def ping(self) -> str:
        """Check that the backend is reachable and the token is accepted.

        Returns:
            The Sourcegraph product version

        Raises:
            CollaboratorError: If the backend cannot be reached
        """
        data = await self._graphql(PING_QUERY, {})
        return str(data.get("site", {}).get("productVersion", "unknown"))

    async def aclose(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SourcegraphSearch:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @staticmethod
    def _parse_cursor(cursor: str) -> tuple[str, int]:
        token, _, offset = cursor.rpartition(":")
        if not token or not offset.isdigit():
            raise CollaboratorError(f"Malformed search cursor: {cursor!r}")
        return token, int(offset)

    async def _run_search(self, query: Query) -> tuple[_Match, ...]:
        log.debug("sourcegraph_search", query=query.text)
        data = await self._graphql(SEARCH_QUERY, {"query": query.text})

        try:
            results = data["search"]["results"]
            items = results["results"]
        except (KeyError, TypeError) as e:
            raise CollaboratorError(f"Unexpected search response shape: {e}") from e

        if results.get("limitHit"):
            log.info("search_limit_hit", match_count=results.get("matchCount"))

        matches: list[_Match] = []
        for item in items:
            if item.get("__typename") != "FileMatch":
                continue
            repository = item["repository"]["name"]
            path = item["file"]["path"]
            commit = (item["file"].get("commit") or {}).get("oid", "")

            if query.match_unit is MatchUnit.LINE:
                for line_match in item.get("lineMatches") or []:
                    matches.append(
                        _Match(
                            repository=repository,
                            path=path,
                            commit=commit,
                            # Sourcegraph line numbers are 0-based
                            line=int(line_match["lineNumber"]) + 1,
                            preview=line_match.get("preview", ""),
                        )
                    )
            else:
                matches.append(_Match(repository=repository, path=path, commit=commit))

        log.info("sourcegraph_search_complete", results=len(matches))
        return tuple(matches)

    async def _to_hit(self, match: _Match, unit: MatchUnit) -> SearchHit:
        if unit is MatchUnit.PATH:
            return SearchHit(
                repository=match.repository,
                file_path=match.path,
                start_line=1,
                end_line=1,
                text=match.path,
                revision=match.commit,
            )

        if unit is MatchUnit.FILE:
            lines = await self._file_lines(match)
            return SearchHit(
                repository=match.repository,
                file_path=match.path,
                start_line=1,
                end_line=max(len(lines), 1),
                text="\n".join(lines),
                context=lines,
                context_start=1,
                revision=match.commit,
                whole_file=True,
            )

        line = match.line or 1
        context: tuple[str, ...] = ()
        context_start = line
        text = match.preview
        whole_file = False
        if self._config.context_lines > 0:
            lines = await self._file_lines(match)
            if line <= len(lines):
                context_start = max(1, line - self._config.context_lines)
                end = min(len(lines), line + self._config.context_lines)
                context = lines[context_start - 1 : end]
                text = lines[line - 1]
                whole_file = context_start == 1 and end == len(lines)

        return SearchHit(
            repository=match.repository,
            file_path=match.path,
            start_line=line,
            end_line=line,
            text=text,
            context=context,
            context_start=context_start,
            revision=match.commit,
            whole_file=whole_file,
        )

    async def _file_lines(self, match: _Match) -> tuple[str, ...]:
        key = (match.repository, match.commit, match.path)
        cached = self._content.get(key)
        if cached is not None:
            return cached

        data = await self._graphql(
            BLOB_QUERY,
            {"repo": match.repository, "rev": match.commit or "HEAD", "path": match.path},
        )
        blob = ((data.get("repository") or {}).get("commit") or {}).get("blob")
        if blob is None:
            raise CollaboratorError(f"File {match.repository}/{match.path} not found")

        lines = tuple(str(blob.get("content") or "").splitlines())
        self._content[key] = lines
        return lines

    async def _graphql(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL request and return its data object."""
        try:
            response = await self._post({"query": document, "variables": variables})
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e
        except httpx.HTTPError as e:
            message = self._redactor.redact(str(e)) or type(e).__name__
            log.warning("sourcegraph_transport_error", error=message)
            raise CollaboratorError(f"Search backend unreachable: {message}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise CollaboratorError("Search backend returned invalid JSON") from e

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise CollaboratorError(f"Search backend error: {self._redactor.redact(messages)}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise CollaboratorError("Search backend response has no data")
        return data

    async def _post_once(self, body: dict[str, Any]) -> httpx.Response:
        # Every attempt, retries included, waits for the limiter
        async with self._limiter:
            response = await self._client.post(self._endpoint, json=body, headers=self._headers())
        response.raise_for_status()
        return response

    def _status_error(self, response: httpx.Response) -> CollaboratorError:
        status = response.status_code
        log.warning("sourcegraph_http_error", status=status)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                "Search backend rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status in (401, 403):
            return CollaboratorError(f"Search backend rejected the access token (HTTP {status})")
        return CollaboratorError(f"Search backend returned HTTP {status}")
