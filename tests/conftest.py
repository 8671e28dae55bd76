"""Shared test fixtures for check-search."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence

import pytest

from check_search.models.candidate import Candidate, LineRange
from check_search.models.diagnostic import Diagnostic, Notice
from check_search.models.query import Query
from check_search.models.search import SearchHit, SearchPage
from check_search.utils.metrics import MetricsRegistry

REPO = "github.com/org/app"


class FakeSearch:
    """Scripted SearchProvider.

    Serves the given pages in order, linking them with cursors "1", "2", ...
    An exception in the page list is raised instead of serving that page.
    When a gate is set, every page after the first waits for it.
    """

    def __init__(self, pages: Sequence[Sequence[SearchHit] | Exception]) -> None:
        self.pages = list(pages)
        self.calls: list[tuple[Query, str | None]] = []
        self.gate: asyncio.Event | None = None

    async def search(self, query: Query, cursor: str | None = None) -> SearchPage:
        self.calls.append((query, cursor))
        index = 0 if cursor is None else int(cursor)
        if index > 0 and self.gate is not None:
            await self.gate.wait()

        page = self.pages[index]
        if isinstance(page, Exception):
            raise page

        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return SearchPage(hits=tuple(page), next_cursor=next_cursor)


class RecordingPublisher:
    """DiagnosticsPublisher that records every call."""

    def __init__(self) -> None:
        self.published: dict[str, list[tuple[Diagnostic, ...]]] = {}
        self.cleared: list[str] = []
        self.notices: list[tuple[str, Notice]] = []

    def publish(self, check_id: str, diagnostics: Sequence[Diagnostic]) -> None:
        self.published.setdefault(check_id, []).append(tuple(diagnostics))

    def clear(self, check_id: str) -> None:
        self.cleared.append(check_id)

    def notify(self, check_id: str, notice: Notice) -> None:
        self.notices.append((check_id, notice))

    def latest(self, check_id: str) -> tuple[Diagnostic, ...]:
        """Return the most recently published set for a check."""
        return self.published.get(check_id, [()])[-1]


def hit(
    text: str,
    *,
    repository: str = REPO,
    file_path: str = "src/app.ts",
    line: int = 1,
    end: int | None = None,
    context: Sequence[str] = (),
    context_start: int | None = None,
    revision: str = "",
    whole_file: bool = False,
) -> SearchHit:
    """Build a search hit."""
    return SearchHit(
        repository=repository,
        file_path=file_path,
        start_line=line,
        end_line=end if end is not None else line,
        text=text,
        context=tuple(context),
        context_start=context_start if context_start is not None else line,
        revision=revision,
        whole_file=whole_file,
    )


def candidate(
    text: str,
    *,
    repository: str = REPO,
    file_path: str = "src/app.ts",
    line: int = 1,
    end: int | None = None,
    context: Sequence[str] = (),
    context_start: int | None = None,
    revision: str = "",
    whole_file: bool = False,
) -> Candidate:
    """Build a candidate."""
    return Candidate(
        repository=repository,
        file_path=file_path,
        line_range=LineRange(line, end if end is not None else line),
        matched_text=text,
        context_lines=tuple(context),
        context_start=context_start if context_start is not None else line,
        revision=revision,
        whole_file=whole_file,
    )


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    """Give every test a fresh metrics registry."""
    MetricsRegistry.reset_instance()
    yield
    MetricsRegistry.reset_instance()


@pytest.fixture
def make_hit() -> Callable[..., SearchHit]:
    """Factory for search hits."""
    return hit


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    """Factory for candidates."""
    return candidate


@pytest.fixture
def fake_search() -> Callable[[Sequence[Sequence[SearchHit] | Exception]], FakeSearch]:
    """Factory for scripted search providers."""
    return FakeSearch


@pytest.fixture
def publisher() -> RecordingPublisher:
    """Publisher that records diagnostics, clears and notices."""
    return RecordingPublisher()


@pytest.fixture
def malicious_repo_names() -> list[str]:
    """Return a list of malicious repository names for testing."""
    return [
        "github.com/org/repo; rm -rf /",
        "github.com/org/repo$(whoami)",
        "github.com/org/repo`id`",
        "github.com/../../etc/passwd",
        "github.com/org/repo\nmalicious",
        "github.com/org/repo|cat /etc/passwd",
        "github.com/org/repo&& echo pwned",
        "github.com/org/repo\x00null",
    ]


@pytest.fixture
def valid_repo_names() -> list[str]:
    """Return a list of valid repository names for testing."""
    return [
        "github.com/org/repo",
        "github.com/my-org/my-project",
        "gitlab.example.com/group/sub/repo_name",
        "org/repo.js",
    ]
