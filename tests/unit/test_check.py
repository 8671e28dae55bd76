"""Tests for Check lifecycle and run behavior."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from check_search.core.check import Check, CheckState, PresentationPolicy
from check_search.core.rules import ImportStarRule
from check_search.models.diagnostic import NoticeLevel, Severity
from check_search.models.query import RepositoryScope, SearchCriteria
from check_search.utils.async_helpers import CheckStateError, CollaboratorError, InvalidCriteria

REPO = "github.com/org/app"
CRITERIA = SearchCriteria(
    repositories=RepositoryScope(include=(REPO,)),
    content_patterns=ImportStarRule.content_patterns,
)
STAR = "import * as x from 'x'"
NAMED = "import { a } from 'x'"


def make_check(search: Any, publisher: Any, **kwargs: Any) -> Check:
    return Check("import-star", ImportStarRule(), kwargs.pop("criteria", CRITERIA), search,
                 publisher, **kwargs)


async def wait_for(condition: Any) -> None:
    for _ in range(1000):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class TestCheckRun:
    """Test a full run against scripted search results."""

    async def test_completes_with_diagnostics(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test violations are published and the final set is ordered."""
        search = fake_search(
            [
                [make_hit(STAR, file_path="b.ts", line=3), make_hit(NAMED, line=4)],
                [make_hit(STAR, file_path="a.ts", line=1)],
            ]
        )
        check = make_check(search, publisher)

        state = await check.start()

        assert state is CheckState.COMPLETED
        assert check.state is CheckState.COMPLETED
        assert [d.location.file_path for d in publisher.latest("import-star")] == ["a.ts", "b.ts"]
        assert check.diagnostics == publisher.latest("import-star")
        assert check.aggregator.counts["clean"] == 1
        assert check.error is None

    async def test_publishes_incrementally(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test each violation is published as soon as it is found."""
        search = fake_search([[make_hit(STAR, line=1), make_hit(STAR, line=2)]])
        check = make_check(search, publisher)

        await check.start()

        sizes = [len(published) for published in publisher.published["import-star"]]
        assert sizes[:2] == [1, 2]
        assert sizes[-1] == 2

    async def test_no_matches(self, fake_search: Any, publisher: Any) -> None:
        """Test a run with no hits completes with an empty set."""
        check = make_check(fake_search([[]]), publisher)

        assert await check.start() is CheckState.COMPLETED
        assert publisher.latest("import-star") == ()
        assert publisher.notices == []

    async def test_severity_from_policy(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test diagnostics take the policy's severity."""
        check = make_check(
            fake_search([[make_hit(STAR)]]),
            publisher,
            policy=PresentationPolicy(severity=Severity.ERROR),
        )

        await check.start()

        assert publisher.latest("import-star")[0].severity is Severity.ERROR

    async def test_restart_uses_fresh_run(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test a restarted check does not carry over earlier diagnostics."""
        search = fake_search([[make_hit(STAR)]])
        check = make_check(search, publisher)
        await check.start()

        search.pages = [[]]
        assert await check.start() is CheckState.COMPLETED

        assert check.diagnostics == ()
        assert publisher.latest("import-star") == ()
        assert len(search.calls) == 2

    @pytest.mark.parametrize(
        ("state", "terminal"),
        [
            (CheckState.REGISTERED, False),
            (CheckState.RUNNING, False),
            (CheckState.COMPLETED, True),
            (CheckState.CANCELLED, True),
            (CheckState.FAILED, True),
        ],
    )
    def test_terminal_states(self, state: CheckState, terminal: bool) -> None:
        """Test only the states a run ends in are terminal."""
        assert state.is_terminal is terminal


class TestCheckFailures:
    """Test invalid criteria and search failures."""

    async def test_invalid_criteria(self, fake_search: Any, publisher: Any) -> None:
        """Test invalid criteria fail the check with an error notice."""
        search = fake_search([[]])
        check = make_check(
            search, publisher, criteria=SearchCriteria(repositories=RepositoryScope())
        )

        with pytest.raises(InvalidCriteria):
            await check.start()

        assert check.state is CheckState.FAILED
        assert isinstance(check.error, InvalidCriteria)
        assert search.calls == []
        assert publisher.latest("import-star") == ()
        [(check_id, notice)] = publisher.notices
        assert check_id == "import-star"
        assert notice.level is NoticeLevel.ERROR
        assert "invalid search criteria" in notice.message

    async def test_search_failure_keeps_partial_results(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test a failing page keeps earlier diagnostics and adds one warning."""
        search = fake_search([[make_hit(STAR)], CollaboratorError("backend down")])
        check = make_check(search, publisher)

        state = await check.start()

        assert state is CheckState.FAILED
        assert isinstance(check.error, CollaboratorError)
        assert len(publisher.latest("import-star")) == 1
        [(_, notice)] = publisher.notices
        assert notice.level is NoticeLevel.WARNING
        assert "1 partial result(s)" in notice.message

    async def test_search_failure_without_results(
        self, fake_search: Any, publisher: Any
    ) -> None:
        """Test a failure before any diagnostic is an error notice."""
        check = make_check(fake_search([CollaboratorError("nope")]), publisher)

        assert await check.start() is CheckState.FAILED

        [(_, notice)] = publisher.notices
        assert notice.level is NoticeLevel.ERROR


class TestInconclusive:
    """Test the inconclusive reporting policy."""

    async def test_reported_as_notice(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test inconclusive verdicts become located info notices."""
        search = fake_search([[make_hit("import * as pkg", line=3, context=["import * as pkg"])]])
        check = make_check(search, publisher)

        await check.start()

        assert publisher.latest("import-star") == ()
        [(_, notice)] = publisher.notices
        assert notice.level is NoticeLevel.INFO
        assert notice.location is not None
        assert notice.location.line_range.start == 3
        assert check.aggregator.counts["inconclusive"] == 1

    async def test_dropped(self, make_hit: Any, fake_search: Any, publisher: Any) -> None:
        """Test the drop policy only counts inconclusive verdicts."""
        search = fake_search([[make_hit("import * as pkg", line=3, context=["import * as pkg"])]])
        check = make_check(
            search, publisher, policy=PresentationPolicy(report_inconclusive=False)
        )

        await check.start()

        assert publisher.notices == []
        assert check.aggregator.counts["inconclusive"] == 1


class TestCheckLifecycle:
    """Test enabling, cancellation and disposal."""

    async def test_dispose_cancels_run(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test disposal stops the run and clears the host."""
        search = fake_search([[make_hit(STAR, line=1)], [make_hit(STAR, line=2)]])
        search.gate = asyncio.Event()
        check = make_check(search, publisher)

        task = asyncio.create_task(check.start())
        await wait_for(lambda: "import-star" in publisher.published)
        assert check.state is CheckState.RUNNING

        check.dispose()
        search.gate.set()
        state = await task

        assert state is CheckState.CANCELLED
        assert publisher.cleared == ["import-star"]
        assert len(check.diagnostics) == 1

    async def test_disposed_check_cannot_start(
        self, fake_search: Any, publisher: Any
    ) -> None:
        """Test starting a disposed check is an error."""
        check = make_check(fake_search([[]]), publisher)
        check.dispose()

        with pytest.raises(CheckStateError, match="disposed"):
            await check.start()

    async def test_disable_running_check(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test disabling a running check cancels it."""
        search = fake_search([[make_hit(STAR, line=1)], [make_hit(STAR, line=2)]])
        search.gate = asyncio.Event()
        check = make_check(search, publisher)

        task = asyncio.create_task(check.start())
        await wait_for(lambda: "import-star" in publisher.published)
        check.set_enabled(False)

        assert await task is CheckState.CANCELLED
        assert publisher.cleared == ["import-star"]
        with pytest.raises(CheckStateError, match="disabled"):
            await check.start()

    async def test_start_while_running(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test a second start while running returns without a second search."""
        search = fake_search([[make_hit(STAR, line=1)], [make_hit(STAR, line=2)]])
        search.gate = asyncio.Event()
        check = make_check(search, publisher)

        task = asyncio.create_task(check.start())
        await wait_for(lambda: "import-star" in publisher.published)

        assert await check.start() is CheckState.RUNNING

        search.gate.set()
        assert await task is CheckState.COMPLETED
        assert [cursor for _, cursor in search.calls] == [None, "1"]

    async def test_external_cancellation(
        self, make_hit: Any, fake_search: Any, publisher: Any
    ) -> None:
        """Test cancelling the caller's task cancels the check."""
        search = fake_search([[make_hit(STAR, line=1)], [make_hit(STAR, line=2)]])
        search.gate = asyncio.Event()
        check = make_check(search, publisher)

        task = asyncio.create_task(check.start())
        await wait_for(lambda: "import-star" in publisher.published)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert check.state is CheckState.CANCELLED
