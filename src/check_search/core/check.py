"""A single named check: one rule, one query, one aggregator.

Lifecycle:

    REGISTERED -> RUNNING -> COMPLETED | CANCELLED | FAILED

A check can be started again from any terminal state; each run uses a fresh
query, stream and aggregator. dispose() cancels a running check promptly and
clears its diagnostics at the host.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bound_contextvars

from check_search.core.aggregator import DiagnosticAggregator
from check_search.core.match_stream import MatchStream
from check_search.core.query_builder import QueryBuilder
from check_search.models.diagnostic import Diagnostic, Location, Notice, NoticeLevel, Severity
from check_search.models.verdict import Inconclusive, Violation
from check_search.utils.async_helpers import (
    CancellationToken,
    CheckStateError,
    CollaboratorError,
    InvalidCriteria,
)
from check_search.utils.logging import LogEventNames
from check_search.utils.metrics import get_metrics

if TYPE_CHECKING:
    from check_search.core.rules import RuleMatcher
    from check_search.interfaces.host import DiagnosticsPublisher
    from check_search.interfaces.search import SearchProvider
    from check_search.models.candidate import Candidate
    from check_search.models.query import Query, SearchCriteria

log = structlog.get_logger()


class CheckState(StrEnum):
    """Lifecycle state of a check."""

    REGISTERED = "registered"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for states a run ends in."""
        return self in (CheckState.COMPLETED, CheckState.CANCELLED, CheckState.FAILED)


@dataclass(frozen=True)
class PresentationPolicy:
    """How a check's results are shown to the host."""

    severity: Severity = Severity.WARNING
    report_inconclusive: bool = True


class Check:
    """Runs one rule over the results of one search query.

    Example:
        check = Check("import-star", ImportStarRule(), criteria, search, publisher)
        state = await check.start()
        print(state, check.diagnostics)
    """

    def __init__(
        self,
        check_id: str,
        rule: RuleMatcher,
        criteria: SearchCriteria,
        search: SearchProvider,
        publisher: DiagnosticsPublisher,
        *,
        display_name: str | None = None,
        policy: PresentationPolicy | None = None,
        enabled: bool = True,
        builder: QueryBuilder | None = None,
    ) -> None:
        """Initialize the check.

        Args:
            check_id: Unique check identifier
            rule: Rule that judges every candidate
            criteria: Search criteria issued on each run
            search: Search collaborator
            publisher: Host collaborator receiving diagnostics and notices
            display_name: Human readable name, defaults to the rule's
            policy: Presentation policy
            enabled: Whether the check may run
            builder: Query builder, a default one is created if omitted
        """
        self._id = check_id
        self._rule = rule
        self._criteria = criteria
        self._search = search
        self._publisher = publisher
        self._display_name = display_name or rule.display_name
        self._policy = policy or PresentationPolicy()
        self._enabled = enabled
        self._builder = builder or QueryBuilder()

        self._state = CheckState.REGISTERED
        self._aggregator = DiagnosticAggregator(rule.rule_id, self._policy.severity)
        self._token = CancellationToken()
        self._task: asyncio.Task[None] | None = None
        self._disposed = False
        self._error: Exception | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def rule(self) -> RuleMatcher:
        return self._rule

    @property
    def criteria(self) -> SearchCriteria:
        return self._criteria

    @property
    def policy(self) -> PresentationPolicy:
        return self._policy

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def state(self) -> CheckState:
        return self._state

    @property
    def error(self) -> Exception | None:
        """Error that ended the last run, if it failed."""
        return self._error

    @property
    def aggregator(self) -> DiagnosticAggregator:
        return self._aggregator

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Current diagnostics of the latest run."""
        return self._aggregator.snapshot()

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable the check; disabling cancels a running check."""
        if enabled == self._enabled:
            return
        self._enabled = enabled
        log.info(LogEventNames.CHECK_TOGGLED, check_id=self._id, enabled=enabled)
        if not enabled:
            self._cancel()

    async def start(self) -> CheckState:
        """Run the check to completion.

        Returns:
            The state the run ended in

        Raises:
            InvalidCriteria: If the check's criteria cannot produce a query
            CheckStateError: If the check is disabled or disposed
        """
        if self._disposed:
            raise CheckStateError(f"Check {self._id} has been disposed")
        if not self._enabled:
            raise CheckStateError(f"Check {self._id} is disabled")
        if self._state is CheckState.RUNNING:
            log.warning(LogEventNames.CHECK_ALREADY_RUNNING, check_id=self._id)
            return self._state

        with bound_contextvars(check_id=self._id, rule=self._rule.rule_id):
            if self._state.is_terminal:
                log.info(LogEventNames.CHECK_RESTARTED, previous=self._state.value)
            self._aggregator.reset()
            self._token = CancellationToken()
            self._error = None

            try:
                query = self._builder.build(self._criteria)
            except InvalidCriteria as e:
                self._fail_invalid(e)
                raise

            metrics = get_metrics()
            self._state = CheckState.RUNNING
            metrics.checks_started.inc(labels={"rule": self._rule.rule_id})
            metrics.active_checks.inc()
            log.info(LogEventNames.CHECK_STARTED, query=query.text)

            token = self._token
            self._task = asyncio.create_task(self._run(query, token), name=f"check_{self._id}")
            try:
                await self._task
            except asyncio.CancelledError:
                if not token.is_cancelled:
                    # Cancelled from outside, not through dispose()
                    self._finish(CheckState.CANCELLED)
                    raise
                log.info(LogEventNames.CHECK_CANCELLED)
            except CollaboratorError as e:
                self._fail_search(e)
            except Exception as e:
                self._error = e
                self._finish(CheckState.FAILED)
                log.exception(LogEventNames.CHECK_FAILED, error=str(e))
                raise
            finally:
                self._task = None

            if self._finish(CheckState.COMPLETED):
                self._publish()
                log.info(LogEventNames.CHECK_COMPLETED, **self._aggregator.counts)

        return self._state

    def dispose(self) -> None:
        """Cancel any run, clear diagnostics at the host and retire the check."""
        self._disposed = True
        self._cancel()

    def _cancel(self) -> None:
        self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._finish(CheckState.CANCELLED)
        self._publisher.clear(self._id)
        log.debug(LogEventNames.DIAGNOSTICS_CLEARED, check_id=self._id)

    async def _run(self, query: Query, token: CancellationToken) -> None:
        metrics = get_metrics()
        labels = {"rule": self._rule.rule_id}
        stream = MatchStream.open(self._search, query)
        try:
            async for candidate in stream:
                if token.is_cancelled:
                    break
                verdict = self._rule.evaluate(candidate)
                metrics.candidates_evaluated.inc(labels=labels)
                if token.is_cancelled:
                    break

                self._aggregator.push(verdict, candidate)
                if isinstance(verdict, Violation):
                    metrics.violations_found.inc(labels=labels)
                    log.debug(
                        LogEventNames.VIOLATION_FOUND,
                        repository=candidate.repository,
                        file=candidate.file_path,
                        lines=str(candidate.line_range),
                    )
                    self._publish()
                elif isinstance(verdict, Inconclusive):
                    metrics.inconclusive_verdicts.inc(labels=labels)
                    self._report_inconclusive(candidate, verdict)
        finally:
            await stream.aclose()

    def _report_inconclusive(self, candidate: Candidate, verdict: Inconclusive) -> None:
        log.info(
            LogEventNames.VERDICT_INCONCLUSIVE,
            repository=candidate.repository,
            file=candidate.file_path,
            lines=str(candidate.line_range),
            reason=verdict.reason,
        )
        if not self._policy.report_inconclusive:
            return
        location = Location(candidate.repository, candidate.file_path, candidate.line_range)
        self._publisher.notify(
            self._id,
            Notice(
                check_id=self._id,
                level=NoticeLevel.INFO,
                message=f"{self._display_name}: could not decide {location}: {verdict.reason}",
                location=location,
            ),
        )

    def _publish(self) -> None:
        diagnostics = self._aggregator.snapshot()
        self._publisher.publish(self._id, diagnostics)
        log.debug(LogEventNames.DIAGNOSTICS_PUBLISHED, count=len(diagnostics))

    def _finish(self, state: CheckState) -> bool:
        """Leave RUNNING for a terminal state; False if the run already ended."""
        if self._state is not CheckState.RUNNING:
            return False
        self._state = state
        metrics = get_metrics()
        metrics.active_checks.dec()
        metrics.checks_finished.inc(labels={"rule": self._rule.rule_id, "state": state.value})
        return True

    def _fail_invalid(self, error: InvalidCriteria) -> None:
        self._error = error
        self._state = CheckState.FAILED
        get_metrics().checks_finished.inc(
            labels={"rule": self._rule.rule_id, "state": CheckState.FAILED.value}
        )
        log.error(LogEventNames.CHECK_INVALID_CRITERIA, error=str(error))
        self._publisher.publish(self._id, ())
        self._publisher.notify(
            self._id,
            Notice(
                check_id=self._id,
                level=NoticeLevel.ERROR,
                message=f"{self._display_name}: invalid search criteria: {error}",
            ),
        )

    def _fail_search(self, error: CollaboratorError) -> None:
        self._error = error
        if not self._finish(CheckState.FAILED):
            return
        counts = self._aggregator.counts
        log.error(LogEventNames.CHECK_FAILED, error=str(error), **counts)
        self._publish()
        self._publisher.notify(
            self._id,
            Notice(
                check_id=self._id,
                level=NoticeLevel.ERROR if counts["diagnostics"] == 0 else NoticeLevel.WARNING,
                message=(
                    f"{self._display_name}: search did not complete, "
                    f"showing {counts['diagnostics']} partial result(s): {error}"
                ),
            ),
        )


__all__ = ["Check", "CheckState", "PresentationPolicy"]
