"""Registry owning every check and its resources."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator
from datetime import date
from types import TracebackType
from typing import TYPE_CHECKING

import structlog

from check_search.core.check import Check, CheckState, PresentationPolicy
from check_search.core.rules import (
    CodeOwnershipRule,
    DependencyEdge,
    DependencyRule,
    ImportStarRule,
    NoInlinePropsRule,
    OwnershipRecord,
    Package,
    RuleMatcher,
    TravisGoRule,
    any_of,
    export_map,
    parse_codeowners,
)
from check_search.models.diagnostic import Severity
from check_search.models.query import RepositoryScope, SearchCriteria
from check_search.utils.async_helpers import CheckStateError
from check_search.utils.logging import LogEventNames

if TYPE_CHECKING:
    from check_search.config.schema import (
        CheckConfig,
        CheckSearchConfig,
        CodeOwnershipConfig,
        ImportStarConfig,
    )
    from check_search.interfaces.host import DiagnosticsPublisher
    from check_search.interfaces.search import SearchProvider

log = structlog.get_logger()

StartResult = CheckState | BaseException


class CheckRegistry:
    """Owns a set of checks and disposes of them together.

    Example:
        with create_registry(config, search, publisher) as registry:
            results = await registry.start_all()
    """

    def __init__(self) -> None:
        self._checks: dict[str, Check] = {}
        self._disposed = False

    def register(self, check: Check) -> Check:
        """Add a check.

        Raises:
            ValueError: If a check with the same id is already registered
            CheckStateError: If the registry has been disposed
        """
        if self._disposed:
            raise CheckStateError("Cannot register checks on a disposed registry")
        if check.id in self._checks:
            raise ValueError(f"Check already registered: {check.id}")
        self._checks[check.id] = check
        log.info(LogEventNames.CHECK_REGISTERED, check_id=check.id, enabled=check.enabled)
        return check

    def get(self, check_id: str) -> Check:
        """Look up a check by id.

        Raises:
            KeyError: If no such check is registered
        """
        try:
            return self._checks[check_id]
        except KeyError:
            raise KeyError(f"Unknown check: {check_id}") from None

    def checks(self) -> tuple[Check, ...]:
        """Return all checks in registration order."""
        return tuple(self._checks.values())

    def set_enabled(self, check_id: str, enabled: bool) -> None:
        """Enable or disable a check; disabling cancels it if running."""
        self.get(check_id).set_enabled(enabled)

    async def start(self, check_id: str) -> CheckState:
        """Run one check to completion and return its final state."""
        return await self.get(check_id).start()

    async def start_all(self, check_ids: Iterable[str] | None = None) -> dict[str, StartResult]:
        """Run the enabled checks concurrently.

        A check that fails, including with InvalidCriteria, does not affect
        its siblings; its exception is returned in place of a state.

        Args:
            check_ids: Restrict the run to these checks (default: all)

        Returns:
            Final state or raised exception per started check
        """
        selected = (
            [self.get(check_id) for check_id in check_ids]
            if check_ids is not None
            else list(self._checks.values())
        )
        runnable = [check for check in selected if check.enabled]

        results = await asyncio.gather(
            *(check.start() for check in runnable),
            return_exceptions=True,
        )

        outcome: dict[str, StartResult] = {}
        for check, result in zip(runnable, results, strict=True):
            if isinstance(result, BaseException):
                log.warning("check_start_error", check_id=check.id, error=str(result))
            outcome[check.id] = result
        return outcome

    def states(self) -> dict[str, CheckState]:
        """Return the current state of every check."""
        return {check_id: check.state for check_id, check in self._checks.items()}

    def dispose(self) -> None:
        """Dispose every check. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        for check in self._checks.values():
            check.dispose()
        log.info(LogEventNames.REGISTRY_DISPOSED, checks=len(self._checks))

    def __enter__(self) -> CheckRegistry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, check_id: object) -> bool:
        return check_id in self._checks

    def __iter__(self) -> Iterator[Check]:
        return iter(self._checks.values())


def build_criteria(
    rule: RuleMatcher,
    section: CheckConfig,
    default_repositories: Iterable[str] = (),
    *,
    extra_patterns: tuple[str, ...] = (),
    extra_file_patterns: tuple[str, ...] = (),
) -> SearchCriteria:
    """Build the search criteria for a rule from its configuration section."""
    repositories = section.repositories or list(default_repositories)
    patterns = (*rule.content_patterns, *extra_patterns)
    return SearchCriteria(
        repositories=RepositoryScope(
            include=tuple(repositories),
            exclude=tuple(section.exclude_repositories),
        ),
        file_patterns=(*section.file_patterns, *extra_file_patterns),
        exclude_file_patterns=tuple(section.exclude_file_patterns),
        content_patterns=any_of(patterns),
        match_unit=rule.match_unit,
        max_results=section.max_results,
    )


def _policy(section: CheckConfig) -> PresentationPolicy:
    return PresentationPolicy(
        severity=Severity(section.severity),
        report_inconclusive=section.inconclusive == "report",
    )


def _import_star_criteria(
    rule: ImportStarRule, section: ImportStarConfig, shared: list[str]
) -> SearchCriteria:
    patterns: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    if "python" in section.languages:
        patterns = rule.python_patterns
        files = (r"\.py$",)

    criteria = build_criteria(
        rule, section, shared, extra_patterns=patterns, extra_file_patterns=files
    )
    if "typescript" in section.languages:
        return criteria

    # Python only
    return SearchCriteria(
        repositories=criteria.repositories,
        file_patterns=files,
        exclude_file_patterns=criteria.exclude_file_patterns,
        content_patterns=rule.python_patterns,
        match_unit=criteria.match_unit,
        max_results=criteria.max_results,
    )


def _ownership_records(section: CodeOwnershipConfig) -> tuple[OwnershipRecord, ...]:
    records: list[OwnershipRecord] = []
    if section.codeowners_file is not None:
        records.extend(parse_codeowners(section.codeowners_file.read_text(encoding="utf-8")))
    # Configured entries come last so they take precedence
    records.extend(
        OwnershipRecord(
            pattern=entry.pattern,
            owners=tuple(entry.owners),
            last_reviewed=entry.last_reviewed,
        )
        for entry in section.entries
    )
    return tuple(records)


def create_registry(
    config: CheckSearchConfig,
    search: SearchProvider,
    publisher: DiagnosticsPublisher,
    *,
    today: date | None = None,
) -> CheckRegistry:
    """Build a registry holding the five configured checks.

    Configuration is read once here; later changes to the config object do
    not affect the registered checks.

    Args:
        config: Application configuration
        search: Search collaborator shared by all checks
        publisher: Host collaborator shared by all checks
        today: Reference date for ownership staleness when not configured

    Returns:
        Registry with one check per rule
    """
    checks = config.checks
    shared = checks.repositories
    registry = CheckRegistry()

    def add(rule: RuleMatcher, section: CheckConfig, criteria: SearchCriteria) -> None:
        registry.register(
            Check(
                rule.rule_id,
                rule,
                criteria,
                search,
                publisher,
                policy=_policy(section),
                enabled=section.enabled,
            )
        )

    import_star = ImportStarRule(exports=export_map(checks.import_star.exports))
    add(import_star, checks.import_star, _import_star_criteria(import_star, checks.import_star, shared))

    no_inline_props = NoInlinePropsRule()
    add(
        no_inline_props,
        checks.no_inline_props,
        build_criteria(no_inline_props, checks.no_inline_props, shared),
    )

    section = checks.dependency_rules
    dependency_rule = DependencyRule(
        packages=tuple(
            Package(name=p.name, path=p.path, module_prefixes=tuple(p.module_prefixes))
            for p in section.packages
        ),
        forbidden=tuple(
            DependencyEdge(source=e.source, target=e.target, reason=e.reason)
            for e in section.forbidden_edges
        ),
    )
    add(dependency_rule, section, build_criteria(dependency_rule, section, shared))

    ownership = checks.code_ownership
    ownership_rule = CodeOwnershipRule(
        entries=_ownership_records(ownership),
        stale_after_days=ownership.stale_after_days,
        as_of=ownership.as_of or today or date.today(),
    )
    add(ownership_rule, ownership, build_criteria(ownership_rule, ownership, shared))

    travis = checks.travis_go
    travis_rule = TravisGoRule(
        required_fields=tuple(travis.required_fields),
        minimum_version=travis.minimum_version,
        deprecated_versions=tuple(travis.deprecated_versions),
        recommended_version=travis.recommended_version,
    )
    add(travis_rule, travis, build_criteria(travis_rule, travis, shared))

    return registry


__all__ = ["CheckRegistry", "build_criteria", "create_registry"]
