"""Health check utilities for monitoring service health.

This module provides health check capabilities for check-search:
- Check configuration sanity (checks enabled, scopes resolvable)
- Check search backend reachability
- Generate health status reports for the CLI
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

from .async_helpers import CollaboratorError
from .logging import LogEventNames

if TYPE_CHECKING:
    from ..config.schema import CheckSearchConfig

log = structlog.get_logger()

CHECK_SECTIONS = ("import_star", "no_inline_props", "dependency_rules", "code_ownership", "travis_go")


class Pingable(Protocol):
    """A backend that can report whether it is reachable."""

    async def ping(self) -> str: ...


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
            "details": self.details,
        }


class HealthChecker:
    """Checks configuration and search backend health.

    Example:
        checker = HealthChecker(config, search)
        report = await checker.run_all_checks()
        if not report.healthy:
            print(report.to_dict())
    """

    def __init__(self, config: CheckSearchConfig, search: Pingable | None = None) -> None:
        """Initialize the health checker.

        Args:
            config: Application configuration
            search: Search backend to ping; skipped when None
        """
        self._config = config
        self._search = search

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return a report."""
        log.info(LogEventNames.HEALTH_CHECK_START)
        start_time = datetime.now(UTC)

        checks: list[CheckResult] = []
        results = await asyncio.gather(
            self._check_config(),
            self._check_search_backend(),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                checks.append(
                    CheckResult(
                        name="unknown",
                        status=HealthStatus.UNHEALTHY,
                        message=f"Check failed with exception: {result}",
                    )
                )
            elif isinstance(result, CheckResult):
                checks.append(result)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            overall_status = HealthStatus.HEALTHY
            healthy = True
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            overall_status = HealthStatus.UNHEALTHY
            healthy = False
        else:
            overall_status = HealthStatus.DEGRADED
            healthy = True

        report = HealthReport(
            healthy=healthy,
            status=overall_status,
            timestamp=start_time,
            checks=checks,
            details={
                "total_checks": len(checks),
                "healthy_checks": sum(1 for c in checks if c.status == HealthStatus.HEALTHY),
                "degraded_checks": sum(1 for c in checks if c.status == HealthStatus.DEGRADED),
                "unhealthy_checks": sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY),
            },
        )

        log.info(
            LogEventNames.HEALTH_CHECK_COMPLETE,
            healthy=healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        """Check that some check is enabled and every enabled check has a scope."""
        checks = self._config.checks
        enabled = [name for name in CHECK_SECTIONS if getattr(checks, name).enabled]
        if not enabled:
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message="No checks are enabled",
            )

        unscoped = [
            name
            for name in enabled
            if not (getattr(checks, name).repositories or checks.repositories)
        ]
        if unscoped:
            return CheckResult(
                name="config",
                status=HealthStatus.DEGRADED,
                message=f"Checks without repository scope: {', '.join(unscoped)}",
                details={"enabled": enabled, "unscoped": unscoped},
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={"enabled": enabled, "search_url": self._config.search.url},
        )

    async def _check_search_backend(self) -> CheckResult:
        """Check that the search backend answers."""
        if self._search is None:
            return CheckResult(
                name="search_backend",
                status=HealthStatus.UNKNOWN,
                message="No search backend to check",
            )

        start = time.monotonic()
        try:
            version = await self._search.ping()
        except CollaboratorError as e:
            return CheckResult(
                name="search_backend",
                status=HealthStatus.UNHEALTHY,
                message=f"Search backend unreachable: {e}",
                latency_ms=(time.monotonic() - start) * 1000,
            )

        return CheckResult(
            name="search_backend",
            status=HealthStatus.HEALTHY,
            message="Search backend reachable",
            latency_ms=(time.monotonic() - start) * 1000,
            details={"version": version, "url": self._config.search.url},
        )
