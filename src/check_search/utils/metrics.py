"""Metrics collection for observability.

In-process counters, gauges and histograms for check runs:
- Candidates evaluated and verdicts per rule
- Check outcomes by final state
- Search requests, errors and page latency

Metrics can be exported as a dictionary or in Prometheus text format.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any

import structlog

log = structlog.get_logger()

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


class _ScalarMetric:
    """Labelled float values guarded by a lock."""

    metric_type = MetricType.COUNTER

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get the current value for a label set."""
        with self._lock:
            return self._values.get(_label_key(labels), 0)

    def total(self) -> float:
        """Sum of the values across all label sets."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=self.metric_type,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]


class Counter(_ScalarMetric):
    """A monotonically increasing counter.

    Example:
        counter = Counter("candidates_evaluated", "Candidates evaluated")
        counter.inc()
        counter.inc(labels={"rule": "import-star"})
    """

    metric_type = MetricType.COUNTER

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        with self._lock:
            self._values[_label_key(labels)] += value


class Gauge(_ScalarMetric):
    """A metric that can go up or down."""

    metric_type = MetricType.GAUGE

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Set the gauge value."""
        with self._lock:
            self._values[_label_key(labels)] = value

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the gauge."""
        with self._lock:
            self._values[_label_key(labels)] += value

    def dec(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Decrement the gauge."""
        with self._lock:
            self._values[_label_key(labels)] -= value


class Histogram:
    """A histogram metric for tracking value distributions.

    Example:
        histogram = Histogram("search_page_seconds", "Search page latency")
        histogram.observe(0.5)
    """

    DEFAULT_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        with self._lock:
            self._observations[_label_key(labels)].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get count, sum, min, max and mean for a label set."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get bucket counts; each value is counted in the first bucket it fits."""
        with self._lock:
            values = list(self._observations.get(_label_key(labels), []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts


class MetricsRegistry:
    """Registry for all application metrics.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.candidates_evaluated.inc(labels={"rule": "import-star"})
        metrics = registry.get_all_metrics()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        # Verdicts
        self.candidates_evaluated = Counter(
            "check_search_candidates_evaluated_total",
            "Total candidates evaluated by a rule",
        )
        self.violations_found = Counter(
            "check_search_violations_total",
            "Total Violation verdicts",
        )
        self.inconclusive_verdicts = Counter(
            "check_search_inconclusive_total",
            "Total Inconclusive verdicts",
        )
        self.duplicate_hits = Counter(
            "check_search_duplicate_hits_total",
            "Search hits dropped as duplicates of an earlier candidate",
        )

        # Check outcomes
        self.checks_started = Counter(
            "check_search_checks_started_total",
            "Total check runs started",
        )
        self.checks_finished = Counter(
            "check_search_checks_finished_total",
            "Total check runs finished, by final state",
        )

        # Search backend
        self.search_requests = Counter(
            "check_search_search_requests_total",
            "Total search page requests",
        )
        self.search_errors = Counter(
            "check_search_search_errors_total",
            "Total search backend failures",
        )
        self.search_duration = Histogram(
            "check_search_search_page_seconds",
            "Search page fetch duration in seconds",
        )

        self.active_checks = Gauge(
            "check_search_active_checks",
            "Number of currently running checks",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next access starts from zero."""
        with cls._lock:
            cls._instance = None

    def get_uptime_seconds(self) -> float:
        """Get process uptime in seconds."""
        return time.time() - self._start_time

    def _counters(self) -> list[Counter]:
        return [
            self.candidates_evaluated,
            self.violations_found,
            self.inconclusive_verdicts,
            self.duplicate_hits,
            self.checks_started,
            self.checks_finished,
            self.search_requests,
            self.search_errors,
        ]

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "verdicts": {
                "evaluated": self.candidates_evaluated.total(),
                "violations": self.violations_found.total(),
                "inconclusive": self.inconclusive_verdicts.total(),
                "duplicates_dropped": self.duplicate_hits.total(),
            },
            "checks": {
                "started": self.checks_started.total(),
                "active": self.active_checks.get(),
                "finished": {
                    m.labels.get("state", ""): m.value for m in self.checks_finished.get_all()
                },
            },
            "search": {
                "requests": self.search_requests.total(),
                "errors": self.search_errors.total(),
                "duration_stats": self.search_duration.get_stats(),
            },
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        for metric in [*self._counters(), self.active_checks]:
            if metric.help_text:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.metric_type.value}")
            for value in metric.get_all():
                if value.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in value.labels.items())
                    lines.append(f"{metric.name}{{{label_str}}} {value.value}")
                else:
                    lines.append(f"{metric.name} {value.value}")

        lines.append("# HELP check_search_uptime_seconds Process uptime in seconds")
        lines.append("# TYPE check_search_uptime_seconds gauge")
        lines.append(f"check_search_uptime_seconds {self.get_uptime_seconds()}")

        return "\n".join(lines)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.search_duration, labels={"check": "import-star"}):
            await fetch_page()
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            duration = time.perf_counter() - self._start
            self._histogram.observe(duration, labels=self._labels)
