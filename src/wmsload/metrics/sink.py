"""Process-wide custom metrics: counters, rates, and trends.

A ``MetricSink`` is created once per test session and passed to every
workflow and validator. Metrics are append-only; every update happens under
a single ``threading.Lock`` so no observation is lost when virtual users run
on several threads or event loops.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from wmsload._internal.errors import MetricError
from wmsload._internal.logging import get_logger
from wmsload.metrics.histogram import HdrHistogramWrapper

if TYPE_CHECKING:
    from wmsload._internal.types import Tags

logger = get_logger("metrics.sink")

TREND_PERCENTILES = (50.0, 90.0, 95.0, 99.0)


class MetricKind(Enum):
    """Kind of a declared metric."""

    COUNTER = "counter"
    RATE = "rate"
    TREND = "trend"


class Counter:
    """Monotonically increasing count."""

    kind = MetricKind.COUNTER

    def __init__(self, name: str) -> None:
        self.name = name
        self.count = 0.0

    def add(self, value: float = 1) -> None:
        if value < 0:
            msg = f"Counter {self.name!r} cannot decrease (got {value})"
            raise MetricError(msg)
        self.count += value

    def values(self, elapsed_seconds: float) -> dict[str, float]:
        return {
            "count": self.count,
            "rate": self.count / elapsed_seconds if elapsed_seconds > 0 else 0.0,
        }


class Rate:
    """Fraction of boolean observations that were true."""

    kind = MetricKind.RATE

    def __init__(self, name: str) -> None:
        self.name = name
        self.passes = 0
        self.fails = 0

    def add(self, value: float | bool) -> None:
        if value:
            self.passes += 1
        else:
            self.fails += 1

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def rate(self) -> float:
        """Return ``passes / total``, or 0.0 with no observations."""
        return self.passes / self.total if self.total else 0.0

    def values(self, elapsed_seconds: float) -> dict[str, float]:
        return {"rate": self.rate, "passes": self.passes, "fails": self.fails}


class Trend:
    """Distribution of numeric observations.

    Count, sum, min and max are exact; percentiles come from an HDR
    histogram with three significant digits.
    """

    kind = MetricKind.TREND

    def __init__(self, name: str) -> None:
        self.name = name
        self.count = 0
        self.total = 0.0
        self.min = 0.0
        self.max = 0.0
        self._histogram = HdrHistogramWrapper()

    def add(self, value: float) -> None:
        if self.count == 0:
            self.min = self.max = value
        else:
            self.min = min(self.min, value)
            self.max = max(self.max, value)
        self.count += 1
        self.total += value
        self._histogram.record(value)

    @property
    def avg(self) -> float:
        return self.total / self.count if self.count else 0.0

    def percentile(self, p: float) -> float:
        """Return the value at percentile *p* (0-100)."""
        return self._histogram.get_percentile(p)

    def values(self, elapsed_seconds: float) -> dict[str, float]:
        result = {
            "count": float(self.count),
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
        }
        for p in TREND_PERCENTILES:
            key = "med" if p == 50.0 else f"p({p:g})"
            result[key] = self.percentile(p)
        return result


Metric = Counter | Rate | Trend

_KIND_TYPES: dict[MetricKind, type[Counter] | type[Rate] | type[Trend]] = {
    MetricKind.COUNTER: Counter,
    MetricKind.RATE: Rate,
    MetricKind.TREND: Trend,
}


@dataclass(frozen=True)
class MetricSummary:
    """Final aggregate values of one metric.

    Attributes:
        name: Metric name, including a ``{tag:value}`` suffix for sub-metrics.
        kind: Metric kind.
        values: Aggregates, e.g. ``{"rate": 0.98, "passes": 49, "fails": 1}``.
    """

    name: str
    kind: MetricKind
    values: dict[str, float]


@dataclass(frozen=True)
class CheckTally:
    """Pass/fail counts for one named check."""

    name: str
    passes: int
    fails: int


def submetric_name(name: str, key: str, value: str) -> str:
    """Return the name of the ``key:value`` tagged sub-metric of *name*."""
    return f"{name}{{{key}:{value}}}"


class MetricSink:
    """Thread-safe registry of declared metrics.

    Built-in metrics are declared by the session; workflows declare their
    own through the profile. A sample carrying tags also updates every
    declared sub-metric ``name{key:value}`` matching one of its tags.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._checks: dict[str, Rate] = {}
        self._lock = threading.Lock()
        self._started = time.monotonic()

    def declare(self, name: str, kind: MetricKind) -> None:
        """Declare a metric. Re-declaring with the same kind is a no-op.

        Raises:
            MetricError: If *name* is already declared with another kind.
        """
        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None:
                if existing.kind is not kind:
                    msg = (
                        f"Metric {name!r} already declared as {existing.kind.value}, "
                        f"cannot redeclare as {kind.value}"
                    )
                    raise MetricError(msg)
                return
            self._metrics[name] = _KIND_TYPES[kind](name)

    def add(self, name: str, value: float | bool = 1, tags: Tags | None = None) -> None:
        """Record one observation.

        Raises:
            MetricError: If *name* was never declared.
        """
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                msg = f"Metric {name!r} was not declared"
                raise MetricError(msg)
            metric.add(value)
            for key, tag_value in (tags or {}).items():
                sub = self._metrics.get(submetric_name(name, key, tag_value))
                if sub is not None:
                    sub.add(value)

    def record_check(self, name: str, passed: bool) -> None:
        """Record the outcome of a named check into ``checks`` and its tally."""
        with self._lock:
            tally = self._checks.get(name)
            if tally is None:
                tally = self._checks[name] = Rate(name)
            tally.add(passed)
            checks = self._metrics.get("checks")
            if checks is not None:
                checks.add(passed)

    def get(self, name: str) -> Metric | None:
        """Return the metric object for *name*, or None."""
        with self._lock:
            return self._metrics.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._metrics

    def summary(self, elapsed_seconds: float | None = None) -> dict[str, MetricSummary]:
        """Return final aggregate values for every declared metric."""
        if elapsed_seconds is None:
            elapsed_seconds = time.monotonic() - self._started
        with self._lock:
            return {
                name: MetricSummary(name=name, kind=m.kind, values=m.values(elapsed_seconds))
                for name, m in sorted(self._metrics.items())
            }

    def check_tallies(self) -> list[CheckTally]:
        """Return per-check pass/fail counts in first-seen order."""
        with self._lock:
            return [CheckTally(name=r.name, passes=r.passes, fails=r.fails) for r in self._checks.values()]
