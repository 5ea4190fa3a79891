"""Result dataclasses for wmsload runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wmsload.dsl.http_client import RequestMetric

if TYPE_CHECKING:
    from wmsload.metrics.sink import CheckTally, MetricSummary
    from wmsload.metrics.thresholds import ThresholdResult

__all__ = [
    "Assessment",
    "EndpointMetrics",
    "MetricSnapshot",
    "RequestMetric",
    "TestResult",
]


@dataclass
class EndpointMetrics:
    """Aggregated request statistics for one logical request name.

    Attributes:
        name: Logical request name (e.g., "packages:create").
        request_count: Total number of requests.
        error_count: Requests that failed (transport error or status >= 400).
        error_rate: Fraction of requests that failed (0.0 to 1.0).
        requests_per_second: Requests per second.
        latency_min: Minimum response time in milliseconds.
        latency_max: Maximum response time in milliseconds.
        latency_avg: Mean response time in milliseconds.
        latency_p50: 50th percentile response time in milliseconds.
        latency_p90: 90th percentile response time in milliseconds.
        latency_p95: 95th percentile response time in milliseconds.
        latency_p99: 99th percentile response time in milliseconds.
    """

    name: str
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass
class MetricSnapshot:
    """Request statistics for one scheduler tick, or for the whole run.

    Attributes:
        timestamp: Monotonic timestamp of the snapshot.
        elapsed_seconds: Seconds since the run started.
        active_users: Number of active virtual users.
        phase: Phase label of the current stage, if any.
        total_requests: Total requests in this interval.
        requests_per_second: Overall RPS in this interval.
        latency_avg: Mean latency in milliseconds.
        latency_p50: 50th percentile latency (ms).
        latency_p90: 90th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        latency_max: Maximum latency (ms).
        total_errors: Failed requests in this interval.
        error_rate: Fraction of requests that failed (0.0 to 1.0).
        errors_by_status: Error count breakdown by HTTP status code.
        errors_by_type: Error count breakdown by transport error type.
        endpoints: Per-request-name metrics.
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    phase: str | None = None
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    errors_by_status: dict[int, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)
    endpoints: dict[str, EndpointMetrics] = field(default_factory=dict)


@dataclass
class Assessment:
    """Outcome of a profile's post-run probes.

    Attributes:
        probes: Probe name to pass/fail.
    """

    probes: dict[str, bool] = field(default_factory=dict)

    @property
    def passed_count(self) -> int:
        return sum(self.probes.values())

    @property
    def grade(self) -> str:
        """Return ``healthy`` (all pass), ``degraded`` (>= 2) or ``needs attention``."""
        if self.probes and self.passed_count == len(self.probes):
            return "healthy"
        if self.passed_count >= 2:
            return "degraded"
        return "needs attention"


@dataclass
class TestResult:
    """Complete result of a profile run.

    Attributes:
        profile_name: Name of the profile that was executed.
        base_url: Target base URL.
        start_time: Monotonic time when the run started.
        end_time: Monotonic time when the run completed.
        duration_seconds: Wall-clock duration of the run phase.
        pattern_description: Human-readable description of the stage schedule.
        snapshots: Time-series of per-tick MetricSnapshot objects.
        final_summary: Request statistics for the whole run.
        metrics: Final values of every declared metric.
        checks: Per-check pass/fail tallies.
        thresholds: Threshold verdicts.
        assessment: Post-run probe results, if the profile defines any.
    """

    __test__ = False  # not a pytest test class

    profile_name: str
    base_url: str
    start_time: float
    end_time: float
    duration_seconds: float
    pattern_description: str
    snapshots: list[MetricSnapshot] = field(default_factory=list)
    final_summary: MetricSnapshot | None = None
    metrics: dict[str, MetricSummary] = field(default_factory=dict)
    checks: list[CheckTally] = field(default_factory=list)
    thresholds: list[ThresholdResult] = field(default_factory=list)
    assessment: Assessment | None = None

    @property
    def thresholds_passed(self) -> bool:
        return all(t.passed for t in self.thresholds)
