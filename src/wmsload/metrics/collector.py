"""In-memory collection of per-request metrics for one test session."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import TYPE_CHECKING

import numpy as np

from wmsload._internal.logging import get_logger
from wmsload.metrics.models import EndpointMetrics, MetricSnapshot

if TYPE_CHECKING:
    from wmsload.dsl.http_client import RequestMetric

logger = get_logger("metrics.collector")

_PERCENTILES = (50.0, 90.0, 95.0, 99.0)


def _latency_stats(latencies: list[float]) -> tuple[float, float, float, float, float, float, float]:
    """Compute latency aggregates.

    Args:
        latencies: Latency values in milliseconds.

    Returns:
        Tuple of (min, max, avg, p50, p90, p95, p99).
    """
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.array(latencies, dtype=np.float64)
    p50, p90, p95, p99 = np.percentile(arr, _PERCENTILES)
    return (
        float(np.min(arr)),
        float(np.max(arr)),
        float(np.mean(arr)),
        float(p50),
        float(p90),
        float(p95),
        float(p99),
    )


class MetricCollector:
    """Collects RequestMetric objects emitted by every virtual user's client.

    ``record`` is passed (via the session) as ``HttpClient.metric_callback``.
    ``flush`` drains the pending buffer into a per-tick ``MetricSnapshot``;
    all metrics are also retained for the cumulative run summary.
    """

    def __init__(self) -> None:
        self._buffer: deque[RequestMetric] = deque()
        self._all_metrics: list[RequestMetric] = []
        self._last_flush_time: float = time.monotonic()

    @property
    def pending_count(self) -> int:
        """Return the number of unflushed metrics."""
        return len(self._buffer)

    def record(self, metric: RequestMetric) -> None:
        """Append a metric to the collection buffer.

        Appending to a deque is atomic in CPython.

        Args:
            metric: The request metric to record.
        """
        self._buffer.append(metric)

    def flush(
        self,
        elapsed_seconds: float,
        active_users: int,
        phase: str | None = None,
    ) -> MetricSnapshot:
        """Drain the buffer and compute a snapshot for the interval.

        Args:
            elapsed_seconds: Seconds elapsed since the run started.
            active_users: Current number of active virtual users.
            phase: Phase label of the current stage.

        Returns:
            A MetricSnapshot summarizing all metrics flushed in this call.
        """
        drained: list[RequestMetric] = []
        while self._buffer:
            drained.append(self._buffer.popleft())
        self._all_metrics.extend(drained)

        now = time.monotonic()
        interval = max(now - self._last_flush_time, 0.001)
        self._last_flush_time = now

        return self._build_snapshot(
            metrics=drained,
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            interval=interval,
            phase=phase,
        )

    def get_cumulative_snapshot(self, elapsed_seconds: float) -> MetricSnapshot:
        """Return a snapshot summarizing every metric recorded so far.

        Pending metrics are included without being drained.

        Args:
            elapsed_seconds: Total elapsed seconds, used for RPS.

        Returns:
            A cumulative MetricSnapshot.
        """
        return self._build_snapshot(
            metrics=[*self._all_metrics, *self._buffer],
            elapsed_seconds=elapsed_seconds,
            active_users=0,
            interval=max(elapsed_seconds, 0.001),
        )

    def _build_snapshot(
        self,
        metrics: list[RequestMetric],
        elapsed_seconds: float,
        active_users: int,
        interval: float,
        phase: str | None = None,
    ) -> MetricSnapshot:
        if not metrics:
            return MetricSnapshot(
                timestamp=time.monotonic(),
                elapsed_seconds=elapsed_seconds,
                active_users=active_users,
                phase=phase,
            )

        by_name: dict[str, list[RequestMetric]] = defaultdict(list)
        errors_by_status: dict[int, int] = defaultdict(int)
        errors_by_type: dict[str, int] = defaultdict(int)
        total_errors = 0

        for metric in metrics:
            by_name[metric.name].append(metric)
            if metric.failed:
                total_errors += 1
                if metric.status_code >= 400:
                    errors_by_status[metric.status_code] += 1
                if metric.error is not None:
                    # "ClientConnectorError: ..." -> "ClientConnectorError"
                    errors_by_type[metric.error.split(":")[0].strip()] += 1

        lat_min, lat_max, lat_avg, p50, p90, p95, p99 = _latency_stats(
            [m.latency_ms for m in metrics]
        )
        total_requests = len(metrics)

        endpoints: dict[str, EndpointMetrics] = {}
        for name, ep_metrics in by_name.items():
            ep_count = len(ep_metrics)
            ep_errors = sum(1 for m in ep_metrics if m.failed)
            ep_min, ep_max, ep_avg, ep_p50, ep_p90, ep_p95, ep_p99 = _latency_stats(
                [m.latency_ms for m in ep_metrics]
            )
            endpoints[name] = EndpointMetrics(
                name=name,
                request_count=ep_count,
                error_count=ep_errors,
                error_rate=ep_errors / ep_count,
                requests_per_second=ep_count / interval,
                latency_min=ep_min,
                latency_max=ep_max,
                latency_avg=ep_avg,
                latency_p50=ep_p50,
                latency_p90=ep_p90,
                latency_p95=ep_p95,
                latency_p99=ep_p99,
            )

        return MetricSnapshot(
            timestamp=time.monotonic(),
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            phase=phase,
            total_requests=total_requests,
            requests_per_second=total_requests / interval,
            latency_avg=lat_avg,
            latency_p50=p50,
            latency_p90=p90,
            latency_p95=p95,
            latency_p99=p99,
            latency_max=lat_max,
            total_errors=total_errors,
            error_rate=total_errors / total_requests,
            errors_by_status=dict(errors_by_status),
            errors_by_type=dict(errors_by_type),
            endpoints=endpoints,
        )
