"""Pass/fail criteria evaluated against final metric values.

Expressions follow the k6 form ``<aggregate><op><number>``:

- ``p(95)<2000``: trend percentile
- ``avg<3000``, ``med<500``, ``max<10000``: trend aggregates
- ``rate<0.01``: rate metric
- ``count>50``: counter
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from wmsload._internal.errors import ConfigError
from wmsload.metrics.sink import MetricKind

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from wmsload.metrics.sink import MetricSink

_EXPRESSION = re.compile(
    r"^\s*(?P<agg>p\(\d+(?:\.\d+)?\)|avg|min|max|med|rate|count)\s*"
    r"(?P<op><=|>=|==|!=|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_TREND_AGGREGATES = frozenset({"avg", "min", "max", "med"})


@dataclass(frozen=True)
class ThresholdExpression:
    """A parsed threshold expression."""

    source: str
    aggregate: str
    op: str
    value: float

    @classmethod
    def parse(cls, source: str) -> ThresholdExpression:
        """Parse *source*.

        Raises:
            ConfigError: If *source* is not a valid expression.
        """
        match = _EXPRESSION.match(source)
        if match is None:
            msg = f"Invalid threshold expression: {source!r}"
            raise ConfigError(msg)
        return cls(
            source=source.strip(),
            aggregate=match.group("agg"),
            op=match.group("op"),
            value=float(match.group("value")),
        )

    def accepts(self, kind: MetricKind) -> bool:
        """Return True if this expression applies to a metric of *kind*."""
        if kind is MetricKind.RATE:
            return self.aggregate == "rate"
        if kind is MetricKind.COUNTER:
            return self.aggregate in {"count", "rate"}
        return self.aggregate in _TREND_AGGREGATES or self.aggregate.startswith("p(")

    def evaluate(self, observed: float) -> bool:
        return _OPERATORS[self.op](observed, self.value)


@dataclass(frozen=True)
class ThresholdResult:
    """Verdict for one threshold expression.

    Attributes:
        metric: Metric name the threshold applies to.
        expression: Expression source, e.g. ``"p(95)<2000"``.
        observed: Observed aggregate value, or None if the metric has no data.
        passed: Whether the threshold held.
    """

    metric: str
    expression: str
    observed: float | None
    passed: bool


def parse_thresholds(
    thresholds: Mapping[str, Sequence[str]],
) -> dict[str, list[ThresholdExpression]]:
    """Parse a ``{metric: [expression, ...]}`` mapping up front.

    Raises:
        ConfigError: If any expression is invalid.
    """
    return {
        metric: [ThresholdExpression.parse(expr) for expr in exprs]
        for metric, exprs in thresholds.items()
    }


def _observed_value(expr: ThresholdExpression, values: Mapping[str, float]) -> float | None:
    if expr.aggregate.startswith("p("):
        percentile = float(expr.aggregate[2:-1])
        key = "med" if percentile == 50.0 else f"p({percentile:g})"
        return values.get(key)
    return values.get(expr.aggregate)


def evaluate_thresholds(
    sink: MetricSink,
    thresholds: Mapping[str, Sequence[str]],
) -> list[ThresholdResult]:
    """Evaluate every threshold against the sink's final values.

    A threshold on a metric with no observations passes, matching k6, whose
    thresholds only fail on recorded data. A threshold on an undeclared
    metric is a configuration error.

    Args:
        sink: The metric sink holding final values.
        thresholds: Mapping of metric name to expression list.

    Returns:
        One ThresholdResult per expression, in declaration order.

    Raises:
        ConfigError: If a metric is undeclared or an expression does not
            apply to the metric's kind.
    """
    summaries = sink.summary()
    results: list[ThresholdResult] = []

    for metric_name, exprs in parse_thresholds(thresholds).items():
        summary = summaries.get(metric_name)
        if summary is None:
            msg = f"Threshold references undeclared metric {metric_name!r}"
            raise ConfigError(msg)

        empty = (summary.kind is MetricKind.RATE and summary.values["passes"] + summary.values["fails"] == 0) or (
            summary.kind is MetricKind.TREND and summary.values["count"] == 0
        )

        for expr in exprs:
            if not expr.accepts(summary.kind):
                msg = f"Threshold {expr.source!r} does not apply to {summary.kind.value} metric {metric_name!r}"
                raise ConfigError(msg)

            if empty:
                results.append(ThresholdResult(metric_name, expr.source, None, passed=True))
                continue

            observed = _observed_value(expr, summary.values)
            if observed is None and expr.aggregate.startswith("p("):
                trend = sink.get(metric_name)
                observed = trend.percentile(float(expr.aggregate[2:-1]))  # type: ignore[union-attr]

            if observed is None:
                msg = f"Threshold {expr.source!r} has no value for metric {metric_name!r}"
                raise ConfigError(msg)
            results.append(
                ThresholdResult(
                    metric=metric_name,
                    expression=expr.source,
                    observed=observed,
                    passed=expr.evaluate(observed),
                )
            )

    return results
