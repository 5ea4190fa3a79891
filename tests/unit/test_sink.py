"""Tests for the metric sink and its counter, rate and trend metrics."""

from __future__ import annotations

import threading

import pytest

from wmsload._internal.errors import MetricError
from wmsload.metrics.sink import Counter, MetricKind, MetricSink, Rate, Trend, submetric_name


class TestCounter:
    def test_count_and_rate(self):
        counter = Counter("packages_created_total")
        counter.add()
        counter.add(4)
        assert counter.values(10.0) == {"count": 5.0, "rate": 0.5}

    def test_zero_elapsed_rate(self):
        counter = Counter("c")
        counter.add()
        assert counter.values(0.0)["rate"] == 0.0

    def test_cannot_decrease(self):
        with pytest.raises(MetricError, match="cannot decrease"):
            Counter("c").add(-1)


class TestRate:
    def test_rate_of_true_observations(self):
        rate = Rate("package_creation_success")
        for value in (True, True, True, False):
            rate.add(value)
        assert rate.rate == 0.75
        assert rate.values(1.0) == {"rate": 0.75, "passes": 3, "fails": 1}

    def test_empty_rate_is_zero(self):
        assert Rate("r").rate == 0.0


class TestTrend:
    def test_exact_aggregates(self):
        trend = Trend("api_response_time")
        for value in (10.0, 20.0, 30.0, 40.0):
            trend.add(value)
        values = trend.values(1.0)
        assert values["count"] == 4
        assert values["avg"] == 25.0
        assert values["min"] == 10.0
        assert values["max"] == 40.0

    def test_percentiles(self):
        trend = Trend("t")
        for i in range(1, 1001):
            trend.add(float(i))
        values = trend.values(1.0)
        assert values["med"] == pytest.approx(500, rel=0.01)
        assert values["p(90)"] == pytest.approx(900, rel=0.01)
        assert values["p(95)"] == pytest.approx(950, rel=0.01)
        assert values["p(99)"] == pytest.approx(990, rel=0.01)

    def test_empty_trend(self):
        values = Trend("t").values(1.0)
        assert values["count"] == 0
        assert values["avg"] == 0.0
        assert values["p(95)"] == 0.0


class TestMetricSink:
    """Tests for MetricSink."""

    def test_declare_and_add(self):
        sink = MetricSink()
        sink.declare("errors", MetricKind.RATE)
        sink.add("errors", False)
        sink.add("errors", True)
        assert sink.summary(1.0)["errors"].values["rate"] == 0.5
        assert "errors" in sink

    def test_add_undeclared_raises(self):
        with pytest.raises(MetricError, match="not declared"):
            MetricSink().add("missing", 1)

    def test_redeclare_same_kind_is_noop(self):
        sink = MetricSink()
        sink.declare("iterations", MetricKind.COUNTER)
        sink.add("iterations")
        sink.declare("iterations", MetricKind.COUNTER)
        assert sink.summary(1.0)["iterations"].values["count"] == 1

    def test_redeclare_other_kind_raises(self):
        sink = MetricSink()
        sink.declare("x", MetricKind.RATE)
        with pytest.raises(MetricError, match="already declared"):
            sink.declare("x", MetricKind.TREND)

    def test_tagged_submetric(self):
        """Samples update the declared sub-metric matching one of their tags."""
        sink = MetricSink()
        sink.declare("http_req_duration", MetricKind.TREND)
        sink.declare(submetric_name("http_req_duration", "endpoint", "health"), MetricKind.TREND)

        sink.add("http_req_duration", 100.0, {"endpoint": "health"})
        sink.add("http_req_duration", 300.0, {"endpoint": "packages"})

        summary = sink.summary(1.0)
        assert summary["http_req_duration"].values["count"] == 2
        assert summary["http_req_duration{endpoint:health}"].values["count"] == 1
        assert summary["http_req_duration{endpoint:health}"].values["max"] == 100.0

    def test_undeclared_submetric_is_ignored(self):
        sink = MetricSink()
        sink.declare("http_reqs", MetricKind.COUNTER)
        sink.add("http_reqs", 1, {"phase": "spike"})
        assert list(sink.summary(1.0)) == ["http_reqs"]

    def test_record_check(self):
        sink = MetricSink()
        sink.declare("checks", MetricKind.RATE)
        sink.record_check("health - status is 200", True)
        sink.record_check("health - status is 200", False)
        sink.record_check("health - status is UP", True)

        tallies = {t.name: (t.passes, t.fails) for t in sink.check_tallies()}
        assert tallies == {"health - status is 200": (1, 1), "health - status is UP": (1, 0)}
        assert sink.summary(1.0)["checks"].values["rate"] == pytest.approx(2 / 3)

    def test_get(self):
        sink = MetricSink()
        sink.declare("t", MetricKind.TREND)
        assert isinstance(sink.get("t"), Trend)
        assert sink.get("nope") is None

    def test_concurrent_updates_are_not_lost(self):
        sink = MetricSink()
        sink.declare("n", MetricKind.COUNTER)
        sink.declare("r", MetricKind.RATE)

        def worker() -> None:
            for _ in range(1000):
                sink.add("n")
                sink.add("r", True)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        summary = sink.summary(1.0)
        assert summary["n"].values["count"] == 8000
        assert summary["r"].values["passes"] == 8000
