"""Tests for HdrHistogramWrapper."""

from __future__ import annotations

from wmsload.metrics.histogram import HdrHistogramWrapper


class TestHdrHistogramWrapper:
    def test_record_and_get_percentile(self):
        h = HdrHistogramWrapper()
        for i in range(1, 101):
            h.record(float(i))

        assert 49.0 <= h.get_percentile(50.0) <= 51.0
        assert 98.0 <= h.get_percentile(99.0) <= 101.0

    def test_empty_histogram_returns_zero(self):
        h = HdrHistogramWrapper()
        assert h.get_percentile(50.0) == 0.0
        assert h.get_total_count() == 0

    def test_fractional_values_keep_precision(self):
        """Item counts and sub-millisecond latencies survive the scaling."""
        h = HdrHistogramWrapper()
        h.record(2.5)
        assert 2.49 <= h.get_percentile(50.0) <= 2.51

    def test_clamps_extreme_values(self):
        h = HdrHistogramWrapper()
        h.record(-5.0)
        h.record(0.0)
        h.record(10_000_000.0)
        assert h.get_total_count() == 3
        assert h.get_percentile(0.0) > 0.0
        assert h.get_percentile(100.0) <= 3_600_000 * 1.001

    def test_record_returns_true(self):
        assert HdrHistogramWrapper().record(10.0) is True

    def test_percentiles_ascend(self):
        h = HdrHistogramWrapper()
        for i in range(1, 1001):
            h.record(float(i))

        p50 = h.get_percentile(50.0)
        p90 = h.get_percentile(90.0)
        p95 = h.get_percentile(95.0)
        p99 = h.get_percentile(99.0)

        assert p50 < p90 < p95 < p99
        assert 490.0 <= p50 <= 510.0
        assert 890.0 <= p90 <= 910.0
