"""HDR histogram wrapper used by trend metrics for percentile computation.

Wraps ``hdrh.histogram.HdrHistogram``, which only stores integers, by
scaling every sample by ``1000`` (milliseconds are stored as microseconds,
item counts as thousandths).
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Range in scaled units: 0.001 to 3_600_000 (one hour in ms)
_LOWEST_TRACKABLE = 1
_HIGHEST_TRACKABLE = 3_600_000_000
_SIGNIFICANT_DIGITS = 3
_SCALE = 1000


class HdrHistogramWrapper:
    """Float-valued facade over an HDR histogram.

    Values are clamped to the trackable range when recorded. Negative
    samples are clamped to the lowest trackable value.

    Attributes:
        lowest: Lowest trackable scaled value.
        highest: Highest trackable scaled value.
    """

    def __init__(
        self,
        lowest: int = _LOWEST_TRACKABLE,
        highest: int = _HIGHEST_TRACKABLE,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest = lowest
        self.highest = highest
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest, highest, significant_digits
        )

    def record(self, value: float) -> bool:
        """Record a sample.

        Args:
            value: Sample value (e.g., latency in milliseconds).

        Returns:
            True if the value was recorded.
        """
        scaled = int(value * _SCALE)
        scaled = max(self.lowest, min(scaled, self.highest))
        return bool(self._histogram.record_value(scaled))

    def get_percentile(self, percentile: float) -> float:
        """Return the value at *percentile* (0-100), or 0.0 when empty."""
        if self._histogram.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / _SCALE

    def get_total_count(self) -> int:
        """Return the number of recorded samples."""
        return int(self._histogram.total_count)
