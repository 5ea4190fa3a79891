"""Thread-safe in-memory time-series of per-tick metric snapshots."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wmsload.metrics.models import MetricSnapshot


class MetricStore:
    """Ordered storage for the ``MetricSnapshot`` series of one run.

    The session appends one snapshot per scheduler tick; the CLI reads the
    latest for its live table and the whole series for the final result.
    """

    def __init__(self) -> None:
        self._snapshots: list[MetricSnapshot] = []
        self._lock = threading.Lock()

    def append(self, snapshot: MetricSnapshot) -> None:
        with self._lock:
            self._snapshots.append(snapshot)

    def get_all(self) -> list[MetricSnapshot]:
        """Return a copy of all snapshots in chronological order."""
        with self._lock:
            return list(self._snapshots)

    def get_latest(self) -> MetricSnapshot | None:
        """Return the most recent snapshot, or None if the store is empty."""
        with self._lock:
            return self._snapshots[-1] if self._snapshots else None

    def by_phase(self, phase: str) -> list[MetricSnapshot]:
        """Return the snapshots taken while *phase* was the current stage phase.

        Args:
            phase: Phase label, e.g. ``"spike"``.
        """
        with self._lock:
            return [s for s in self._snapshots if s.phase == phase]

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
