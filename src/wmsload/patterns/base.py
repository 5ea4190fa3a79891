"""Abstract base class for virtual-user schedules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from wmsload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """Abstract base for all virtual-user schedules.

    A pattern defines how the target number of concurrent virtual users
    changes over time, and optionally which named phase (``baseline``,
    ``spike``, ``recovery``) is current at a given offset. Concrete
    subclasses implement :meth:`iter_concurrency` to yield
    ``(elapsed_seconds, target_concurrency)`` tuples at a tick interval.

    Example::

        pattern = StagePattern([Stage(30.0, 10), Stage(60.0, 10), Stage(30.0, 0)])
        for elapsed, users in pattern.iter_concurrency(pattern.total_duration):
            print(f"t={elapsed:.1f}s -> {users} users ({pattern.phase_at(elapsed)})")
    """

    @abstractmethod
    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_concurrency)`` at each tick.

        Args:
            duration_seconds: Total duration to generate ticks for.
            tick_interval: Seconds between each yielded tick.  Defaults to 1.0.

        Yields:
            ``(elapsed_seconds, target_concurrency)`` pairs.
        """

    @abstractmethod
    def describe(self) -> str:
        """Return a short human-readable description for logs and reports."""

    def phase_at(self, elapsed_seconds: float) -> str | None:
        """Return the named phase current at *elapsed_seconds*, if any."""
        return None


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is not strictly positive."""
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is negative."""
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigError(msg)
