"""Scheduler that turns a LoadPattern's timeline into scale commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from wmsload.patterns.base import LoadPattern


class ScaleDirection(Enum):
    """Direction of a concurrency scale event."""

    UP = auto()
    DOWN = auto()
    HOLD = auto()


@dataclass(frozen=True)
class ScaleCommand:
    """A command to adjust the number of active virtual users.

    Attributes:
        elapsed_seconds: Time offset from the start of the run.
        target_concurrency: Desired number of active virtual users.
        direction: Whether this is scaling up, down, or holding steady.
        delta: Absolute change in virtual user count (always >= 0).
        phase: Named phase of the schedule at this tick, if any.
    """

    elapsed_seconds: float
    target_concurrency: int
    direction: ScaleDirection
    delta: int
    phase: str | None = None


class Scheduler:
    """Emits one ``ScaleCommand`` per tick of a pattern.

    The session applies each command and publishes ``phase`` to the
    virtual users, so phase-aware workflows never compute it from the
    wall clock.

    Args:
        pattern: The schedule to follow.
        duration_seconds: Total run duration in seconds.
        tick_interval: Seconds between concurrency adjustments.
    """

    def __init__(
        self,
        pattern: LoadPattern,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> None:
        self._pattern = pattern
        self._duration_seconds = duration_seconds
        self._tick_interval = tick_interval

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield a ScaleCommand for each tick, tracking the previous level."""
        prev_concurrency = 0
        for elapsed, target in self._pattern.iter_concurrency(
            self._duration_seconds, self._tick_interval
        ):
            delta = target - prev_concurrency
            if delta > 0:
                direction = ScaleDirection.UP
            elif delta < 0:
                direction = ScaleDirection.DOWN
            else:
                direction = ScaleDirection.HOLD

            yield ScaleCommand(
                elapsed_seconds=elapsed,
                target_concurrency=target,
                direction=direction,
                delta=abs(delta),
                phase=self._pattern.phase_at(elapsed),
            )
            prev_concurrency = target

    @property
    def total_ticks(self) -> int:
        """Return the expected number of ticks for this schedule."""
        return int(self._duration_seconds / self._tick_interval) + 1
