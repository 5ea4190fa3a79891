"""Staged schedule: linear ramps between target user counts.

A stage schedule is an ordered list of ``(duration, target)`` pairs. The
population starts at zero and moves linearly to each stage's target over
that stage's duration, the same shape k6 ``stages`` describe.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from wmsload._internal.config import parse_duration
from wmsload._internal.errors import ConfigError
from wmsload.patterns.base import LoadPattern, _validate_non_negative, _validate_positive

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


@dataclass(frozen=True)
class Stage:
    """One segment of a stage schedule.

    Attributes:
        duration: Segment length in seconds.
        target: Virtual users reached at the end of the segment.
        phase: Optional label, e.g. ``"spike"``, published while the
            segment is current.
    """

    duration: float
    target: int
    phase: str | None = None

    def __post_init__(self) -> None:
        _validate_non_negative(self.duration, "stage duration")
        if self.target < 0:
            msg = f"stage target must be >= 0, got {self.target}"
            raise ConfigError(msg)

    @classmethod
    def parse(cls, spec: str) -> Stage:
        """Parse a ``"<duration>:<target>[:<phase>]"`` string such as ``"30s:10"``.

        Raises:
            ConfigError: If *spec* is malformed.
        """
        parts = spec.split(":")
        if len(parts) not in (2, 3):
            msg = f"Invalid stage {spec!r}: expected '<duration>:<target>[:<phase>]'"
            raise ConfigError(msg)
        try:
            target = int(parts[1])
        except ValueError:
            msg = f"Invalid stage {spec!r}: target must be an integer"
            raise ConfigError(msg) from None
        phase = parts[2] if len(parts) == 3 and parts[2] else None
        return cls(duration=parse_duration(parts[0]), target=target, phase=phase)


class StagePattern(LoadPattern):
    """Piecewise-linear schedule over a list of stages.

    Args:
        stages: Stages in execution order. Must not be empty and must have a
            positive total duration.

    Raises:
        ConfigError: If the schedule is empty or has zero total duration.
    """

    def __init__(self, stages: Sequence[Stage]) -> None:
        if not stages:
            msg = "A stage schedule needs at least one stage"
            raise ConfigError(msg)
        self.stages = tuple(stages)
        _validate_positive(self.total_duration, "total stage duration")

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.stages)

    @property
    def peak(self) -> int:
        return max(s.target for s in self.stages)

    def _locate(self, elapsed_seconds: float) -> tuple[int, float, int]:
        """Return ``(stage index, offset into stage, starting target)``."""
        start = 0.0
        previous = 0
        for index, stage in enumerate(self.stages):
            if elapsed_seconds < start + stage.duration:
                return index, elapsed_seconds - start, previous
            start += stage.duration
            previous = stage.target
        return len(self.stages) - 1, self.stages[-1].duration, previous

    def target_at(self, elapsed_seconds: float) -> int:
        """Return the target population at *elapsed_seconds*, rounded."""
        if elapsed_seconds >= self.total_duration:
            return self.stages[-1].target
        index, offset, previous = self._locate(max(elapsed_seconds, 0.0))
        stage = self.stages[index]
        fraction = offset / stage.duration
        return round(previous + (stage.target - previous) * fraction)

    def phase_at(self, elapsed_seconds: float) -> str | None:
        index, _, _ = self._locate(max(elapsed_seconds, 0.0))
        return self.stages[index].phase

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        _validate_positive(duration_seconds, "duration_seconds")
        _validate_positive(tick_interval, "tick_interval")
        elapsed = 0.0
        while elapsed <= duration_seconds:
            yield (elapsed, self.target_at(elapsed))
            elapsed += tick_interval

    def describe(self) -> str:
        steps = " -> ".join(f"{s.target}@{s.duration:g}s" for s in self.stages)
        return f"Stages: {steps} (peak {self.peak} users, {self.total_duration:g}s)"
