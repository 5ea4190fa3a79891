"""Constant schedule: a fixed number of concurrent virtual users."""

from __future__ import annotations

from typing import TYPE_CHECKING

from wmsload._internal.errors import ConfigError
from wmsload.patterns.base import LoadPattern, _validate_positive

if TYPE_CHECKING:
    from collections.abc import Iterator


class ConstantPattern(LoadPattern):
    """Hold *users* virtual users for the whole run.

    Used for ad-hoc runs (``wmsload run smoke --stage`` is the staged
    alternative) and in tests that need a steady population.

    Args:
        users: Number of concurrent virtual users.  Must be >= 1.
        phase: Optional phase label reported for the whole run.

    Raises:
        ConfigError: If *users* < 1.
    """

    def __init__(self, users: int, phase: str | None = None) -> None:
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise ConfigError(msg)
        self.users = users
        self._phase = phase

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        _validate_positive(duration_seconds, "duration_seconds")
        _validate_positive(tick_interval, "tick_interval")
        elapsed = 0.0
        while elapsed <= duration_seconds:
            yield (elapsed, self.users)
            elapsed += tick_interval

    def phase_at(self, elapsed_seconds: float) -> str | None:
        return self._phase

    def describe(self) -> str:
        return f"Constant: {self.users} users"
