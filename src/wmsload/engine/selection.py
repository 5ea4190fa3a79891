"""Virtual user utilities: weighted scenario selection, pacing, shutdown."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Protocol, TypeVar

from wmsload._internal.errors import ScenarioError
from wmsload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("engine.selection")

# Shortest think time ever returned by pace().
MIN_PACE_SECONDS = 0.1


class Weighted(Protocol):
    """Anything carrying a relative selection weight."""

    @property
    def weight(self) -> float: ...


W = TypeVar("W", bound=Weighted)


def select_weighted(scenarios: Sequence[W], rng: random.Random | None = None) -> W:
    """Pick one entry with probability ``weight / total_weight``.

    Draws ``r`` uniformly in ``[0, total)`` and walks the list subtracting
    each weight until ``r`` is no longer positive. If floating-point drift
    exhausts the list, or every weight is zero, the last entry is returned.

    Args:
        scenarios: Entries to choose from, in declaration order.
        rng: Optional random source.

    Returns:
        The selected entry.

    Raises:
        ScenarioError: If *scenarios* is empty.
    """
    if not scenarios:
        msg = "Cannot select from an empty scenario list"
        raise ScenarioError(msg)

    total = sum(s.weight for s in scenarios)
    r = (rng or random).random() * total  # noqa: S311
    for entry in scenarios:
        if entry.weight <= 0:
            continue
        r -= entry.weight
        if r <= 0:
            return entry
    return scenarios[-1]


def pace(base: float, jitter_percent: float = 20.0, rng: random.Random | None = None) -> float:
    """Return a think time around *base* seconds with bounded jitter.

    The result lies in ``[base - j, base + j]`` where
    ``j = base * jitter_percent / 100``, floored at ``MIN_PACE_SECONDS``.
    """
    jitter = base * (jitter_percent / 100)
    offset = ((rng or random).random() - 0.5) * 2 * jitter  # noqa: S311
    return max(base + offset, MIN_PACE_SECONDS)


async def shutdown_all_users(
    user_tasks: list[tuple[int, asyncio.Task[None]]],
    stop_event: asyncio.Event,
    *,
    grace_seconds: float = 5.0,
) -> None:
    """Gracefully shut down all virtual users.

    Sets the stop event, waits up to *grace_seconds* for users to finish
    their current iteration, then cancels the rest.

    Args:
        user_tasks: List of (user_id, task) tuples to shut down.
        stop_event: Event observed by every virtual user loop.
        grace_seconds: Time allowed for in-flight iterations.
    """
    stop_event.set()

    if user_tasks:
        tasks = [t for _, t in user_tasks]
        _done, pending = await asyncio.wait(tasks, timeout=grace_seconds)

        for task in pending:
            task.cancel()

        if pending:
            await asyncio.wait(pending, timeout=2.0)

    user_tasks.clear()
    logger.debug("All virtual users shut down")
