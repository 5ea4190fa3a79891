"""Tests for weighted scenario selection, pacing and user shutdown."""

from __future__ import annotations

import asyncio
import random
from collections import Counter
from dataclasses import dataclass

import pytest

from wmsload._internal.errors import ScenarioError
from wmsload.engine.selection import MIN_PACE_SECONDS, pace, select_weighted, shutdown_all_users
from wmsload.workflows.base import Scenario, ScenarioKind


@dataclass(frozen=True)
class Entry:
    name: str
    weight: float


async def _noop(ctx) -> None:  # type: ignore[no-untyped-def]
    return None


class TestSelectWeighted:
    """Tests for select_weighted."""

    def test_single_entry(self):
        only = Entry("only", 1)
        assert select_weighted([only]) is only

    def test_empty_raises(self):
        with pytest.raises(ScenarioError, match="empty"):
            select_weighted([])

    def test_distribution_follows_weights(self):
        """40/35/15/10 weights converge on their shares."""
        entries = [Entry("a", 40), Entry("b", 35), Entry("c", 15), Entry("d", 10)]
        rng = random.Random(1234)
        counts = Counter(select_weighted(entries, rng).name for _ in range(20_000))
        for entry in entries:
            assert counts[entry.name] / 20_000 == pytest.approx(entry.weight / 100, abs=0.02)

    def test_zero_weight_never_chosen_when_others_positive(self):
        entries = [Entry("never", 0), Entry("always", 3)]
        rng = random.Random(9)
        assert {select_weighted(entries, rng).name for _ in range(500)} == {"always"}

    def test_all_zero_weights_return_last(self):
        entries = [Entry("a", 0), Entry("b", 0), Entry("c", 0)]
        assert select_weighted(entries, random.Random(0)).name == "c"

    def test_exhaustion_returns_last(self):
        """A draw at the very top of the range still returns an entry."""

        class TopRandom(random.Random):
            def random(self) -> float:
                return 0.9999999999999999

        entries = [Entry("a", 0.1), Entry("b", 0.2)]
        assert select_weighted(entries, TopRandom()).name == "b"

    def test_works_with_scenarios(self):
        scenarios = [
            Scenario(ScenarioKind.PACKAGE_WORKFLOW, 1, _noop),
            Scenario(ScenarioKind.PICKLIST_WORKFLOW, 0, _noop),
        ]
        assert select_weighted(scenarios, random.Random(3)).kind is ScenarioKind.PACKAGE_WORKFLOW

    def test_negative_weight_rejected_at_construction(self):
        with pytest.raises(ScenarioError, match="negative weight"):
            Scenario(ScenarioKind.RAPID_FIRE, -1, _noop)


class TestPace:
    """Tests for jittered pacing."""

    def test_within_bounds(self):
        rng = random.Random(11)
        for _ in range(1000):
            value = pace(2.0, 30, rng)
            assert 1.4 <= value <= 2.6

    def test_zero_jitter_is_exact(self):
        assert pace(1.5, 0, random.Random(0)) == 1.5

    def test_floor(self):
        """Large jitter never produces a sleep under the minimum."""
        rng = random.Random(5)
        assert min(pace(0.2, 100, rng) for _ in range(1000)) >= MIN_PACE_SECONDS

    def test_spread_covers_both_sides(self):
        rng = random.Random(21)
        values = [pace(1.0, 20, rng) for _ in range(500)]
        assert min(values) < 0.9
        assert max(values) > 1.1


class TestShutdownAllUsers:
    """Tests for shutdown_all_users."""

    async def test_waits_for_cooperative_users(self):
        stop = asyncio.Event()
        finished: list[int] = []

        async def user(uid: int) -> None:
            await stop.wait()
            finished.append(uid)

        tasks = [(i, asyncio.create_task(user(i))) for i in range(3)]
        await shutdown_all_users(tasks, stop, grace_seconds=1.0)

        assert stop.is_set()
        assert sorted(finished) == [0, 1, 2]
        assert tasks == []

    async def test_cancels_stragglers(self):
        stop = asyncio.Event()

        async def stubborn() -> None:
            await asyncio.sleep(60)

        task = asyncio.create_task(stubborn())
        tasks = [(0, task)]
        await shutdown_all_users(tasks, stop, grace_seconds=0.05)

        assert task.cancelled()
