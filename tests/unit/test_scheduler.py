"""Tests for the Scheduler that converts schedules into scale commands."""

from __future__ import annotations

from wmsload.engine.scheduler import ScaleCommand, ScaleDirection, Scheduler
from wmsload.patterns import ConstantPattern, Stage, StagePattern


class TestScaleCommand:
    def test_default_phase(self):
        command = ScaleCommand(
            elapsed_seconds=0.0,
            target_concurrency=1,
            direction=ScaleDirection.UP,
            delta=1,
        )
        assert command.phase is None


class TestScheduler:
    """Tests for Scheduler.iter_commands."""

    def test_constant_pattern_scales_up_once(self):
        scheduler = Scheduler(ConstantPattern(users=5), duration_seconds=3.0)
        commands = list(scheduler.iter_commands())

        assert len(commands) == 4
        assert commands[0].direction is ScaleDirection.UP
        assert commands[0].delta == 5
        assert all(c.direction is ScaleDirection.HOLD for c in commands[1:])
        assert all(c.delta == 0 for c in commands[1:])

    def test_stage_ramp_directions(self):
        pattern = StagePattern([Stage(2, 4), Stage(2, 0)])
        commands = list(Scheduler(pattern, pattern.total_duration).iter_commands())

        assert [c.target_concurrency for c in commands] == [0, 2, 4, 2, 0]
        assert [c.direction for c in commands] == [
            ScaleDirection.HOLD,
            ScaleDirection.UP,
            ScaleDirection.UP,
            ScaleDirection.DOWN,
            ScaleDirection.DOWN,
        ]
        assert all(c.delta == 2 for c in commands[1:])

    def test_publishes_phase(self):
        pattern = StagePattern(
            [
                Stage(2, 5, "baseline"),
                Stage(1, 20, "spike"),
                Stage(2, 5, "recovery"),
            ]
        )
        phases = [c.phase for c in Scheduler(pattern, pattern.total_duration).iter_commands()]
        assert phases == ["baseline", "baseline", "spike", "recovery", "recovery", "recovery"]

    def test_elapsed_follows_tick_interval(self):
        scheduler = Scheduler(ConstantPattern(users=1), duration_seconds=1.0, tick_interval=0.25)
        elapsed = [c.elapsed_seconds for c in scheduler.iter_commands()]
        assert elapsed == [0.0, 0.25, 0.5, 0.75, 1.0]

    def test_total_ticks(self):
        assert Scheduler(ConstantPattern(users=1), duration_seconds=10.0).total_ticks == 11
