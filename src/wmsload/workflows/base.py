"""Scenario, profile and virtual-user context types shared by all workflows."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from wmsload._internal.errors import ScenarioError
from wmsload.data.generators import DEFAULT_POOL, TestDataPool
from wmsload.engine.selection import pace

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from wmsload.dsl.http_client import HttpClient
    from wmsload.metrics.sink import MetricKind, MetricSink
    from wmsload.patterns.stages import Stage
    from wmsload.validation.checks import ResponseValidator


class ScenarioKind(Enum):
    """Every weighted behavior a virtual user can run in one iteration."""

    SMOKE_CYCLE = "smoke_cycle"

    PACKAGE_WORKFLOW = "package_workflow"
    PICKLIST_WORKFLOW = "picklist_workflow"
    MONITORING_CHECK = "monitoring_check"
    MIXED_OPERATIONS = "mixed_operations"

    INTENSIVE_PACKAGE = "intensive_package"
    INTENSIVE_PICKLIST = "intensive_picklist"
    RAPID_FIRE = "rapid_fire"

    PHASED_SPIKE = "phased_spike"

    FULL_PACKAGE_WORKFLOW = "full_package_workflow"
    PACKAGE_CREATION_BURST = "package_creation_burst"
    PACKAGE_RETRIEVAL = "package_retrieval"
    PACKAGE_CONFIRMATION = "package_confirmation"

    PICKER_WORKFLOW = "picker_workflow"
    STATUS_MONITORING = "status_monitoring"
    PICK_CONFIRMATION = "pick_confirmation"
    NEXT_TASK_POLLING = "next_task_polling"
    BULK_QUERIES = "bulk_queries"


@dataclass(frozen=True)
class CreatedPackage:
    """A package this virtual user created, kept for later lookups."""

    package_id: str
    order_id: str


@dataclass
class VirtualUserContext:
    """Everything one virtual user's workflows need.

    Each virtual user owns exactly one context; only ``sink`` is shared
    between users.

    Attributes:
        user_id: Virtual user number, unique within the run.
        client: The user's HTTP client.
        sink: Run-wide metric sink.
        validator: Validator recording into ``sink``.
        pool: Value pool for payload generation.
        rng: The user's random source.
        think_scale: Multiplier applied to every sleep.
        phase_source: Returns the phase currently published by the session.
        created_packages: Packages created by this user in earlier steps.
    """

    user_id: int
    client: HttpClient
    sink: MetricSink
    validator: ResponseValidator
    pool: TestDataPool = DEFAULT_POOL
    rng: random.Random = field(default_factory=random.Random)
    think_scale: float = 1.0
    phase_source: Callable[[], str | None] = lambda: None
    created_packages: list[CreatedPackage] = field(default_factory=list)

    @property
    def phase(self) -> str | None:
        """Phase of the stage schedule currently published by the session."""
        return self.phase_source()

    async def think(self, base: float, jitter_percent: float = 20.0) -> None:
        """Suspend this user for a jittered think time around *base* seconds."""
        await asyncio.sleep(pace(base, jitter_percent, self.rng) * self.think_scale)

    async def pause(self, seconds: float) -> None:
        """Suspend this user for a fixed, scaled delay."""
        await asyncio.sleep(seconds * self.think_scale)


@dataclass(frozen=True)
class Scenario:
    """A weighted, typed unit of work chosen once per iteration.

    Attributes:
        kind: Which behavior this is.
        weight: Relative selection weight (>= 0).
        run: The workflow coroutine function.

    Raises:
        ScenarioError: If *weight* is negative.
    """

    kind: ScenarioKind
    weight: float
    run: Callable[[VirtualUserContext], Awaitable[None]]

    def __post_init__(self) -> None:
        if self.weight < 0:
            msg = f"Scenario {self.kind.value!r} has negative weight {self.weight}"
            raise ScenarioError(msg)

    @property
    def name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class IterationPace:
    """Think time applied after every iteration: ``base`` seconds ± ``jitter_percent``.

    ``by_phase`` overrides both values for iterations that started in a
    named phase of the stage schedule.
    """

    base: float
    jitter_percent: float = 20.0
    by_phase: Mapping[str, tuple[float, float]] = field(default_factory=lambda: MappingProxyType({}))

    def for_phase(self, phase: str | None) -> tuple[float, float]:
        """Return ``(base, jitter_percent)`` for an iteration that ran in *phase*."""
        if phase is not None and phase in self.by_phase:
            return self.by_phase[phase]
        return self.base, self.jitter_percent


@dataclass(frozen=True)
class Profile:
    """A named traffic shape.

    Attributes:
        name: Profile name used on the command line.
        description: One-line description.
        stages: Default stage schedule.
        scenarios: Weighted scenarios chosen per iteration.
        thresholds: Metric name (optionally with a ``{tag:value}`` suffix)
            to threshold expressions.
        metrics: Custom metrics the workflows record into.
        iteration_pace: Think time after each iteration, or None.
        iteration_trend: Trend receiving each iteration's duration in ms,
            tagged with the current phase.
        iteration_counter: Counter incremented once per iteration.
        error_rate: Rate receiving a true observation for each unexpected
            iteration exception.
        teardown: Post-run probes returning probe name to pass/fail.
    """

    name: str
    description: str
    stages: tuple[Stage, ...]
    scenarios: tuple[Scenario, ...]
    thresholds: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    metrics: Mapping[str, MetricKind] = field(default_factory=lambda: MappingProxyType({}))
    iteration_pace: IterationPace | None = None
    iteration_trend: str | None = None
    iteration_counter: str | None = None
    error_rate: str | None = None
    teardown: Callable[[VirtualUserContext], Awaitable[dict[str, bool]]] | None = None

    def __post_init__(self) -> None:
        if not self.scenarios:
            msg = f"Profile {self.name!r} declares no scenarios"
            raise ScenarioError(msg)
