"""Test session lifecycle management and signal handling."""

from __future__ import annotations

import asyncio
import contextlib
import random
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from wmsload._internal.errors import ConfigError, EngineError, SetupError
from wmsload._internal.logging import get_logger
from wmsload.data.generators import DEFAULT_POOL, TestDataPool
from wmsload.dsl.http_client import HttpClient
from wmsload.engine.scheduler import Scheduler
from wmsload.engine.selection import select_weighted, shutdown_all_users
from wmsload.metrics.collector import MetricCollector
from wmsload.metrics.models import Assessment, TestResult
from wmsload.metrics.sink import MetricKind, MetricSink
from wmsload.metrics.store import MetricStore
from wmsload.metrics.thresholds import evaluate_thresholds, parse_thresholds
from wmsload.patterns.stages import StagePattern
from wmsload.validation.checks import ResponseValidator
from wmsload.workflows.base import VirtualUserContext
from wmsload.workflows.steps import HEALTH_PATH

if TYPE_CHECKING:
    from collections.abc import Callable

    from wmsload._internal.config import WmsLoadConfig
    from wmsload._internal.types import Tags
    from wmsload.dsl.http_client import RequestMetric
    from wmsload.metrics.models import MetricSnapshot
    from wmsload.patterns.base import LoadPattern
    from wmsload.workflows.base import Profile

logger = get_logger("engine.session")

PREFLIGHT_TIMEOUT_SECONDS = 10.0

BUILTIN_METRICS: dict[str, MetricKind] = {
    "http_reqs": MetricKind.COUNTER,
    "http_req_duration": MetricKind.TREND,
    "http_req_failed": MetricKind.RATE,
    "checks": MetricKind.RATE,
    "iterations": MetricKind.COUNTER,
    "iteration_duration": MetricKind.TREND,
    "iteration_errors": MetricKind.RATE,
}


class SessionState(Enum):
    """State machine for a test session."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


def declare_profile_metrics(sink: MetricSink, profile: Profile) -> None:
    """Declare built-in, profile and threshold sub-metrics on *sink*.

    A threshold key such as ``http_req_duration{endpoint:health}`` declares
    a sub-metric of the same kind as its base metric.

    Raises:
        ConfigError: If a threshold names an unknown base metric or an
            expression is invalid.
    """
    kinds = {**BUILTIN_METRICS, **profile.metrics}
    for name, kind in kinds.items():
        sink.declare(name, kind)

    parse_thresholds(profile.thresholds)
    for key in profile.thresholds:
        base = key.split("{", 1)[0]
        kind = kinds.get(base)
        if kind is None:
            msg = f"Profile {profile.name!r} has a threshold on unknown metric {base!r}"
            raise ConfigError(msg)
        if key != base:
            sink.declare(key, kind)


class TestSession:
    """Manages the lifecycle of one profile run.

    Coordinates the pre-flight check, the scheduler, virtual users, metric
    collection, post-run probes, threshold evaluation and signal handling.

    State machine: CREATED -> STARTING -> RUNNING -> STOPPING -> COMPLETED
                                                  -> FAILED (on error)

    Attributes:
        profile: The profile being executed.
        sink: Run-wide metric sink.
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        profile: Profile,
        config: WmsLoadConfig,
        *,
        pattern: LoadPattern | None = None,
        duration_seconds: float | None = None,
        tick_interval: float = 1.0,
        check_thresholds: bool = True,
        pool: TestDataPool = DEFAULT_POOL,
        seed: int | None = None,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
    ) -> None:
        """Initialize a test session.

        Args:
            profile: The profile to run.
            config: Target environment and client settings.
            pattern: Schedule overriding the profile's stages.
            duration_seconds: Run length; defaults to the schedule's total.
            tick_interval: Seconds between concurrency adjustments.
            check_thresholds: Evaluate the profile's thresholds at the end.
            pool: Value pool for payload generation.
            seed: Seed for reproducible per-user random sources.
            on_snapshot: Called with each per-tick snapshot.

        Raises:
            ConfigError: If the profile's thresholds are invalid.
        """
        self.profile = profile
        self._config = config
        self._pattern = pattern or StagePattern(profile.stages)
        if duration_seconds is None:
            duration_seconds = getattr(self._pattern, "total_duration", None)
        if duration_seconds is None:
            msg = "duration_seconds is required for patterns without a fixed length"
            raise ConfigError(msg)
        self._duration_seconds = duration_seconds
        self._tick_interval = tick_interval
        self._check_thresholds = check_thresholds
        self._pool = pool
        self._seed = seed
        self._on_snapshot = on_snapshot

        self.sink = MetricSink()
        declare_profile_metrics(self.sink, profile)
        self._validator = ResponseValidator(self.sink)

        self._state = SessionState.CREATED
        self._collector = MetricCollector()
        self._store = MetricStore()
        self._phase: str | None = None
        self._user_tasks: list[tuple[int, asyncio.Task[None]]] = []
        self._next_user_id = 0
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """Return the current session state."""
        return self._state

    @property
    def pattern(self) -> LoadPattern:
        """Return the schedule this session follows."""
        return self._pattern

    @property
    def phase(self) -> str | None:
        """Return the phase published at the latest tick."""
        return self._phase

    @property
    def active_user_count(self) -> int:
        """Return the number of active virtual users."""
        return len(self._user_tasks)

    async def run(self) -> TestResult:
        """Execute the full test session lifecycle.

        Returns:
            TestResult with snapshots, metric summaries, check tallies,
            threshold verdicts and the post-run assessment.

        Raises:
            SetupError: If the pre-flight health check fails. No virtual
                user is started.
            EngineError: If the session encounters an unrecoverable error.
        """
        self._state = SessionState.STARTING
        logger.info(
            "Starting profile %s against %s: duration=%.1fs, pattern=%s",
            self.profile.name,
            self._config.target_url,
            self._duration_seconds,
            self._pattern.describe(),
            extra={"profile": self.profile.name},
        )

        try:
            await self._preflight()
        except SetupError:
            self._state = SessionState.FAILED
            raise

        self._install_signal_handlers()
        scheduler = Scheduler(self._pattern, self._duration_seconds, self._tick_interval)

        start_time = time.monotonic()
        self._state = SessionState.RUNNING

        try:
            for command in scheduler.iter_commands():
                if self._stop_event.is_set():
                    break

                target_time = start_time + command.elapsed_seconds
                now = time.monotonic()
                if target_time > now:
                    await asyncio.sleep(target_time - now)

                if self._stop_event.is_set():
                    break

                if command.phase != self._phase:
                    logger.info(
                        "Entering phase %s at %.1fs",
                        command.phase,
                        command.elapsed_seconds,
                        extra={"profile": self.profile.name, "phase": command.phase},
                    )
                self._phase = command.phase
                await self._scale_users(command.target_concurrency)

                elapsed = time.monotonic() - start_time
                snapshot = self._collector.flush(
                    elapsed_seconds=elapsed,
                    active_users=self.active_user_count,
                    phase=self._phase,
                )
                self._store.append(snapshot)
                if self._on_snapshot is not None:
                    self._on_snapshot(snapshot)

                logger.debug(
                    "Tick %.1fs: users=%d, rps=%.1f, p95=%.1fms, errors=%d",
                    elapsed,
                    self.active_user_count,
                    snapshot.requests_per_second,
                    snapshot.latency_p95,
                    snapshot.total_errors,
                )

        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Test session failed")
            raise EngineError("Test session failed") from exc
        finally:
            if self._state != SessionState.FAILED:
                self._state = SessionState.STOPPING
            await shutdown_all_users(self._user_tasks, self._stop_event)
            self._remove_signal_handlers()

        end_time = time.monotonic()
        total_duration = end_time - start_time

        self._collector.flush(
            elapsed_seconds=total_duration,
            active_users=0,
            phase=self._phase,
        )
        final_summary = self._collector.get_cumulative_snapshot(elapsed_seconds=total_duration)

        assessment = await self._assess()
        thresholds = (
            evaluate_thresholds(self.sink, self.profile.thresholds) if self._check_thresholds else []
        )

        self._state = SessionState.COMPLETED
        logger.info(
            "Test completed: duration=%.1fs, total_requests=%d, avg_rps=%.1f, "
            "p95=%.1fms, error_rate=%.2f%%",
            total_duration,
            final_summary.total_requests,
            final_summary.requests_per_second,
            final_summary.latency_p95,
            final_summary.error_rate * 100,
            extra={"profile": self.profile.name},
        )

        return TestResult(
            profile_name=self.profile.name,
            base_url=self._config.target_url,
            start_time=start_time,
            end_time=end_time,
            duration_seconds=total_duration,
            pattern_description=self._pattern.describe(),
            snapshots=self._store.get_all(),
            final_summary=final_summary,
            metrics=self.sink.summary(total_duration),
            checks=self.sink.check_tallies(),
            thresholds=thresholds,
            assessment=assessment,
        )

    async def stop(self) -> None:
        """Request graceful shutdown of the session.

        Sets state to STOPPING, which causes the main loop to exit
        after the current tick.
        """
        if self._state == SessionState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._state = SessionState.STOPPING
            self._stop_event.set()

    def _client(self, *, instrumented: bool = True) -> HttpClient:
        return HttpClient(
            base_url=self._config.target_url,
            headers=self._config.headers,
            metric_callback=self._record_request if instrumented else None,
            timeout=self._config.request_timeout,
        )

    def _context(self, user_id: int, client: HttpClient) -> VirtualUserContext:
        rng = random.Random(self._seed + user_id) if self._seed is not None else random.Random()  # noqa: S311
        return VirtualUserContext(
            user_id=user_id,
            client=client,
            sink=self.sink,
            validator=self._validator,
            pool=self._pool,
            rng=rng,
            think_scale=self._config.think_scale,
            phase_source=lambda: self._phase,
        )

    async def _preflight(self) -> None:
        """Verify the target answers ``GET /actuator/health`` with 200.

        Raises:
            SetupError: On any other status, transport error or timeout.
        """
        async with self._client(instrumented=False) as client:
            response = await client.get(HEALTH_PATH, name="preflight", timeout=PREFLIGHT_TIMEOUT_SECONDS)
        if response.status != 200:
            detail = response.error or f"status {response.status}"
            msg = f"Pre-flight health check against {self._config.target_url} failed: {detail}"
            raise SetupError(msg)
        logger.info("Pre-flight health check passed (%.0fms)", response.elapsed_ms)

    async def _assess(self) -> Assessment | None:
        """Run the profile's post-run probes outside the run metrics."""
        if self.profile.teardown is None:
            return None
        async with self._client(instrumented=False) as client:
            probe_sink = MetricSink()
            ctx = VirtualUserContext(
                user_id=-1,
                client=client,
                sink=probe_sink,
                validator=ResponseValidator(probe_sink),
                pool=self._pool,
                think_scale=self._config.think_scale,
            )
            try:
                probes = await self.profile.teardown(ctx)
            except Exception:
                logger.warning("Post-run assessment failed", exc_info=True)
                probes = {}
        assessment = Assessment(probes=probes)
        logger.info(
            "Post-run assessment: %s (%d/%d probes passed)",
            assessment.grade,
            assessment.passed_count,
            len(assessment.probes),
        )
        return assessment

    def _record_request(self, metric: RequestMetric) -> None:
        """Metric callback shared by every virtual user's client."""
        self._collector.record(metric)
        tags: Tags = dict(metric.tags)
        if self._phase is not None:
            tags.setdefault("phase", self._phase)
        self.sink.add("http_reqs", 1, tags)
        self.sink.add("http_req_duration", metric.latency_ms, tags)
        self.sink.add("http_req_failed", metric.failed, tags)

    async def _run_iteration(self, ctx: VirtualUserContext) -> None:
        scenario = select_weighted(self.profile.scenarios, ctx.rng)
        tags: Tags = {"scenario": scenario.name}
        if ctx.phase is not None:
            tags["phase"] = ctx.phase

        started = time.monotonic()
        failed = False
        try:
            await scenario.run(ctx)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            failed = True
            logger.warning(
                "Scenario %s failed for user %d: %s",
                scenario.name,
                ctx.user_id,
                exc,
                extra={"user_id": ctx.user_id, "scenario": scenario.name, "phase": ctx.phase},
            )
            logger.debug("Traceback for user %d", ctx.user_id, exc_info=True)

        duration_ms = (time.monotonic() - started) * 1000
        self.sink.add("iterations", 1, tags)
        self.sink.add("iteration_duration", duration_ms, tags)
        self.sink.add("iteration_errors", failed, tags)
        if self.profile.iteration_trend is not None:
            self.sink.add(self.profile.iteration_trend, duration_ms, tags)
        if self.profile.iteration_counter is not None:
            self.sink.add(self.profile.iteration_counter, 1, tags)
        if failed and self.profile.error_rate is not None:
            self.sink.add(self.profile.error_rate, True, tags)

    async def _run_virtual_user(self, user_id: int) -> None:
        """Run iterations until stopped or cancelled.

        Args:
            user_id: Unique identifier for this virtual user.
        """
        async with self._client() as client:
            ctx = self._context(user_id, client)
            logger.debug("Virtual user %d started", user_id, extra={"user_id": user_id})
            try:
                while not self._stop_event.is_set():
                    phase = ctx.phase
                    await self._run_iteration(ctx)
                    iteration_pace = self.profile.iteration_pace
                    if iteration_pace is not None:
                        await ctx.think(*iteration_pace.for_phase(phase))
                    else:
                        await asyncio.sleep(0)
            except asyncio.CancelledError:
                pass

    async def _scale_users(self, target: int) -> None:
        """Adjust the number of active virtual users to match target.

        Args:
            target: Desired number of active virtual users.
        """
        current = self.active_user_count

        if target > current:
            for _ in range(target - current):
                user_id = self._next_user_id
                self._next_user_id += 1
                task = asyncio.create_task(
                    self._run_virtual_user(user_id),
                    name=f"virtual-user-{user_id}",
                )
                self._user_tasks.append((user_id, task))

        elif target < current:
            # Newest users stop first.
            for _ in range(current - target):
                if self._user_tasks:
                    _uid, task = self._user_tasks.pop()
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                        await asyncio.wait_for(asyncio.shield(task), timeout=2.0)

        self._user_tasks = [(uid, t) for uid, t in self._user_tasks if not t.done()]

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self._state = SessionState.STOPPING
            self._stop_event.set()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
