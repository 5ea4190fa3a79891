"""Phase-aware workflow for spike runs.

The current phase comes from the stage schedule via the session
(``VirtualUserContext.phase``): ``spike`` stages run aggressive short-sleep
operations, ``recovery`` stages measure how quickly the service answers
normally again, and anything else runs the baseline operations.
"""

from __future__ import annotations

import time
from types import MappingProxyType
from typing import TYPE_CHECKING

from wmsload._internal.logging import get_logger
from wmsload.data.generators import generate_package_payload, random_element, random_int
from wmsload.validation.checks import body_field
from wmsload.workflows import steps
from wmsload.workflows.base import IterationPace

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.spike")

SPIKE_ERRORS = "spike_errors"
RECOVERY_TIME = "recovery_time"

PHASE_BASELINE = "baseline"
PHASE_SPIKE = "spike"
PHASE_RECOVERY = "recovery"

# Think time after an iteration, per phase: (base seconds, jitter percent).
PHASE_PACE = IterationPace(
    2.0,
    20.0,
    by_phase=MappingProxyType(
        {
            PHASE_SPIKE: (0.2, 100.0),
            PHASE_RECOVERY: (1.0, 30.0),
        }
    ),
)


def _record_error(ctx: VirtualUserContext, success: bool) -> None:
    if SPIKE_ERRORS in ctx.sink:
        ctx.sink.add(SPIKE_ERRORS, not success)


async def spike_operations(ctx: VirtualUserContext) -> None:
    """Two or three rapid operations that only require the service to respond."""

    async def create() -> bool:
        response = await steps.create_package(
            ctx, generate_package_payload(ctx.pool, ctx.rng), operation=None, timeout=15.0
        )
        return ctx.validator.check(
            response,
            {
                "spike package creation - not timeout": lambda r: r.status != 0,
                "spike package creation - server responsive": lambda r: r.status < 500 or r.status == 503,
            },
        )

    async def health() -> bool:
        response = await steps.get_health(ctx, timeout=8.0)
        return ctx.validator.check(
            response,
            {
                "spike health - responsive": lambda r: r.status in (200, 503),
                "spike health - timely": lambda r: r.elapsed_ms < 10000,
            },
        )

    async def picker() -> bool:
        picker_id = random_element(ctx.pool.picker_ids, ctx.rng)
        response = await steps.picker_assignments(ctx, picker_id, operation=None, timeout=10.0)
        return ctx.validator.check(
            response,
            {
                "spike picklist - not server error": lambda r: r.status < 500 or r.status == 503,
                "spike picklist - response received": lambda r: r.error is None and r.body is not None,
            },
        )

    operations: tuple[Callable[[], Awaitable[bool]], ...] = (create, health, picker)
    count = random_int(2, 3, ctx.rng)
    for i in range(count):
        success = await random_element(operations, ctx.rng)()
        _record_error(ctx, success)
        if i < count - 1:
            await ctx.pause(0.05)


async def recovery_operations(ctx: VirtualUserContext) -> None:
    """Health then a normal package creation, timing how fast health recovers."""
    started = time.monotonic()
    response = await steps.get_health(ctx, timeout=10.0)
    health_ok = ctx.validator.check(
        response,
        {
            "recovery health - status ok": lambda r: r.status == 200,
            "recovery health - fast response": lambda r: r.elapsed_ms < 3000,
            "recovery health - system up": lambda r: body_field(r, "status") == "UP",
        },
    )
    if health_ok and RECOVERY_TIME in ctx.sink:
        ctx.sink.add(RECOVERY_TIME, (time.monotonic() - started) * 1000)

    await ctx.think(0.5, 20)

    response = await steps.create_package(
        ctx, generate_package_payload(ctx.pool, ctx.rng), operation=None, timeout=8.0
    )
    package_ok = ctx.validator.check(
        response,
        {
            "recovery package - normal operation": lambda r: r.status == 200,
            "recovery package - reasonable time": lambda r: r.elapsed_ms < 5000,
        },
    )
    _record_error(ctx, health_ok and package_ok)


async def baseline_operations(ctx: VirtualUserContext) -> None:
    """Health then a package creation under the regular checks."""
    ctx.validator.check_health_response(await steps.get_health(ctx, timeout=5.0))
    await ctx.think(1, 20)

    response = await steps.create_package(
        ctx, generate_package_payload(ctx.pool, ctx.rng), operation=None, timeout=5.0
    )
    _record_error(ctx, ctx.validator.check_package_creation_response(response))


async def phased_spike(ctx: VirtualUserContext) -> None:
    """Dispatch on the published phase; the session paces with ``PHASE_PACE``."""
    phase = ctx.phase or PHASE_BASELINE
    if phase == PHASE_SPIKE:
        await spike_operations(ctx)
    elif phase == PHASE_RECOVERY:
        await recovery_operations(ctx)
    else:
        await baseline_operations(ctx)


async def post_spike_probes(ctx: VirtualUserContext) -> dict[str, bool]:
    """Post-run probes: health answers, info is fast, packages can be created."""
    health = await steps.get_health(ctx, timeout=15.0)
    await ctx.pause(2)

    info = await steps.get_info(ctx, timeout=10.0)
    await ctx.pause(2)

    create = await steps.create_package(
        ctx, generate_package_payload(ctx.pool, ctx.rng), operation=None, timeout=10.0
    )
    return {
        "health": health.status == 200,
        "response time": info.status == 200 and info.elapsed_ms < 2000,
        "functionality": create.status == 200,
    }
