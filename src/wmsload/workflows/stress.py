"""High-intensity workflows that tolerate a degraded (503) service."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from wmsload._internal.logging import get_logger
from wmsload.data.generators import (
    PICK_LIST_STATUSES,
    generate_package_payload,
    generate_pick_confirmation_payload,
    generate_pick_list_id,
    random_element,
    random_int,
)
from wmsload.workflows import steps

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.stress")

ERRORS = "errors"
RESPONSE_TIME_P99 = "response_time_p99"

POST_RUN_HEALTH_ATTEMPTS = 5
POST_RUN_HEALTH_RETRY_SECONDS = 10.0


def _record_error(ctx: VirtualUserContext, success: bool) -> None:
    """Record one observation into ``errors``: true when the operation failed."""
    if ERRORS in ctx.sink:
        ctx.sink.add(ERRORS, not success)


def _record_latency(ctx: VirtualUserContext, started: float) -> None:
    if RESPONSE_TIME_P99 in ctx.sink:
        ctx.sink.add(RESPONSE_TIME_P99, (time.monotonic() - started) * 1000)


async def intensive_package(ctx: VirtualUserContext) -> None:
    """Three back-to-back package creations with a 10 s timeout each."""
    for i in range(3):
        started = time.monotonic()
        response = await steps.create_package(
            ctx,
            generate_package_payload(ctx.pool, ctx.rng),
            operation="stress-create",
            timeout=10.0,
        )
        _record_latency(ctx, started)

        success = ctx.validator.check(
            response,
            {
                "stress package creation": lambda r: r.status in (200, 201),
                "response time acceptable": lambda r: r.elapsed_ms < 15000,
            },
        )
        _record_error(ctx, success)

        if i < 2:
            await ctx.pause(0.1)


async def intensive_picklist(ctx: VirtualUserContext) -> None:
    """Two to four rapid pick-list queries or confirmations for one picker."""
    picker_id = random_element(ctx.pool.picker_ids, ctx.rng)

    async def by_picker() -> bool:
        response = await steps.picker_assignments(
            ctx, picker_id, operation="stress-picker", timeout=8.0
        )
        return ctx.validator.check_stress_response(response, "picklist-picker")

    async def by_status() -> bool:
        status = random_element(PICK_LIST_STATUSES, ctx.rng)
        response = await steps.pick_lists_by_status(
            ctx, status, operation="stress-status", timeout=8.0
        )
        return ctx.validator.check_stress_response(response, "picklist-status")

    async def next_up() -> bool:
        response = await steps.next_task(ctx, picker_id, operation="stress-next", timeout=8.0)
        return ctx.validator.check_stress_response(response, "picklist-next")

    async def confirm() -> bool:
        response = await steps.confirm_pick(
            ctx,
            generate_pick_list_id("stress-test", ctx.rng),
            generate_pick_confirmation_payload(ctx.pool, ctx.rng),
            operation="stress-confirm",
            timeout=10.0,
        )
        return ctx.validator.check_stress_response(response, "pick-confirm")

    operations: tuple[Callable[[], Awaitable[bool]], ...] = (by_picker, by_status, next_up, confirm)
    for _ in range(random_int(2, 4, ctx.rng)):
        success = await random_element(operations, ctx.rng)()
        _record_error(ctx, success)
        await ctx.pause(0.05)


async def rapid_fire(ctx: VirtualUserContext) -> None:
    """Four operations with almost no delay: health, package creation, picker lookup."""

    async def health() -> bool:
        started = time.monotonic()
        response = await steps.get_health(ctx, operation="stress-health", timeout=5.0)
        _record_latency(ctx, started)
        return ctx.validator.check(
            response,
            {
                "health responsive under stress": lambda r: r.status == 200,
                "health fast under stress": lambda r: r.elapsed_ms < 3000,
            },
        )

    async def create() -> bool:
        response = await steps.create_package(
            ctx,
            generate_package_payload(ctx.pool, ctx.rng),
            operation="rapid-create",
            timeout=12.0,
        )
        return ctx.validator.check_stress_response(response, "rapid-package")

    async def picker() -> bool:
        picker_id = random_element(ctx.pool.picker_ids, ctx.rng)
        response = await steps.picker_assignments(
            ctx, picker_id, operation="rapid-picker", timeout=8.0
        )
        return ctx.validator.check_stress_response(response, "rapid-picklist")

    operations: tuple[Callable[[], Awaitable[bool]], ...] = (health, create, picker)
    for _ in range(4):
        success = await random_element(operations, ctx.rng)()
        _record_error(ctx, success)
        await ctx.pause(0.02)


async def recovery_probes(ctx: VirtualUserContext) -> dict[str, bool]:
    """Retry the health endpoint until it answers 200, up to five attempts."""
    for attempt in range(1, POST_RUN_HEALTH_ATTEMPTS + 1):
        response = await steps.get_health(ctx, timeout=15.0)
        if response.status == 200:
            logger.info("Post-stress health check passed on attempt %d", attempt)
            return {"post-stress health": True}
        logger.warning(
            "Post-stress health check attempt %d/%d failed (status %d)",
            attempt,
            POST_RUN_HEALTH_ATTEMPTS,
            response.status,
        )
        if attempt < POST_RUN_HEALTH_ATTEMPTS:
            await ctx.pause(POST_RUN_HEALTH_RETRY_SECONDS)
    return {"post-stress health": False}
