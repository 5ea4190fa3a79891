"""Actuator monitoring, mixed operations and the smoke cycle."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from wmsload._internal.logging import get_logger
from wmsload.data.generators import generate_package_payload, random_element, random_int
from wmsload.validation.checks import MONITORING_ACCEPT, NEXT_TASK_ACCEPT, RETRIEVAL_ACCEPT
from wmsload.workflows import steps
from wmsload.workflows.packages import create_and_check

if TYPE_CHECKING:
    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.monitoring")


async def monitoring_check(ctx: VirtualUserContext) -> None:
    """Health, then info, then metrics."""
    response = await steps.get_health(ctx)
    ctx.validator.check_health_response(response)
    await ctx.think(0.5, 15)

    response = await steps.get_info(ctx)
    ctx.validator.check_pick_list_response(response, "info", MONITORING_ACCEPT)
    await ctx.think(0.5, 15)

    response = await steps.get_metrics(ctx)
    ctx.validator.check_pick_list_response(response, "metrics", MONITORING_ACCEPT)


async def mixed_operations(ctx: VirtualUserContext) -> None:
    """Two or three operations drawn at random from health, create and picker lookup."""

    async def health() -> None:
        ctx.validator.check_health_response(await steps.get_health(ctx))

    async def create() -> None:
        await create_and_check(ctx, operation=None)

    async def picker() -> None:
        picker_id = random_element(ctx.pool.picker_ids, ctx.rng)
        response = await steps.picker_assignments(ctx, picker_id, operation=None)
        ctx.validator.check_pick_list_response(response, "picklist-picker", RETRIEVAL_ACCEPT)

    operations = (health, create, picker)
    count = random_int(2, 3, ctx.rng)
    for i in range(count):
        await random_element(operations, ctx.rng)()
        if i < count - 1:
            await ctx.think(0.8, 25)


async def smoke_cycle(ctx: VirtualUserContext) -> None:
    """Touch every endpoint family once: health, packages, pick lists, monitoring."""
    started = time.monotonic()

    ctx.validator.check_health_response(await steps.get_health(ctx))
    await ctx.pause(1)

    payload = generate_package_payload(ctx.pool, ctx.rng)
    response = await steps.create_package(ctx, payload)
    if ctx.validator.check_api_response(response, "package-creation", 200) and response.status == 200:
        await ctx.pause(0.5)
        retrieve = await steps.retrieve_package(ctx, "test-order")
        ctx.validator.check_api_response(retrieve, "package-retrieval", RETRIEVAL_ACCEPT)
    await ctx.pause(1)

    response = await steps.pick_lists_by_status(ctx, "PENDING")
    ctx.validator.check_api_response(response, "picklist-status", RETRIEVAL_ACCEPT)
    picker_id = random_element(ctx.pool.picker_ids, ctx.rng)
    response = await steps.picker_assignments(ctx, picker_id)
    ctx.validator.check_api_response(response, "picklist-picker", RETRIEVAL_ACCEPT)
    response = await steps.next_task(ctx, picker_id)
    ctx.validator.check_api_response(response, "picklist-next", NEXT_TASK_ACCEPT)
    await ctx.pause(1)

    response = await steps.get_info(ctx)
    ctx.validator.check_api_response(response, "info", MONITORING_ACCEPT)
    response = await steps.get_metrics(ctx)
    ctx.validator.check_api_response(response, "metrics", MONITORING_ACCEPT)

    logger.debug(
        "user=%d smoke cycle completed in %.0fms",
        ctx.user_id,
        (time.monotonic() - started) * 1000,
    )
