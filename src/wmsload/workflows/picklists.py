"""Pick-list workflows: next-task polling, assignments, status queries, pick confirmation."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from wmsload._internal.logging import get_logger
from wmsload.data.generators import (
    PICK_LIST_STATUSES,
    generate_pick_confirmation_payload,
    generate_pick_list_id,
    random_element,
    random_int,
)
from wmsload.validation.checks import (
    MONITORING_ACCEPT,
    NEXT_TASK_ACCEPT,
    RETRIEVAL_ACCEPT,
    StepOutcome,
    classify_outcome,
)
from wmsload.workflows import steps
from wmsload.workflows.packages import API_RESPONSE_TIME

if TYPE_CHECKING:
    from wmsload.dsl.http_client import ApiResponse
    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.picklists")

PICKLIST_RETRIEVAL_SUCCESS = "picklist_retrieval_success"
PICK_CONFIRMATION_SUCCESS = "pick_confirmation_success"


def _record(ctx: VirtualUserContext, metric: str, value: float | bool) -> None:
    if metric in ctx.sink:
        ctx.sink.add(metric, value)


def _retrieved(ctx: VirtualUserContext, response: ApiResponse, check_name: str, acceptable: frozenset[int]) -> bool:
    ok = ctx.validator.check_pick_list_response(response, check_name, acceptable)
    _record(ctx, PICKLIST_RETRIEVAL_SUCCESS, ok)
    return ok


async def confirm_pick_and_check(
    ctx: VirtualUserContext,
    pick_list_id: str,
    check_name: str,
    *,
    operation: str = "confirm-pick",
    partial: bool = False,
    status_only: bool = False,
    **tags: str,
) -> bool:
    """Confirm one pick and record ``pick_confirmation_success``.

    Only a 200 counts as a successful confirmation; a 404 for a synthetic
    pick-list ID is recorded as a failed observation. The request latency
    also goes to ``api_response_time`` when the profile declares it.

    Args:
        partial: Reduce the picked quantity by one (never below 1).
        status_only: Record success from the status alone, ignoring the
            latency, content-type and body checks.
    """
    payload = generate_pick_confirmation_payload(ctx.pool, ctx.rng)
    if partial:
        payload["quantity"] = max(1, payload["quantity"] - 1)
    started = time.monotonic()
    response = await steps.confirm_pick(ctx, pick_list_id, payload, operation=operation, **tags)
    _record(ctx, API_RESPONSE_TIME, (time.monotonic() - started) * 1000)

    success = ctx.validator.check_pick_list_response(response, check_name)
    if status_only:
        success = response.status == 200
    _record(ctx, PICK_CONFIRMATION_SUCCESS, success)
    return success


async def picklist_workflow(ctx: VirtualUserContext) -> None:
    """Next task, a status query, the picker's assignments, then one pick confirmation."""
    picker_id = random_element(ctx.pool.picker_ids, ctx.rng)

    response = await steps.next_task(ctx, picker_id)
    _retrieved(ctx, response, "picklist-next", NEXT_TASK_ACCEPT)
    await ctx.think(1, 25)

    status = random_element(PICK_LIST_STATUSES, ctx.rng)
    response = await steps.pick_lists_by_status(ctx, status)
    _retrieved(ctx, response, "picklist-status", RETRIEVAL_ACCEPT)
    await ctx.think(0.5, 20)

    response = await steps.picker_assignments(ctx, picker_id)
    _retrieved(ctx, response, "picklist-picker", RETRIEVAL_ACCEPT)

    await ctx.think(2, 30)
    await confirm_pick_and_check(
        ctx, generate_pick_list_id("test-picklist", ctx.rng), "pick-confirm", status_only=True
    )


async def picker_workflow(ctx: VirtualUserContext) -> None:
    """A picker's full cycle: next task, assignments, 1-3 picks, re-poll next task."""
    picker_id = random_element(ctx.pool.picker_ids, ctx.rng)

    response = await steps.next_task(ctx, picker_id, workflow="complete")
    _retrieved(ctx, response, "next-task", NEXT_TASK_ACCEPT)
    await ctx.think(2, 30)

    response = await steps.picker_assignments(ctx, picker_id, operation="assigned", workflow="complete")
    _retrieved(ctx, response, "assigned-picklists", RETRIEVAL_ACCEPT)
    await ctx.think(5, 25)

    picks = random_int(1, 3, ctx.rng)
    for i in range(picks):
        await confirm_pick_and_check(
            ctx,
            generate_pick_list_id(f"workflow-test-{i}", ctx.rng),
            "pick-confirmation",
            operation="confirm",
            workflow="complete",
        )
        if i < picks - 1:
            await ctx.think(1.5, 30)

    await ctx.think(1, 20)
    response = await steps.next_task(ctx, picker_id, operation="next-check", workflow="complete")
    _retrieved(ctx, response, "next-task-check", NEXT_TASK_ACCEPT)


async def status_monitoring(ctx: VirtualUserContext) -> None:
    """Dashboard-style polling of every status, then of the first three pickers."""
    for status in PICK_LIST_STATUSES:
        response = await steps.pick_lists_by_status(
            ctx, status, operation="status-monitoring", status=status
        )
        _retrieved(ctx, response, f"status-{status.lower()}", RETRIEVAL_ACCEPT)
        await ctx.think(0.5, 25)

    for picker_id in ctx.pool.picker_ids[:3]:
        response = await steps.picker_assignments(
            ctx, picker_id, operation="picker-monitoring", picker=picker_id
        )
        _retrieved(ctx, response, f"monitor-picker-{picker_id}", RETRIEVAL_ACCEPT)
        await ctx.think(0.3, 20)


async def pick_confirmation(ctx: VirtualUserContext) -> None:
    """An intensive picking period: 2-5 confirmations, 10% of them partial picks."""
    count = random_int(2, 5, ctx.rng)
    for i in range(count):
        await confirm_pick_and_check(
            ctx,
            generate_pick_list_id(f"confirmation-test-{i}", ctx.rng),
            "bulk-pick-confirmation",
            operation="bulk-confirm",
            partial=ctx.rng.random() < 0.1,
        )
        if i < count - 1:
            await ctx.think(2, 40)


async def next_task_polling(ctx: VirtualUserContext) -> None:
    """Poll for the next task 3-5 times; on a found task also fetch the workload."""
    picker_id = random_element(ctx.pool.picker_ids, ctx.rng)
    polls = random_int(3, 5, ctx.rng)
    for i in range(polls):
        response = await steps.next_task(ctx, picker_id, operation="frequent-polling")
        _retrieved(ctx, response, "frequent-poll", NEXT_TASK_ACCEPT)

        if classify_outcome(response, NEXT_TASK_ACCEPT) is StepOutcome.FOUND and response.body:
            logger.debug("user=%d picker %s found an available task", ctx.user_id, picker_id)
            await ctx.think(0.5, 20)
            workload = await steps.picker_assignments(ctx, picker_id, operation="workload-check")
            _retrieved(ctx, workload, "workload-check", RETRIEVAL_ACCEPT)

        if i < polls - 1:
            await ctx.think(4, 30)


async def bulk_queries(ctx: VirtualUserContext) -> None:
    """Reporting sweep: pending and in-progress lists, then every picker."""
    response = await steps.pick_lists_by_status(ctx, "PENDING", operation="bulk-pending")
    _retrieved(ctx, response, "bulk-pending", RETRIEVAL_ACCEPT)
    await ctx.think(0.2, 15)

    response = await steps.pick_lists_by_status(ctx, "IN_PROGRESS", operation="bulk-in-progress")
    _retrieved(ctx, response, "bulk-in-progress", RETRIEVAL_ACCEPT)
    await ctx.think(0.2, 15)

    for picker_id in ctx.pool.picker_ids:
        response = await steps.picker_assignments(ctx, picker_id, operation="bulk-picker-query")
        _retrieved(ctx, response, f"bulk-picker-{picker_id}", RETRIEVAL_ACCEPT)
        await ctx.pause(0.1)


async def pick_list_system_probes(ctx: VirtualUserContext) -> dict[str, bool]:
    """Post-run probes: status, picker and next-task queries all answer."""
    picker_id = ctx.pool.picker_ids[0]
    by_status = await steps.pick_lists_by_status(ctx, "PENDING", operation=None, timeout=5.0)
    by_picker = await steps.picker_assignments(ctx, picker_id, operation=None, timeout=5.0)
    next_up = await steps.next_task(ctx, picker_id, operation=None, timeout=5.0)
    return {
        "status queries": by_status.status in MONITORING_ACCEPT,
        "picker queries": by_picker.status in MONITORING_ACCEPT,
        "next task queries": next_up.status in NEXT_TASK_ACCEPT,
    }
