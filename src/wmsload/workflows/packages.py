"""Package creation, retrieval and confirmation workflows."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from wmsload._internal.logging import get_logger
from wmsload.data.generators import (
    generate_order_id,
    generate_package_payload,
    random_element,
    random_int,
)
from wmsload.validation.checks import (
    CONFIRM_ACCEPT,
    DEGRADED_CONFIRM_ACCEPT,
    RETRIEVAL_ACCEPT,
    StepOutcome,
    body_field,
    classify_outcome,
)
from wmsload.workflows import steps
from wmsload.workflows.base import CreatedPackage

if TYPE_CHECKING:
    from wmsload.dsl.http_client import ApiResponse
    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.packages")

PACKAGE_CREATION_SUCCESS = "package_creation_success"
PACKAGE_RETRIEVAL_SUCCESS = "package_retrieval_success"
PACKAGE_CONFIRMATION_SUCCESS = "package_confirmation_success"
PACKAGES_CREATED_TOTAL = "packages_created_total"
AVERAGE_ITEMS_PER_PACKAGE = "average_items_per_package"
API_RESPONSE_TIME = "api_response_time"

# Order IDs in common formats, looked up by the retrieval scenario.
ORDER_ID_PATTERNS = ("ord-001", "order-12345", "ORD-2024-001", "test-order-001")


def _record(ctx: VirtualUserContext, metric: str, value: float | bool) -> None:
    """Add to *metric* only when the running profile declared it."""
    if metric in ctx.sink:
        ctx.sink.add(metric, value)


async def create_and_check(
    ctx: VirtualUserContext,
    payload: dict[str, Any] | None = None,
    *,
    operation: str | None = "create",
    **tags: str,
) -> tuple[ApiResponse, str | None]:
    """Create a package and run the creation checks.

    Records ``package_creation_success``, ``average_items_per_package`` and,
    on success, ``packages_created_total`` when the profile declares them.

    Returns:
        The response and the created package ID, or None if creation failed.
    """
    if payload is None:
        payload = generate_package_payload(ctx.pool, ctx.rng)
    _record(ctx, AVERAGE_ITEMS_PER_PACKAGE, len(payload["items"]))

    started = time.monotonic()
    response = await steps.create_package(ctx, payload, operation=operation, **tags)
    _record(ctx, API_RESPONSE_TIME, (time.monotonic() - started) * 1000)

    success = ctx.validator.check_package_creation_response(response)
    _record(ctx, PACKAGE_CREATION_SUCCESS, success)

    if not (success and response.status == 200):
        return response, None
    _record(ctx, PACKAGES_CREATED_TOTAL, 1)
    package_id = body_field(response, "packageId")
    logger.debug("user=%d created package %s", ctx.user_id, package_id)
    return response, package_id


async def retrieve_and_check(
    ctx: VirtualUserContext,
    order_id: str,
    check_name: str,
    *,
    operation: str = "retrieve",
    **tags: str,
) -> StepOutcome:
    """Look up a package by order ID; 404 is an acceptable outcome."""
    response = await steps.retrieve_package(ctx, order_id, operation=operation, **tags)
    checked = ctx.validator.check_api_response(response, check_name, RETRIEVAL_ACCEPT)
    outcome = classify_outcome(response, RETRIEVAL_ACCEPT)
    _record(ctx, PACKAGE_RETRIEVAL_SUCCESS, checked and outcome is StepOutcome.FOUND)
    return outcome


async def confirm_and_check(
    ctx: VirtualUserContext,
    package_id: str,
    check_name: str,
    *,
    degraded: bool = False,
    operation: str = "confirm",
    **tags: str,
) -> StepOutcome:
    """Confirm a package; 404 (and 500 when *degraded*) are acceptable outcomes."""
    acceptable = DEGRADED_CONFIRM_ACCEPT if degraded else CONFIRM_ACCEPT
    response = await steps.confirm_package(ctx, package_id, operation=operation, **tags)
    checked = ctx.validator.check_api_response(response, check_name, acceptable)
    outcome = classify_outcome(response, acceptable)
    _record(ctx, PACKAGE_CONFIRMATION_SUCCESS, checked and outcome is StepOutcome.FOUND)
    if outcome is StepOutcome.ABSENT:
        logger.debug("user=%d package %s not found for confirmation", ctx.user_id, package_id)
    return outcome


async def package_workflow(ctx: VirtualUserContext) -> None:
    """Create, then look up by a synthetic order ID, then confirm if found."""
    _, package_id = await create_and_check(ctx)
    if package_id is None:
        return

    await ctx.think(1, 20)
    order_id = generate_order_id("test-order", ctx.rng)
    outcome = await retrieve_and_check(ctx, order_id, "package-retrieve")

    if outcome is StepOutcome.FOUND:
        await ctx.think(0.5, 20)
        await confirm_and_check(ctx, package_id, "package-confirm")


async def full_package_workflow(ctx: VirtualUserContext) -> None:
    """Full packing-station lifecycle: create, pack, retrieve, review, confirm."""
    _, package_id = await create_and_check(ctx, workflow="full")
    if package_id is None:
        return

    order_id = generate_order_id(rng=ctx.rng)
    ctx.created_packages.append(CreatedPackage(package_id=package_id, order_id=order_id))

    await ctx.think(8, 30)
    await retrieve_and_check(ctx, order_id, "package-retrieval", workflow="full")

    await ctx.think(2, 25)
    await confirm_and_check(ctx, package_id, "package-confirmation", workflow="full")


async def package_creation_burst(ctx: VirtualUserContext) -> None:
    """Create 2-4 packages in quick succession, 30% of them with extra items."""
    burst_size = random_int(2, 4, ctx.rng)
    for i in range(burst_size):
        payload = generate_package_payload(ctx.pool, ctx.rng)
        if ctx.rng.random() < 0.3:
            for _ in range(random_int(1, 3, ctx.rng)):
                payload["items"].append(
                    {
                        "skuCode": random_element(ctx.pool.sku_codes, ctx.rng),
                        "quantity": random_int(1, 3, ctx.rng),
                    }
                )

        await create_and_check(ctx, payload, operation="burst-create")

        if i < burst_size - 1:
            await ctx.think(1, 40)


async def package_retrieval(ctx: VirtualUserContext) -> None:
    """Run 2-4 lookups against random, previously created or well-known order IDs."""

    async def random_lookup() -> None:
        order_id = generate_order_id(rng=ctx.rng)
        await retrieve_and_check(
            ctx, order_id, "random-package-retrieval", operation="random-retrieval"
        )

    async def existing_lookup() -> None:
        if ctx.created_packages:
            package = random_element(ctx.created_packages, ctx.rng)
            await retrieve_and_check(
                ctx,
                package.order_id,
                "existing-package-retrieval",
                operation="existing-retrieval",
            )
        else:
            await retrieve_and_check(
                ctx,
                f"existing-{int(time.time() * 1000)}",
                "fallback-package-retrieval",
                operation="fallback-retrieval",
            )

    async def pattern_lookup() -> None:
        order_id = random_element(ORDER_ID_PATTERNS, ctx.rng)
        await retrieve_and_check(
            ctx, order_id, "pattern-package-retrieval", operation="pattern-retrieval"
        )

    lookups = (random_lookup, existing_lookup, pattern_lookup)
    count = random_int(2, 4, ctx.rng)
    for i in range(count):
        await random_element(lookups, ctx.rng)()
        if i < count - 1:
            await ctx.think(1, 30)


async def package_confirmation(ctx: VirtualUserContext) -> None:
    """Create 2-3 packages and confirm each immediately, then confirm a random ID.

    Server errors on confirmation are tolerated here.
    """
    count = random_int(2, 3, ctx.rng)
    for i in range(count):
        _, package_id = await create_and_check(ctx, operation="confirm-workflow-create")
        if package_id is not None:
            await ctx.think(3, 25)
            await confirm_and_check(
                ctx,
                package_id,
                "immediate-package-confirmation",
                degraded=True,
                operation="immediate-confirm",
            )
        if i < count - 1:
            await ctx.think(2, 30)

    await confirm_and_check(
        ctx,
        f"random-pkg-{int(time.time() * 1000)}",
        "random-package-confirmation",
        degraded=True,
        operation="random-confirm",
    )


async def package_system_probes(ctx: VirtualUserContext) -> dict[str, bool]:
    """Post-run probes: creation works, retrieval answers, health is fast."""
    create = await steps.create_package(
        ctx, generate_package_payload(ctx.pool, ctx.rng), operation=None, timeout=10.0
    )
    retrieve = await steps.retrieve_package(
        ctx, f"health-check-{int(time.time() * 1000)}", operation=None, timeout=5.0
    )
    health = await steps.get_health(ctx, timeout=5.0)
    return {
        "package creation": create.status == 200,
        "package retrieval": retrieve.status in RETRIEVAL_ACCEPT,
        "response time": health.status == 200 and health.elapsed_ms < 3000,
    }
