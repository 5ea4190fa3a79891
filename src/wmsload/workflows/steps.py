"""One coroutine per warehouse API endpoint.

Each step sends a single request through the virtual user's client, tagged
with ``endpoint`` and ``operation`` so per-endpoint sub-metrics (for example
``http_req_duration{endpoint:health}``) and the collector's per-name table
line up. Steps return the ``ApiResponse`` unvalidated; workflows decide
which checks apply.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from wmsload._internal.logging import get_logger

if TYPE_CHECKING:
    from wmsload._internal.types import Tags
    from wmsload.dsl.http_client import ApiResponse
    from wmsload.workflows.base import VirtualUserContext

logger = get_logger("workflows.steps")

HEALTH_PATH = "/actuator/health"
INFO_PATH = "/actuator/info"
METRICS_PATH = "/actuator/metrics"
PACKAGES_PATH = "/api/packages"
PICKLISTS_PATH = "/api/picklists"


def _tags(endpoint: str, operation: str | None, extra: dict[str, str]) -> tuple[str, Tags]:
    tags: Tags = {"endpoint": endpoint}
    if operation is not None:
        tags["operation"] = operation
    tags.update(extra)
    name = f"{endpoint}:{operation}" if operation else endpoint
    return name, tags


async def _send(
    ctx: VirtualUserContext,
    method: str,
    path: str,
    endpoint: str,
    operation: str | None,
    *,
    json_body: Any = None,
    timeout: float | None = None,
    extra: dict[str, str],
) -> ApiResponse:
    name, tags = _tags(endpoint, operation, extra)
    response = await ctx.client.request(
        method, path, name=name, json_body=json_body, tags=tags, timeout=timeout
    )
    logger.debug(
        "user=%d %s %s -> %d (%.0fms)",
        ctx.user_id,
        method,
        path,
        response.status,
        response.elapsed_ms,
        extra={"user_id": ctx.user_id, "phase": ctx.phase},
    )
    return response


async def get_health(
    ctx: VirtualUserContext,
    *,
    operation: str | None = None,
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    return await _send(ctx, "GET", HEALTH_PATH, "health", operation, timeout=timeout, extra=tags)


async def get_info(
    ctx: VirtualUserContext,
    *,
    operation: str | None = None,
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    return await _send(ctx, "GET", INFO_PATH, "info", operation, timeout=timeout, extra=tags)


async def get_metrics(
    ctx: VirtualUserContext,
    *,
    operation: str | None = None,
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    return await _send(ctx, "GET", METRICS_PATH, "metrics", operation, timeout=timeout, extra=tags)


async def create_package(
    ctx: VirtualUserContext,
    payload: dict[str, Any],
    *,
    operation: str | None = "create",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    """``POST /api/packages`` with a package creation payload."""
    return await _send(
        ctx,
        "POST",
        PACKAGES_PATH,
        "packages",
        operation,
        json_body=payload,
        timeout=timeout,
        extra=tags,
    )


async def retrieve_package(
    ctx: VirtualUserContext,
    order_id: str,
    *,
    operation: str | None = "retrieve",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    """``GET /api/packages/order/{orderId}``; 404 is expected for synthetic IDs."""
    return await _send(
        ctx,
        "GET",
        f"{PACKAGES_PATH}/order/{order_id}",
        "packages",
        operation,
        timeout=timeout,
        extra=tags,
    )


async def confirm_package(
    ctx: VirtualUserContext,
    package_id: str,
    *,
    operation: str | None = "confirm",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    """``PATCH /api/packages/{packageId}/confirm`` with an empty body."""
    return await _send(
        ctx,
        "PATCH",
        f"{PACKAGES_PATH}/{package_id}/confirm",
        "packages",
        operation,
        timeout=timeout,
        extra=tags,
    )


async def next_task(
    ctx: VirtualUserContext,
    picker_id: str,
    *,
    operation: str | None = "next",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    """``GET /api/picklists/picker/{pickerId}/next``; 204 means no task."""
    return await _send(
        ctx,
        "GET",
        f"{PICKLISTS_PATH}/picker/{picker_id}/next",
        "picklists",
        operation,
        timeout=timeout,
        extra=tags,
    )


async def picker_assignments(
    ctx: VirtualUserContext,
    picker_id: str,
    *,
    operation: str | None = "picker",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    return await _send(
        ctx,
        "GET",
        f"{PICKLISTS_PATH}/picker/{picker_id}",
        "picklists",
        operation,
        timeout=timeout,
        extra=tags,
    )


async def pick_lists_by_status(
    ctx: VirtualUserContext,
    status: str,
    *,
    operation: str | None = "status",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    return await _send(
        ctx,
        "GET",
        f"{PICKLISTS_PATH}/status/{status}",
        "picklists",
        operation,
        timeout=timeout,
        extra=tags,
    )


async def confirm_pick(
    ctx: VirtualUserContext,
    pick_list_id: str,
    payload: dict[str, Any],
    *,
    operation: str | None = "confirm-pick",
    timeout: float | None = None,
    **tags: str,
) -> ApiResponse:
    """``POST /api/picklists/{pickListId}/confirm-pick``."""
    return await _send(
        ctx,
        "POST",
        f"{PICKLISTS_PATH}/{pick_list_id}/confirm-pick",
        "picklists",
        operation,
        json_body=payload,
        timeout=timeout,
        extra=tags,
    )
