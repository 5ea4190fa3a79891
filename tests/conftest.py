"""Shared test fixtures for the wmsload test suite."""

from __future__ import annotations

import asyncio
import itertools
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Fake warehouse-operations API
# =============================================================================


@dataclass
class WarehouseState:
    """Knobs and request log of the fake warehouse API.

    Attributes:
        health_status: Status returned by ``/actuator/health``.
        health_body: Health body status field.
        create_status: Status returned by package creation.
        confirm_pick_status: Status returned by pick confirmation. Synthetic
            pick-list IDs are unknown to the real service, hence 404.
        confirm_pick_null_body: Answer a successful pick confirmation with a
            JSON ``null`` body.
        confirm_content_type: Content type of a successful package confirmation.
        next_task_status: Status returned by the next-task endpoint.
        requests: ``(method, path)`` of every request received.
        packages: Created package IDs mapped to their order status.
    """

    health_status: int = 200
    health_body: str = "UP"
    create_status: int = 200
    confirm_pick_status: int = 404
    confirm_pick_null_body: bool = False
    confirm_content_type: str = "application/json"
    next_task_status: int = 204
    requests: list[tuple[str, str]] = field(default_factory=list)
    packages: dict[str, str] = field(default_factory=dict)

    def count(self, method: str, prefix: str) -> int:
        """Return how many requests matched *method* and a path *prefix*."""
        return sum(1 for m, p in self.requests if m == method and p.startswith(prefix))


def _create_warehouse_app(state: WarehouseState) -> web.Application:
    """Build the fake warehouse app serving every endpoint the profiles call."""
    ids = itertools.count(1)

    @web.middleware
    async def _log_requests(request: web.Request, handler):  # type: ignore[no-untyped-def]
        state.requests.append((request.method, request.path))
        return await handler(request)

    async def health(request: web.Request) -> web.Response:
        return web.json_response({"status": state.health_body}, status=state.health_status)

    async def info(request: web.Request) -> web.Response:
        return web.json_response({"app": {"name": "warehouse-operations"}})

    async def metrics(request: web.Request) -> web.Response:
        return web.json_response({"names": ["jvm.memory.used", "http.server.requests"]})

    async def create_package(request: web.Request) -> web.Response:
        payload = await request.json()
        if not payload.get("items"):
            return web.json_response({"error": "items required"}, status=400)
        if state.create_status != 200:
            return web.json_response({"error": "unavailable"}, status=state.create_status)
        package_id = f"pkg-{next(ids)}"
        state.packages[package_id] = "PENDING"
        return web.json_response({"packageId": package_id, "status": "PENDING"})

    async def retrieve_package(request: web.Request) -> web.Response:
        return web.json_response({"error": "not found"}, status=404)

    async def confirm_package(request: web.Request) -> web.Response:
        package_id = request.match_info["package_id"]
        if package_id not in state.packages:
            return web.json_response({"error": "not found"}, status=404)
        state.packages[package_id] = "CONFIRMED"
        return web.json_response(
            {"packageId": package_id, "status": "CONFIRMED"}, content_type=state.confirm_content_type
        )

    async def next_task(request: web.Request) -> web.Response:
        if state.next_task_status == 204:
            return web.Response(status=204)
        return web.json_response(
            {"pickListId": "pl-1", "pickerId": request.match_info["picker_id"]},
            status=state.next_task_status,
        )

    async def picker_lists(request: web.Request) -> web.Response:
        return web.json_response([{"pickListId": "pl-1", "status": "ASSIGNED"}])

    async def lists_by_status(request: web.Request) -> web.Response:
        return web.json_response([{"pickListId": "pl-2", "status": request.match_info["status"]}])

    async def confirm_pick(request: web.Request) -> web.Response:
        await request.json()
        if state.confirm_pick_status != 200:
            return web.json_response({"error": "not found"}, status=state.confirm_pick_status)
        if state.confirm_pick_null_body:
            return web.json_response(None)
        return web.json_response({"pickListId": request.match_info["pick_list_id"], "picked": True})

    app = web.Application(middlewares=[_log_requests])
    app.router.add_get("/actuator/health", health)
    app.router.add_get("/actuator/info", info)
    app.router.add_get("/actuator/metrics", metrics)
    app.router.add_post("/api/packages", create_package)
    app.router.add_get("/api/packages/order/{order_id}", retrieve_package)
    app.router.add_patch("/api/packages/{package_id}/confirm", confirm_package)
    app.router.add_get("/api/picklists/picker/{picker_id}/next", next_task)
    app.router.add_get("/api/picklists/picker/{picker_id}", picker_lists)
    app.router.add_get("/api/picklists/status/{status}", lists_by_status)
    app.router.add_post("/api/picklists/{pick_list_id}/confirm-pick", confirm_pick)
    return app


@dataclass
class FakeWarehouse:
    """A running fake warehouse API."""

    base_url: str
    state: WarehouseState


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def warehouse() -> AsyncIterator[FakeWarehouse]:
    """Fake warehouse API on the test's event loop."""
    state = WarehouseState()
    port = _get_free_port()
    runner = web.AppRunner(_create_warehouse_app(state))
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield FakeWarehouse(base_url=f"http://127.0.0.1:{port}", state=state)
    await runner.cleanup()


@pytest.fixture
def sync_warehouse() -> Iterator[FakeWarehouse]:
    """Fake warehouse API running in a background thread.

    For CLI tests, where the command blocks the main thread in
    ``asyncio.run``.
    """
    state = WarehouseState()
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_warehouse_app(state))
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield FakeWarehouse(base_url=f"http://127.0.0.1:{port}", state=state)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def unused_url() -> str:
    """Base URL with nothing listening on it."""
    return f"http://127.0.0.1:{_get_free_port()}"
