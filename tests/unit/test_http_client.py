"""Tests for the instrumented HTTP client, ApiResponse and RequestMetric."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from wmsload.dsl.http_client import ApiResponse, HttpClient, JsonBody, ParseError, RequestMetric

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tests.conftest import FakeWarehouse


def _metric(status_code: int = 200, error: str | None = None) -> RequestMetric:
    return RequestMetric(
        timestamp=1000.0,
        name="health",
        method="GET",
        url="http://localhost/actuator/health",
        status_code=status_code,
        latency_ms=4.2,
        content_length=15,
        error=error,
    )


class TestRequestMetric:
    """Tests for the RequestMetric dataclass."""

    def test_defaults(self):
        metric = _metric()
        assert metric.error is None
        assert metric.tags == {}
        assert metric.failed is False

    @pytest.mark.parametrize("status", [0, 404, 500, 199])
    def test_failed_status(self, status: int):
        assert _metric(status).failed is True

    @pytest.mark.parametrize("status", [200, 204, 302])
    def test_not_failed_status(self, status: int):
        assert _metric(status).failed is False

    def test_failed_on_error(self):
        assert _metric(200, error="ClientPayloadError: truncated").failed is True


class TestApiResponse:
    """Tests for ApiResponse helpers."""

    def test_ok(self):
        assert ApiResponse(status=204, elapsed_ms=1.0).ok
        assert not ApiResponse(status=404, elapsed_ms=1.0).ok
        assert not ApiResponse(status=0, elapsed_ms=1.0).ok

    def test_header_case_insensitive(self):
        response = ApiResponse(status=200, elapsed_ms=1.0, headers={"Content-Type": "application/json"})
        assert response.header("content-type") == "application/json"
        assert response.header("X-Missing") is None

    def test_json_body(self):
        result = ApiResponse(status=200, elapsed_ms=1.0, body='{"status": "UP"}').json()
        assert result == JsonBody({"status": "UP"})

    def test_json_invalid(self):
        result = ApiResponse(status=200, elapsed_ms=1.0, body="<html>").json()
        assert isinstance(result, ParseError)
        assert result.reason.startswith("invalid JSON")

    def test_json_no_body(self):
        assert ApiResponse(status=0, elapsed_ms=1.0).json() == ParseError("no response body")


@pytest.fixture
async def slow_server() -> AsyncIterator[str]:
    """Server whose only route answers after half a second."""

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(0.5)
        return web.json_response({"slow": True})

    app = web.Application()
    app.router.add_get("/slow", slow)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


class TestHttpClient:
    """Tests for the HttpClient class."""

    async def test_get_emits_metric(self, warehouse: FakeWarehouse):
        metrics: list[RequestMetric] = []

        async with HttpClient(warehouse.base_url, metric_callback=metrics.append) as client:
            response = await client.get("/actuator/health", name="health", tags={"endpoint": "health"})

        assert response.status == 200
        assert response.json() == JsonBody({"status": "UP"})
        assert len(metrics) == 1
        assert metrics[0].method == "GET"
        assert metrics[0].name == "health"
        assert metrics[0].url == f"{warehouse.base_url}/actuator/health"
        assert metrics[0].tags == {"endpoint": "health"}
        assert metrics[0].latency_ms > 0
        assert metrics[0].content_length > 0

    async def test_post_json_body(self, warehouse: FakeWarehouse):
        payload = {"orderId": "ORD-1", "items": [{"sku": "SKU-1", "quantity": 1}]}
        async with HttpClient(warehouse.base_url, headers={"Content-Type": "application/json"}) as client:
            response = await client.post("/api/packages", json_body=payload)

        assert response.status == 200
        assert response.header("content-type").startswith("application/json")
        assert list(warehouse.state.packages) == ["pkg-1"]

    async def test_patch(self, warehouse: FakeWarehouse):
        async with HttpClient(warehouse.base_url) as client:
            response = await client.patch("/api/packages/unknown/confirm")
        assert response.status == 404
        assert warehouse.state.count("PATCH", "/api/packages/") == 1

    async def test_default_name_is_path(self, warehouse: FakeWarehouse):
        metrics: list[RequestMetric] = []
        async with HttpClient(warehouse.base_url, metric_callback=metrics.append) as client:
            await client.get("/actuator/info")
        assert metrics[0].name == "/actuator/info"

    async def test_trailing_slash_in_base_url(self, warehouse: FakeWarehouse):
        async with HttpClient(f"{warehouse.base_url}/") as client:
            response = await client.get("/actuator/health")
        assert response.status == 200

    async def test_connection_failure_is_status_zero(self, unused_url: str):
        """Transport errors come back as a status-0 response instead of raising."""
        metrics: list[RequestMetric] = []

        async with HttpClient(unused_url, metric_callback=metrics.append, timeout=2.0) as client:
            response = await client.get("/actuator/health", name="health")

        assert response.status == 0
        assert response.error is not None
        assert response.body is None
        assert metrics[0].status_code == 0
        assert metrics[0].failed

    async def test_per_request_timeout(self, slow_server: str):
        metrics: list[RequestMetric] = []

        async with HttpClient(slow_server, metric_callback=metrics.append) as client:
            response = await client.get("/slow", timeout=0.1)

        assert response.status == 0
        assert response.error is not None
        assert "Timeout" in response.error
        assert response.elapsed_ms < 500
        assert metrics[0].failed

    async def test_request_within_timeout(self, slow_server: str):
        async with HttpClient(slow_server) as client:
            response = await client.get("/slow", timeout=5.0)
        assert response.status == 200

    async def test_context_manager_required(self):
        client = HttpClient(base_url="http://localhost")
        with pytest.raises(RuntimeError, match="async context manager"):
            await client.get("/actuator/health")
