"""Instrumented HTTP client with auto-timing and metric emission."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from wmsload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from wmsload._internal.types import Headers, Tags

logger = get_logger("dsl.http_client")


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


@dataclass
class RequestMetric:
    """Raw metric emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical name for metric grouping (e.g., "packages:create").
        method: HTTP method (GET, POST, etc.).
        url: Full request URL.
        status_code: HTTP response status code (0 if request failed).
        latency_ms: Response time in milliseconds.
        content_length: Response body size in bytes.
        error: Error message if the request failed, None otherwise.
        tags: Request tags such as ``endpoint`` or ``phase``.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    tags: Tags = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        """Return True for transport errors and non-2xx/3xx statuses."""
        return self.error is not None or not 200 <= self.status_code < 400


@dataclass(frozen=True)
class JsonBody:
    """A response body that decoded as JSON."""

    value: Any


@dataclass(frozen=True)
class ParseError:
    """A response body that could not be decoded as JSON."""

    reason: str


BodyResult = JsonBody | ParseError


@dataclass
class ApiResponse:
    """A fully-read HTTP response.

    Transport failures and timeouts never raise from ``HttpClient``; they
    produce an ``ApiResponse`` with ``status == 0`` and ``error`` set.

    Attributes:
        status: HTTP status code, or 0 if no response was received.
        elapsed_ms: Time from sending the request to reading the body.
        headers: Response headers (case preserved as sent by the server).
        body: Decoded response body text, or None if no response.
        error: Transport error description, or None.
    """

    status: int
    elapsed_ms: float
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return True for a 2xx status."""
        return 200 <= self.status < 300

    def header(self, name: str) -> str | None:
        """Look up a response header case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> BodyResult:
        """Decode the body as JSON.

        Returns:
            ``JsonBody`` on success, ``ParseError`` otherwise. Never raises.
        """
        if self.body is None:
            return ParseError("no response body")
        try:
            return JsonBody(json.loads(self.body))
        except ValueError as exc:
            return ParseError(f"invalid JSON: {exc}")


class HttpClient:
    """Instrumented async HTTP client wrapping ``aiohttp.ClientSession``.

    Every request is auto-timed and emits a ``RequestMetric`` via the
    configured ``metric_callback``. Each virtual user owns one client.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL prepended to all request paths.
            headers: Default headers applied to every request.
            metric_callback: Callback invoked with a ``RequestMetric``
                after each request. Defaults to a no-op.
            timeout: Default per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: Headers = dict(headers or {})
        self._metric_callback = metric_callback or _noop_callback
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, **kwargs: Any) -> ApiResponse:
        """Send a GET request. See ``request`` for keyword arguments."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> ApiResponse:
        """Send a POST request. See ``request`` for keyword arguments."""
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> ApiResponse:
        """Send a PATCH request. See ``request`` for keyword arguments."""
        return await self.request("PATCH", path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        json_body: Any = None,
        tags: Tags | None = None,
        timeout: float | None = None,
    ) -> ApiResponse:
        """Send an HTTP request with auto-timing and metric emission.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: URL path appended to base_url.
            name: Logical name for metric grouping. Defaults to the path.
            json_body: Optional payload serialized as the JSON request body.
            tags: Tags attached to the emitted metric.
            timeout: Per-request timeout in seconds, overriding the default.

        Returns:
            The fully-read response. Connection errors and timeouts are
            reported as ``status == 0`` instead of being raised.

        Raises:
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"
        data = json.dumps(json_body) if json_body is not None else None
        request_timeout = (
            aiohttp.ClientTimeout(total=timeout) if timeout is not None else None
        )

        start = time.monotonic()
        response = ApiResponse(status=0, elapsed_ms=0.0)
        content_length = 0

        try:
            async with self._session.request(
                method,
                url,
                headers=self.headers,
                data=data,
                timeout=request_timeout,
            ) as resp:
                raw = await resp.read()
                content_length = len(raw)
                response.status = resp.status
                response.headers = dict(resp.headers)
                response.body = raw.decode("utf-8", errors="replace")
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            response.error = f"{type(exc).__name__}: {exc}"
            logger.debug("%s %s failed: %s", method, url, response.error)
        finally:
            response.elapsed_ms = (time.monotonic() - start) * 1000

        self._metric_callback(
            RequestMetric(
                timestamp=start,
                name=name or path,
                method=method,
                url=url,
                status_code=response.status,
                latency_ms=response.elapsed_ms,
                content_length=content_length,
                error=response.error,
                tags=dict(tags or {}),
            )
        )
        return response
