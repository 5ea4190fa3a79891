"""Named response checks and step outcome classification.

Every check method evaluates a set of independent predicates over one
``ApiResponse``, records one boolean observation per predicate into the
metric sink, and returns the logical AND. Body-shape predicates decode the
body through ``ApiResponse.json()``; a ``ParseError`` fails that predicate
only.
"""

from __future__ import annotations

from collections.abc import Collection
from enum import Enum
from typing import TYPE_CHECKING, Any

from wmsload._internal.logging import get_logger
from wmsload.dsl.http_client import JsonBody

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from wmsload._internal.types import StatusSpec
    from wmsload.dsl.http_client import ApiResponse
    from wmsload.metrics.sink import MetricSink

logger = get_logger("validation.checks")

# Acceptable status sets for steps that may target synthetic identifiers.
RETRIEVAL_ACCEPT = frozenset({200, 404})
NEXT_TASK_ACCEPT = frozenset({200, 204, 404})
CONFIRM_ACCEPT = frozenset({200, 404})
DEGRADED_CONFIRM_ACCEPT = frozenset({200, 404, 500})
MONITORING_ACCEPT = frozenset({200, 404})

PACKAGE_STATUSES = frozenset({"PENDING", "CONFIRMED"})

DEFAULT_MAX_DURATION_MS = 5000.0
HEALTH_MAX_DURATION_MS = 1000.0
STRESS_MAX_DURATION_MS = 20000.0


class StepOutcome(Enum):
    """How a workflow step's response should be treated."""

    FOUND = "found"
    """Acceptable response carrying an entity."""

    ABSENT = "absent"
    """Acceptable 404/204: the synthetic identifier has no entity."""

    DEGRADED = "degraded"
    """Acceptable server error in a scenario that tolerates degradation."""

    FAILED = "failed"
    """Status outside the acceptable set, or no response at all."""


def status_set(expected: StatusSpec) -> frozenset[int]:
    """Normalize an expected status (int or collection) to a frozenset."""
    if isinstance(expected, Collection):
        return frozenset(expected)
    return frozenset({expected})


def _status_label(expected: frozenset[int]) -> str:
    return "/".join(str(s) for s in sorted(expected))


def classify_outcome(response: ApiResponse, acceptable: StatusSpec) -> StepOutcome:
    """Classify *response* against the step's acceptable status set.

    Args:
        response: The step's response.
        acceptable: Status code or codes the step accepts.

    Returns:
        ``FAILED`` for any status outside *acceptable* (including the
        status 0 of a transport failure), otherwise ``ABSENT`` for 204/404,
        ``DEGRADED`` for 5xx and ``FOUND`` for everything else.
    """
    if response.status not in status_set(acceptable):
        return StepOutcome.FAILED
    if response.status in (204, 404):
        return StepOutcome.ABSENT
    if response.status >= 500:
        return StepOutcome.DEGRADED
    return StepOutcome.FOUND


def body_field(response: ApiResponse, key: str) -> Any:
    """Return ``body[key]`` for a JSON object body, else None."""
    body = response.json()
    if isinstance(body, JsonBody) and isinstance(body.value, dict):
        return body.value.get(key)
    return None


def _has_package_id(response: ApiResponse) -> bool:
    package_id = body_field(response, "packageId")
    return isinstance(package_id, str) and len(package_id) > 0


def _has_package_status(response: ApiResponse) -> bool:
    return body_field(response, "status") in PACKAGE_STATUSES


def _is_up(response: ApiResponse) -> bool:
    return body_field(response, "status") == "UP"


def _body_not_null(response: ApiResponse) -> bool:
    body = response.json()
    return isinstance(body, JsonBody) and body.value is not None


class ResponseValidator:
    """Applies named checks to responses and records them into a sink.

    Args:
        sink: Metric sink receiving one observation per check.
    """

    def __init__(self, sink: MetricSink) -> None:
        self.sink = sink

    def check(
        self,
        response: ApiResponse,
        checks: Mapping[str, Callable[[ApiResponse], bool]],
    ) -> bool:
        """Evaluate every predicate in *checks* and record each outcome.

        All predicates are evaluated even after one fails.

        Returns:
            True if every predicate held.
        """
        passed = True
        for name, predicate in checks.items():
            ok = bool(predicate(response))
            self.sink.record_check(name, ok)
            if not ok:
                logger.debug("Check failed: %s (status=%d)", name, response.status)
            passed = passed and ok
        return passed

    def check_api_response(
        self,
        response: ApiResponse,
        endpoint: str,
        expected_status: StatusSpec = 200,
        max_duration_ms: float = DEFAULT_MAX_DURATION_MS,
    ) -> bool:
        """Status membership, latency bound and JSON content type.

        The content-type check is only declared when 200 is expected, the
        response is a 200, and it carries a ``Content-Type`` header.
        """
        expected = status_set(expected_status)
        checks: dict[str, Callable[[ApiResponse], bool]] = {
            f"{endpoint} - status is {_status_label(expected)}": lambda r: r.status in expected,
            f"{endpoint} - response time < {max_duration_ms / 1000:g}s": (
                lambda r: r.elapsed_ms < max_duration_ms
            ),
        }
        content_type = response.header("Content-Type")
        if 200 in expected and response.status == 200 and content_type:
            checks[f"{endpoint} - content type is JSON"] = (
                lambda r: "application/json" in (r.header("Content-Type") or "")
            )
        return self.check(response, checks)

    def check_health_response(
        self,
        response: ApiResponse,
        max_duration_ms: float = HEALTH_MAX_DURATION_MS,
    ) -> bool:
        """200, fast, and a body reporting ``"status": "UP"``."""
        return self.check(
            response,
            {
                "health - status is 200": lambda r: r.status == 200,
                f"health - response time < {max_duration_ms / 1000:g}s": (
                    lambda r: r.elapsed_ms < max_duration_ms
                ),
                "health - status is UP": _is_up,
            },
        )

    def check_package_creation_response(self, response: ApiResponse) -> bool:
        """API checks plus, on 200, a non-empty ``packageId`` and a known ``status``."""
        passed = self.check_api_response(response, "package-creation")
        if response.status == 200:
            body_ok = self.check(
                response,
                {
                    "package-creation - has packageId": _has_package_id,
                    "package-creation - has status": _has_package_status,
                },
            )
            passed = passed and body_ok
        return passed

    def check_pick_list_response(
        self,
        response: ApiResponse,
        endpoint: str = "picklist",
        expected_status: StatusSpec = 200,
    ) -> bool:
        """API checks plus, on 200, a body that parses and is not null."""
        passed = self.check_api_response(response, endpoint, expected_status)
        if response.status == 200:
            body_ok = self.check(response, {f"{endpoint} - response is valid": _body_not_null})
            passed = passed and body_ok
        return passed

    def check_stress_response(self, response: ApiResponse, operation: str) -> bool:
        """Responsive-but-possibly-degraded checks used under stress.

        A 503 counts as responsive; any other 5xx does not.
        """
        return self.check(
            response,
            {
                f"{operation} - not server error": lambda r: r.status < 500 or r.status == 503,
                f"{operation} - response received": lambda r: r.error is None and r.body is not None,
                f"{operation} - reasonable timeout": lambda r: r.elapsed_ms < STRESS_MAX_DURATION_MS,
            },
        )
