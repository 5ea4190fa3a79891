"""Tests for the response validator and step outcome classification."""

from __future__ import annotations

import json

import pytest

from wmsload.dsl.http_client import ApiResponse
from wmsload.metrics.sink import MetricKind, MetricSink
from wmsload.validation.checks import (
    DEGRADED_CONFIRM_ACCEPT,
    NEXT_TASK_ACCEPT,
    RETRIEVAL_ACCEPT,
    ResponseValidator,
    StepOutcome,
    body_field,
    classify_outcome,
    status_set,
)

JSON_HEADERS = {"Content-Type": "application/json"}


def _response(
    status: int = 200,
    body: object = None,
    *,
    elapsed_ms: float = 50.0,
    headers: dict[str, str] | None = None,
    raw: str | None = None,
    error: str | None = None,
) -> ApiResponse:
    text = raw if raw is not None else (json.dumps(body) if body is not None else "")
    return ApiResponse(
        status=status,
        elapsed_ms=elapsed_ms,
        headers=JSON_HEADERS if headers is None else headers,
        body=None if error else text,
        error=error,
    )


@pytest.fixture
def sink() -> MetricSink:
    sink = MetricSink()
    sink.declare("checks", MetricKind.RATE)
    return sink


@pytest.fixture
def validator(sink: MetricSink) -> ResponseValidator:
    return ResponseValidator(sink)


def _tallies(sink: MetricSink) -> dict[str, tuple[int, int]]:
    return {t.name: (t.passes, t.fails) for t in sink.check_tallies()}


class TestStatusSet:
    def test_int_and_collection(self):
        assert status_set(200) == frozenset({200})
        assert status_set([200, 404]) == frozenset({200, 404})


class TestClassifyOutcome:
    """Tests for classify_outcome."""

    def test_found(self):
        assert classify_outcome(_response(200, {}), RETRIEVAL_ACCEPT) is StepOutcome.FOUND

    @pytest.mark.parametrize("status", [204, 404])
    def test_absent(self, status: int):
        assert classify_outcome(_response(status), NEXT_TASK_ACCEPT) is StepOutcome.ABSENT

    def test_degraded(self):
        assert classify_outcome(_response(500), DEGRADED_CONFIRM_ACCEPT) is StepOutcome.DEGRADED

    @pytest.mark.parametrize("status", [0, 400, 500, 503])
    def test_failed_outside_set(self, status: int):
        assert classify_outcome(_response(status), RETRIEVAL_ACCEPT) is StepOutcome.FAILED


class TestCheck:
    def test_records_every_predicate(self, validator: ResponseValidator, sink: MetricSink):
        """Predicates after a failing one are still evaluated and recorded."""
        passed = validator.check(
            _response(500),
            {"first": lambda r: r.status == 200, "second": lambda r: True},
        )
        assert passed is False
        assert _tallies(sink) == {"first": (0, 1), "second": (1, 0)}
        assert sink.summary(1.0)["checks"].values["rate"] == 0.5


class TestCheckApiResponse:
    """Tests for check_api_response."""

    def test_ok_json(self, validator: ResponseValidator, sink: MetricSink):
        assert validator.check_api_response(_response(200, {"a": 1}), "info")
        assert set(_tallies(sink)) == {
            "info - status is 200",
            "info - response time < 5s",
            "info - content type is JSON",
        }

    def test_accepted_404_has_no_content_type_check(self, validator: ResponseValidator, sink: MetricSink):
        assert validator.check_api_response(_response(404, {"error": "x"}), "package-retrieval", RETRIEVAL_ACCEPT)
        assert set(_tallies(sink)) == {
            "package-retrieval - status is 200/404",
            "package-retrieval - response time < 5s",
        }

    def test_status_collection_uses_membership(self, validator: ResponseValidator):
        assert validator.check_api_response(_response(204, headers={}), "picklist-next", [200, 204, 404])
        assert not validator.check_api_response(_response(500), "picklist-next", [200, 204, 404])

    def test_missing_content_type_skips_check(self, validator: ResponseValidator, sink: MetricSink):
        assert validator.check_api_response(_response(200, {}, headers={}), "metrics")
        assert "metrics - content type is JSON" not in _tallies(sink)

    def test_wrong_content_type_fails(self, validator: ResponseValidator, sink: MetricSink):
        response = _response(200, raw="<html/>", headers={"Content-Type": "text/html"})
        assert not validator.check_api_response(response, "info")
        assert _tallies(sink)["info - content type is JSON"] == (0, 1)

    def test_slow_response_fails(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_api_response(_response(200, {}, elapsed_ms=6000), "info")
        assert _tallies(sink)["info - response time < 5s"] == (0, 1)


class TestCheckHealthResponse:
    def test_up(self, validator: ResponseValidator):
        assert validator.check_health_response(_response(200, {"status": "UP"}))

    def test_down(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_health_response(_response(200, {"status": "DOWN"}))
        assert _tallies(sink)["health - status is UP"] == (0, 1)

    def test_unparseable_body_fails_only_body_check(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_health_response(_response(200, raw="not json"))
        tallies = _tallies(sink)
        assert tallies["health - status is 200"] == (1, 0)
        assert tallies["health - status is UP"] == (0, 1)

    def test_slow(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_health_response(_response(200, {"status": "UP"}, elapsed_ms=1500))
        assert _tallies(sink)["health - response time < 1s"] == (0, 1)


class TestCheckPackageCreation:
    def test_valid_package(self, validator: ResponseValidator):
        response = _response(200, {"packageId": "pkg-1", "status": "PENDING"})
        assert validator.check_package_creation_response(response)

    @pytest.mark.parametrize(
        "body",
        [
            {"packageId": "", "status": "PENDING"},
            {"packageId": "pkg-1", "status": "SHIPPED"},
            {"status": "CONFIRMED"},
        ],
    )
    def test_invalid_body(self, validator: ResponseValidator, body: dict[str, str]):
        assert not validator.check_package_creation_response(_response(200, body))

    def test_server_error_skips_body_checks(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_package_creation_response(_response(500, {"error": "boom"}))
        assert "package-creation - has packageId" not in _tallies(sink)


class TestCheckPickListResponse:
    def test_valid_list(self, validator: ResponseValidator, sink: MetricSink):
        assert validator.check_pick_list_response(_response(200, [{"pickListId": "pl-1"}]), "picklist-status")
        assert "picklist-status - response is valid" in _tallies(sink)

    def test_null_body(self, validator: ResponseValidator):
        assert not validator.check_pick_list_response(_response(200, raw="null"))

    def test_404_fails_default_expectation(self, validator: ResponseValidator):
        assert not validator.check_pick_list_response(_response(404, {"error": "x"}), "pick-confirm")


class TestCheckStressResponse:
    @pytest.mark.parametrize("status", [200, 404, 503])
    def test_responsive(self, validator: ResponseValidator, status: int):
        assert validator.check_stress_response(_response(status, {}), "rapid-package")

    def test_server_error(self, validator: ResponseValidator, sink: MetricSink):
        assert not validator.check_stress_response(_response(500, {}), "rapid-package")
        assert _tallies(sink)["rapid-package - not server error"] == (0, 1)

    def test_transport_failure(self, validator: ResponseValidator, sink: MetricSink):
        response = _response(0, error="ServerTimeoutError: timed out", elapsed_ms=10000)
        assert not validator.check_stress_response(response, "picklist-next")
        assert _tallies(sink)["picklist-next - response received"] == (0, 1)


class TestBodyField:
    def test_object(self):
        assert body_field(_response(200, {"packageId": "p"}), "packageId") == "p"

    def test_non_object_or_invalid(self):
        assert body_field(_response(200, [1, 2]), "packageId") is None
        assert body_field(_response(200, raw="{"), "packageId") is None
