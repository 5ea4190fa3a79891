"""wmsload: load-test traffic generator for the warehouse-operations API."""

from __future__ import annotations

__version__ = "0.1.0"

from wmsload.dsl.http_client import ApiResponse, HttpClient, RequestMetric  # noqa: E402
from wmsload.engine.session import TestSession  # noqa: E402
from wmsload.patterns.constant import ConstantPattern  # noqa: E402
from wmsload.patterns.stages import Stage, StagePattern  # noqa: E402
from wmsload.profiles import PROFILES, get_profile, list_profiles  # noqa: E402

__all__ = [
    "PROFILES",
    "ApiResponse",
    "ConstantPattern",
    "HttpClient",
    "RequestMetric",
    "Stage",
    "StagePattern",
    "TestSession",
    "get_profile",
    "list_profiles",
]
