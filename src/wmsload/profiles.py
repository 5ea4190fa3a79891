"""Built-in load profiles for the warehouse-operations API.

Each profile bundles a stage schedule, weighted scenarios, the custom
metrics its workflows record into, pass/fail thresholds and optional
post-run probes.
"""

from __future__ import annotations

from types import MappingProxyType

from wmsload._internal.errors import ScenarioError
from wmsload.metrics.sink import MetricKind
from wmsload.patterns.stages import Stage
from wmsload.workflows import monitoring, packages, picklists, spike, stress
from wmsload.workflows.base import IterationPace, Profile, Scenario, ScenarioKind

HTTP_REQ_DURATION = "http_req_duration"
HTTP_REQ_FAILED = "http_req_failed"


def _m(seconds: float) -> float:
    return seconds * 60


SMOKE = Profile(
    name="smoke",
    description="One user touching every endpoint family to verify basic functionality",
    stages=(
        Stage(30, 1),
        Stage(_m(1), 1),
        Stage(30, 0),
    ),
    scenarios=(Scenario(ScenarioKind.SMOKE_CYCLE, 1, monitoring.smoke_cycle),),
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<3000",),
            HTTP_REQ_FAILED: ("rate<0.05",),
        }
    ),
)

LOAD = Profile(
    name="load",
    description="Normal-to-peak expected traffic across packages, pick lists and monitoring",
    stages=(
        Stage(_m(2), 10),
        Stage(_m(5), 10),
        Stage(_m(2), 20),
        Stage(_m(5), 20),
        Stage(_m(2), 0),
    ),
    scenarios=(
        Scenario(ScenarioKind.PACKAGE_WORKFLOW, 40, packages.package_workflow),
        Scenario(ScenarioKind.PICKLIST_WORKFLOW, 35, picklists.picklist_workflow),
        Scenario(ScenarioKind.MONITORING_CHECK, 15, monitoring.monitoring_check),
        Scenario(ScenarioKind.MIXED_OPERATIONS, 10, monitoring.mixed_operations),
    ),
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<2000",),
            HTTP_REQ_FAILED: ("rate<0.02",),
            packages.PACKAGE_CREATION_SUCCESS: ("rate>0.95",),
            picklists.PICK_CONFIRMATION_SUCCESS: ("rate>0.90",),
            packages.API_RESPONSE_TIME: ("p(95)<3000",),
        }
    ),
    metrics=MappingProxyType(
        {
            packages.PACKAGE_CREATION_SUCCESS: MetricKind.RATE,
            picklists.PICK_CONFIRMATION_SUCCESS: MetricKind.RATE,
            packages.API_RESPONSE_TIME: MetricKind.TREND,
        }
    ),
    iteration_pace=IterationPace(2, 30),
)

STRESS = Profile(
    name="stress",
    description="Ramp well past expected capacity to find the breaking point",
    stages=(
        Stage(_m(2), 20),
        Stage(_m(3), 50),
        Stage(_m(3), 100),
        Stage(_m(5), 100),
        Stage(_m(3), 150),
        Stage(_m(5), 150),
        Stage(_m(2), 200),
        Stage(_m(3), 200),
        Stage(_m(3), 0),
    ),
    scenarios=(
        Scenario(ScenarioKind.INTENSIVE_PACKAGE, 50, stress.intensive_package),
        Scenario(ScenarioKind.INTENSIVE_PICKLIST, 30, stress.intensive_picklist),
        Scenario(ScenarioKind.RAPID_FIRE, 20, stress.rapid_fire),
    ),
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<5000", "p(99)<10000"),
            HTTP_REQ_FAILED: ("rate<0.10",),
            stress.ERRORS: ("rate<0.15",),
            f"{HTTP_REQ_DURATION}{{endpoint:health}}": ("p(95)<2000",),
            f"{HTTP_REQ_FAILED}{{endpoint:health}}": ("rate<0.05",),
        }
    ),
    metrics=MappingProxyType(
        {
            stress.ERRORS: MetricKind.RATE,
            stress.RESPONSE_TIME_P99: MetricKind.TREND,
            "concurrent_users": MetricKind.COUNTER,
        }
    ),
    iteration_pace=IterationPace(0.5, 50),
    iteration_counter="concurrent_users",
    error_rate=stress.ERRORS,
    teardown=stress.recovery_probes,
)

SPIKE = Profile(
    name="spike",
    description="Sudden jumps in traffic followed by recovery periods",
    stages=(
        Stage(_m(1), 5, "baseline"),
        Stage(30, 5, "baseline"),
        Stage(10, 100, "spike"),
        Stage(_m(1), 100, "spike"),
        Stage(10, 5, "recovery"),
        Stage(_m(2), 5, "recovery"),
        Stage(10, 150, "spike"),
        Stage(30, 150, "spike"),
        Stage(10, 5, "recovery"),
        Stage(_m(2), 5, "recovery"),
        Stage(30, 0, "baseline"),
    ),
    scenarios=(Scenario(ScenarioKind.PHASED_SPIKE, 1, spike.phased_spike),),
    iteration_pace=spike.PHASE_PACE,
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<10000",),
            HTTP_REQ_FAILED: ("rate<0.20",),
            spike.SPIKE_ERRORS: ("rate<0.25",),
            f"{HTTP_REQ_DURATION}{{phase:recovery}}": ("p(95)<3000",),
            f"{HTTP_REQ_FAILED}{{phase:recovery}}": ("rate<0.05",),
        }
    ),
    metrics=MappingProxyType(
        {
            spike.SPIKE_ERRORS: MetricKind.RATE,
            spike.RECOVERY_TIME: MetricKind.TREND,
            "spike_response_time": MetricKind.TREND,
        }
    ),
    iteration_trend="spike_response_time",
    error_rate=spike.SPIKE_ERRORS,
    teardown=spike.post_spike_probes,
)

PACKAGES = Profile(
    name="packages",
    description="Packing-station lifecycle: creation bursts, retrieval and confirmation",
    stages=(
        Stage(_m(1), 8),
        Stage(_m(4), 20),
        Stage(_m(6), 35),
        Stage(_m(4), 20),
        Stage(_m(2), 0),
    ),
    scenarios=(
        Scenario(ScenarioKind.FULL_PACKAGE_WORKFLOW, 40, packages.full_package_workflow),
        Scenario(ScenarioKind.PACKAGE_CREATION_BURST, 30, packages.package_creation_burst),
        Scenario(ScenarioKind.PACKAGE_RETRIEVAL, 20, packages.package_retrieval),
        Scenario(ScenarioKind.PACKAGE_CONFIRMATION, 10, packages.package_confirmation),
    ),
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<4000",),
            HTTP_REQ_FAILED: ("rate<0.03",),
            packages.PACKAGE_CREATION_SUCCESS: ("rate>0.95",),
            packages.PACKAGE_RETRIEVAL_SUCCESS: ("rate>0.80",),
            packages.PACKAGE_CONFIRMATION_SUCCESS: ("rate>0.70",),
            "package_response_time": ("p(95)<3500",),
            packages.PACKAGES_CREATED_TOTAL: ("count>50",),
        }
    ),
    metrics=MappingProxyType(
        {
            packages.PACKAGE_CREATION_SUCCESS: MetricKind.RATE,
            packages.PACKAGE_RETRIEVAL_SUCCESS: MetricKind.RATE,
            packages.PACKAGE_CONFIRMATION_SUCCESS: MetricKind.RATE,
            "package_response_time": MetricKind.TREND,
            packages.PACKAGES_CREATED_TOTAL: MetricKind.COUNTER,
            packages.AVERAGE_ITEMS_PER_PACKAGE: MetricKind.TREND,
        }
    ),
    iteration_pace=IterationPace(4, 35),
    iteration_trend="package_response_time",
    teardown=packages.package_system_probes,
)

PICKLISTS = Profile(
    name="picklists",
    description="Picker workflows, status dashboards, pick confirmation and next-task polling",
    stages=(
        Stage(_m(1), 5),
        Stage(_m(3), 15),
        Stage(_m(5), 25),
        Stage(_m(3), 15),
        Stage(_m(2), 0),
    ),
    scenarios=(
        Scenario(ScenarioKind.PICKER_WORKFLOW, 35, picklists.picker_workflow),
        Scenario(ScenarioKind.STATUS_MONITORING, 25, picklists.status_monitoring),
        Scenario(ScenarioKind.PICK_CONFIRMATION, 20, picklists.pick_confirmation),
        Scenario(ScenarioKind.NEXT_TASK_POLLING, 15, picklists.next_task_polling),
        Scenario(ScenarioKind.BULK_QUERIES, 5, picklists.bulk_queries),
    ),
    thresholds=MappingProxyType(
        {
            HTTP_REQ_DURATION: ("p(95)<3000",),
            HTTP_REQ_FAILED: ("rate<0.05",),
            picklists.PICKLIST_RETRIEVAL_SUCCESS: ("rate>0.90",),
            picklists.PICK_CONFIRMATION_SUCCESS: ("rate>0.85",),
            "picklist_response_time": ("p(95)<2500",),
        }
    ),
    metrics=MappingProxyType(
        {
            picklists.PICKLIST_RETRIEVAL_SUCCESS: MetricKind.RATE,
            picklists.PICK_CONFIRMATION_SUCCESS: MetricKind.RATE,
            "picklist_response_time": MetricKind.TREND,
            "picklist_operations_total": MetricKind.COUNTER,
        }
    ),
    iteration_pace=IterationPace(3, 40),
    iteration_trend="picklist_response_time",
    iteration_counter="picklist_operations_total",
    teardown=picklists.pick_list_system_probes,
)

PROFILES: MappingProxyType[str, Profile] = MappingProxyType(
    {p.name: p for p in (SMOKE, LOAD, STRESS, SPIKE, PACKAGES, PICKLISTS)}
)


def get_profile(name: str) -> Profile:
    """Return the built-in profile called *name*.

    Raises:
        ScenarioError: If no profile has that name.
    """
    profile = PROFILES.get(name.lower())
    if profile is None:
        available = ", ".join(PROFILES)
        msg = f"Unknown profile {name!r}. Available profiles: {available}"
        raise ScenarioError(msg)
    return profile


def list_profiles() -> list[Profile]:
    """Return every built-in profile in declaration order."""
    return list(PROFILES.values())
