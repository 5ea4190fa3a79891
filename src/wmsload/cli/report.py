"""JSON export of a completed run."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from wmsload import __version__

if TYPE_CHECKING:
    from pathlib import Path

    from wmsload.metrics.models import TestResult


def result_to_dict(result: TestResult) -> dict[str, Any]:
    """Convert *result* to a JSON-serializable dictionary.

    Per-tick snapshots are kept; metric kinds are written by value.
    """
    return {
        "tool": f"wmsload {__version__}",
        "generated_at": datetime.now(tz=UTC).isoformat(),
        "profile": result.profile_name,
        "base_url": result.base_url,
        "pattern": result.pattern_description,
        "duration_seconds": result.duration_seconds,
        "thresholds_passed": result.thresholds_passed,
        "summary": asdict(result.final_summary) if result.final_summary else None,
        "metrics": {
            name: {"kind": summary.kind.value, "values": summary.values}
            for name, summary in result.metrics.items()
        },
        "checks": [asdict(tally) for tally in result.checks],
        "thresholds": [asdict(verdict) for verdict in result.thresholds],
        "assessment": (
            {
                "grade": result.assessment.grade,
                "probes": result.assessment.probes,
            }
            if result.assessment is not None
            else None
        ),
        "snapshots": [asdict(snapshot) for snapshot in result.snapshots],
    }


def write_json_report(result: TestResult, path: Path) -> Path:
    """Write *result* as indented JSON to *path*, creating parent directories.

    Returns:
        The path written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result_to_dict(result), indent=2), encoding="utf-8")
    return path
