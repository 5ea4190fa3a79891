"""Virtual-user schedules for wmsload.

Every schedule implements :class:`LoadPattern`, yielding
``(elapsed_seconds, target_concurrency)`` tuples via
:meth:`~LoadPattern.iter_concurrency` and reporting the current named phase
via :meth:`~LoadPattern.phase_at`.
"""

from __future__ import annotations

from wmsload.patterns.base import LoadPattern
from wmsload.patterns.constant import ConstantPattern
from wmsload.patterns.stages import Stage, StagePattern

__all__ = [
    "ConstantPattern",
    "LoadPattern",
    "Stage",
    "StagePattern",
]
