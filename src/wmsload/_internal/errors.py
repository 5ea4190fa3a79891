"""Custom exception hierarchy for wmsload."""

from __future__ import annotations


class WmsLoadError(Exception):
    """Base exception for all wmsload errors.

    All custom exceptions in wmsload inherit from this class, making it
    easy to catch any wmsload-specific error with a single except clause.
    """


class ConfigError(WmsLoadError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``WMSLOAD_TIMEOUT`` is not a positive number.
        - A stage duration string such as ``"3x"`` cannot be parsed.
        - A threshold expression is malformed.
    """


class ScenarioError(WmsLoadError):
    """Raised when a scenario or profile definition is invalid.

    Examples:
        - A scenario is declared with a negative weight.
        - Weighted selection is asked to choose from an empty list.
        - An unknown profile name is requested.
    """


class EngineError(WmsLoadError):
    """Raised when the test session fails in an unrecoverable way."""


class SetupError(WmsLoadError):
    """Raised when the pre-flight health check fails.

    A setup failure is fatal: no virtual user is started.
    """


class MetricError(WmsLoadError):
    """Raised on misuse of the metric sink.

    Examples:
        - Adding a sample to a metric that was never declared.
        - Declaring the same metric name twice with different kinds.
    """


class DataError(WmsLoadError):
    """Base class for test-data generation errors."""


class EmptyPoolError(DataError):
    """Raised when sampling from an empty value pool."""


class InvalidRangeError(DataError):
    """Raised when a random integer range has ``min > max``."""
