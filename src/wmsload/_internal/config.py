"""Environment resolution and configuration loading for wmsload."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType

from wmsload import __version__
from wmsload._internal.errors import ConfigError
from wmsload._internal.logging import get_logger
from wmsload._internal.types import Headers

logger = get_logger("config")

DEFAULT_ENVIRONMENT = "local"
USER_AGENT = f"wmsload/{__version__}"


@dataclass(frozen=True)
class Environment:
    """A named deployment of the warehouse-operations API.

    Attributes:
        name: Environment key (e.g., ``"staging"``).
        base_url: Base URL every request path is appended to.
        description: Human-readable label used in logs and reports.
    """

    name: str
    base_url: str
    description: str


ENVIRONMENTS: MappingProxyType[str, Environment] = MappingProxyType(
    {
        "local": Environment(
            name="local",
            base_url="http://localhost:8080",
            description="Local development environment",
        ),
        "staging": Environment(
            name="staging",
            base_url="https://warehouse-operations-staging.paklog.com",
            description="Staging environment",
        ),
        "production": Environment(
            name="production",
            base_url="https://warehouse-operations.paklog.com",
            description="Production environment",
        ),
    }
)


def resolve_environment(name: str | None) -> Environment:
    """Map an environment name to its record.

    Unknown or empty names fall back to the ``local`` environment rather
    than failing.

    Args:
        name: Environment name, or None.

    Returns:
        The matching Environment, or the ``local`` one.
    """
    if not name:
        return ENVIRONMENTS[DEFAULT_ENVIRONMENT]
    env = ENVIRONMENTS.get(name.lower())
    if env is None:
        logger.warning("Unknown environment %r, falling back to %s", name, DEFAULT_ENVIRONMENT)
        return ENVIRONMENTS[DEFAULT_ENVIRONMENT]
    return env


def default_headers() -> Headers:
    """Return the headers sent with every request."""
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }


@dataclass(frozen=True)
class WmsLoadConfig:
    """Global wmsload configuration.

    Attributes:
        environment: Resolved target environment.
        base_url: Effective base URL (the environment's unless overridden).
        headers: Headers applied to every request.
        request_timeout: Per-request timeout in seconds.
        think_scale: Multiplier applied to every think-time sleep. ``0``
            disables pacing, which is useful against a local fake server.
    """

    environment: Environment = field(default_factory=lambda: ENVIRONMENTS[DEFAULT_ENVIRONMENT])
    base_url: str = ""
    headers: Headers = field(default_factory=default_headers)
    request_timeout: float = 30.0
    think_scale: float = 1.0

    @property
    def target_url(self) -> str:
        """Return the base URL requests are sent to."""
        return self.base_url or self.environment.base_url


def load_config() -> WmsLoadConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        WMSLOAD_ENVIRONMENT: Environment name (default: ``local``).
        WMSLOAD_BASE_URL: Override of the environment's base URL.
        WMSLOAD_TIMEOUT: Request timeout in seconds (default: 30.0).
        WMSLOAD_THINK_SCALE: Think-time multiplier (default: 1.0).

    Returns:
        Populated WmsLoadConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    timeout_str = os.environ.get("WMSLOAD_TIMEOUT", "30.0")
    scale_str = os.environ.get("WMSLOAD_THINK_SCALE", "1.0")

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"WMSLOAD_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"WMSLOAD_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    try:
        think_scale = float(scale_str)
    except ValueError:
        msg = f"WMSLOAD_THINK_SCALE must be a number, got: {scale_str!r}"
        raise ConfigError(msg) from None

    if think_scale < 0:
        msg = f"WMSLOAD_THINK_SCALE must be >= 0, got: {think_scale}"
        raise ConfigError(msg)

    return WmsLoadConfig(
        environment=resolve_environment(os.environ.get("WMSLOAD_ENVIRONMENT")),
        base_url=os.environ.get("WMSLOAD_BASE_URL", "").rstrip("/"),
        request_timeout=timeout,
        think_scale=think_scale,
    )


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str | float) -> float:
    """Parse a duration such as ``"30s"``, ``"2m"`` or ``"1m30s"`` into seconds.

    Plain numbers are taken as seconds.

    Args:
        value: Duration string or number.

    Returns:
        Duration in seconds.

    Raises:
        ConfigError: If the value cannot be parsed or is negative.
    """
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        text = value.strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                msg = f"Invalid duration: {value!r}"
                raise ConfigError(msg) from None
            seconds = sum(float(n) * _UNIT_SECONDS[u] for n, u in parts)

    if seconds < 0:
        msg = f"Duration must be non-negative, got: {value!r}"
        raise ConfigError(msg)
    return seconds
