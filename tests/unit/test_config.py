"""Tests for environment resolution and configuration loading."""

from __future__ import annotations

import logging

import pytest

from wmsload import __version__
from wmsload._internal.config import (
    ENVIRONMENTS,
    WmsLoadConfig,
    default_headers,
    load_config,
    parse_duration,
    resolve_environment,
)
from wmsload._internal.errors import ConfigError


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ("WMSLOAD_ENVIRONMENT", "WMSLOAD_BASE_URL", "WMSLOAD_TIMEOUT", "WMSLOAD_THINK_SCALE"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestResolveEnvironment:
    """Tests for resolve_environment."""

    @pytest.mark.parametrize("name", [None, ""])
    def test_missing_name_is_local(self, name: str | None):
        env = resolve_environment(name)
        assert env.name == "local"
        assert env.base_url == "http://localhost:8080"

    def test_known_environments(self):
        assert resolve_environment("staging").base_url == (
            "https://warehouse-operations-staging.paklog.com"
        )
        assert resolve_environment("production").base_url == "https://warehouse-operations.paklog.com"

    def test_name_is_case_insensitive(self):
        assert resolve_environment("STAGING") is ENVIRONMENTS["staging"]

    def test_unknown_name_falls_back_to_local(
        self, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
    ):
        """Unknown environments never raise; they fall back with a warning."""
        monkeypatch.setattr(logging.getLogger("wmsload"), "propagate", True)
        with caplog.at_level("WARNING", logger="wmsload"):
            env = resolve_environment("qa-42")
        assert env.name == "local"
        assert "qa-42" in caplog.text


class TestWmsLoadConfig:
    """Tests for the WmsLoadConfig dataclass."""

    def test_defaults(self):
        config = WmsLoadConfig()
        assert config.environment.name == "local"
        assert config.target_url == "http://localhost:8080"
        assert config.request_timeout == 30.0
        assert config.think_scale == 1.0

    def test_base_url_overrides_environment(self):
        config = WmsLoadConfig(environment=ENVIRONMENTS["staging"], base_url="http://127.0.0.1:9000")
        assert config.target_url == "http://127.0.0.1:9000"

    def test_default_headers(self):
        headers = default_headers()
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"
        assert headers["User-Agent"] == f"wmsload/{__version__}"

    def test_frozen(self):
        config = WmsLoadConfig()
        with pytest.raises(AttributeError):
            config.base_url = "http://changed"  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self, clean_env: pytest.MonkeyPatch):
        config = load_config()
        assert config.environment.name == "local"
        assert config.base_url == ""
        assert config.request_timeout == 30.0

    def test_environment_and_base_url(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("WMSLOAD_ENVIRONMENT", "production")
        clean_env.setenv("WMSLOAD_BASE_URL", "http://proxy.internal/")
        config = load_config()
        assert config.environment.name == "production"
        assert config.target_url == "http://proxy.internal"

    def test_timeout_and_think_scale(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("WMSLOAD_TIMEOUT", "10.5")
        clean_env.setenv("WMSLOAD_THINK_SCALE", "0")
        config = load_config()
        assert config.request_timeout == 10.5
        assert config.think_scale == 0.0

    def test_invalid_timeout_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("WMSLOAD_TIMEOUT", "abc")
        with pytest.raises(ConfigError, match="must be a number"):
            load_config()

    def test_zero_timeout_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("WMSLOAD_TIMEOUT", "0")
        with pytest.raises(ConfigError, match="must be positive"):
            load_config()

    def test_negative_think_scale_raises_error(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("WMSLOAD_THINK_SCALE", "-1")
        with pytest.raises(ConfigError, match=">= 0"):
            load_config()


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("30s", 30.0),
            ("2m", 120.0),
            ("1m30s", 90.0),
            ("1h", 3600.0),
            ("250ms", 0.25),
            ("45", 45.0),
            (12, 12.0),
        ],
    )
    def test_valid(self, text: str | int, seconds: float):
        assert parse_duration(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "abc", "10x", "1m 30s", "-5"])
    def test_invalid(self, text: str):
        with pytest.raises(ConfigError):
            parse_duration(text)
