"""Shared test fixtures for the Switchboard test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from switchboard.config import get_settings
from switchboard.config.models.aggregator import AggregatorConfig
from switchboard.config.models.assistant import AssistantConfig
from switchboard.config.models.tools import ToolsConfig
from switchboard.runtime.clock import ManualClock


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            original = self.original_env[key]
            if original is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = original


@pytest.fixture
def env_override() -> Callable[[dict[str, str]], EnvOverrideContext]:
    """Temporarily set environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"SWITCHBOARD_DEBUG": "true"}):
                ...
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    return _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Component fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Clock that only moves when the test advances it."""
    return ManualClock()


@pytest.fixture
def aggregator_config() -> AggregatorConfig:
    return AggregatorConfig(window_ms=3000)


@pytest.fixture
def assistant_config() -> AssistantConfig:
    return AssistantConfig(
        api_key="sk-test",
        assistant_id="asst_123",
        poll_interval_seconds=0.5,
        max_poll_retries=3,
        backoff_base_seconds=0.5,
        run_timeout_seconds=120.0,
    )


@pytest.fixture
def tools_config() -> ToolsConfig:
    return ToolsConfig(
        base_url="https://api.example.com",
        max_attempts=3,
        backoff_base_seconds=0.5,
    )
