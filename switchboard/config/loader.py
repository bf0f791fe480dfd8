"""Layered TOML configuration.

`config/default.toml` is read first, then `config/{SWITCHBOARD_ENV}.toml`
is merged over it. Both files are optional because every setting has a
default on its model.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "SWITCHBOARD_CONFIG_DIR"
ENVIRONMENT_ENV = "SWITCHBOARD_ENV"
DEFAULT_ENVIRONMENT = "development"

# How many parent directories to search for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Locate the config directory.

    Raises:
        FileNotFoundError: SWITCHBOARD_CONFIG_DIR points at a missing path
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise FileNotFoundError(f"Config directory not found: {explicit}")
        return path

    start = Path.cwd()
    for directory in [start, *start.parents][:_SEARCH_DEPTH]:
        candidate = directory / "config"
        if candidate.is_dir():
            return candidate

    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: The file does not exist
        tomllib.TOMLDecodeError: The file is not valid TOML
    """
    try:
        with file_path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from e


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge `override` into a copy of `base`; nested tables merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config() -> dict[str, Any]:
    """Read and merge the default and environment layers."""
    config_dir = get_config_dir()
    layers = [config_dir / "default.toml", config_dir / f"{get_environment()}.toml"]

    config: dict[str, Any] = {}
    for layer in layers:
        if layer.exists():
            config = deep_merge(config, load_toml(layer))
    return config
