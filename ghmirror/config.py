"""Configuration parsing and validation for ghmirror.

This module reads the optional YAML file holding defaults for a mirror run.
Command-line flags take precedence over anything set here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from typing_extensions import TypedDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".ghmirror.yaml")
MAX_PAGE_SIZE = 100


class MirrorConfig(TypedDict):
    """Settings for a mirror run."""

    base_dir: str
    bare: bool
    skip_forks: bool
    workers: int
    timeout: int
    page_size: int


def default_config() -> MirrorConfig:
    """Return the settings used when no configuration file is present."""
    return {
        "base_dir": ".",
        "bare": False,
        "skip_forks": False,
        "workers": 1,
        "timeout": 30,
        "page_size": MAX_PAGE_SIZE,
    }


def load_config(config_path: Path) -> MirrorConfig:
    """Load and validate configuration from YAML file.

    Every key is optional; missing keys keep their default value.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Parsed and validated configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML is malformed
        ConfigError: If a value is invalid (a ValueError)

    Example:
        >>> config = load_config(Path(".ghmirror.yaml"))
        >>> print(config["workers"])
        4
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML configuration: {e}") from e

    # An empty file is a valid, empty configuration
    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a dictionary")

    config = default_config()
    unknown = sorted(set(data) - set(config))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(map(str, unknown))}")

    if "base_dir" in data:
        if not isinstance(data["base_dir"], str) or not data["base_dir"]:
            raise ConfigError("'base_dir' must be a non-empty string")
        config["base_dir"] = data["base_dir"]

    for key in ("bare", "skip_forks"):
        if key in data:
            if not isinstance(data[key], bool):
                raise ConfigError(f"'{key}' must be a boolean")
            config[key] = data[key]  # type: ignore[literal-required]

    if "workers" in data:
        config["workers"] = _positive_int(data, "workers")
    if "timeout" in data:
        config["timeout"] = _positive_int(data, "timeout")
    if "page_size" in data:
        page_size = _positive_int(data, "page_size")
        if page_size > MAX_PAGE_SIZE:
            raise ConfigError(f"'page_size' must not exceed {MAX_PAGE_SIZE}")
        config["page_size"] = page_size

    logger.info(f"Successfully loaded configuration from {config_path}")
    return config


def _positive_int(data: dict[str, Any], key: str) -> int:
    value = data[key]
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer")
    if value < 1:
        raise ConfigError(f"'{key}' must be at least 1")
    return value
