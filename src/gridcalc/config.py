"""Engine configuration loaded from ``gridcalc.yaml``, with defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "max_rows": 1_048_576,
    "max_cols": 16_384,
    "max_range_cells": 1_000_000,  # largest range a single reference may span
    "display_precision": 10,
    "logging_dir": None,
    "logging_fsync": False,
}

_POSITIVE_INT_KEYS = ("max_rows", "max_cols", "max_range_cells", "display_precision")


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Check value types of a merged configuration.

    Raises:
        ValueError: If a numeric setting is not a positive integer.
    """
    for key in _POSITIVE_INT_KEYS:
        value = config.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValueError(f"Config {key!r} must be a positive integer, got {value!r}")
    return config


def load_config(path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from a YAML file, merged over ``DEFAULT_CONFIG``.

    Args:
        path: A YAML file, or a directory containing ``gridcalc.yaml``.
            ``None`` returns the defaults.

    Returns:
        Merged configuration dict.  Unknown keys are kept as-is.
    """
    config = dict(DEFAULT_CONFIG)
    if path is None:
        return config

    config_path = Path(path)
    if config_path.is_dir():
        config_path = config_path / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(user_config).__name__}")
        config.update(user_config)

    return validate_config(config)
