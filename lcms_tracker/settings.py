"""
Configuration Module

This module manages runtime settings for the LC-MS method tracker. Settings
are loaded once by the entry point and passed explicitly to the components
that need them.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, List, Optional

from lcms_tracker.config import DEFAULT_GUARD_COLUMN_LIFETIME, DEFAULT_GUARD_COLUMN_TYPES
from lcms_tracker.data_types import GuardColumnType

logger = logging.getLogger(__name__)

ENV_PREFIX = "LCMS_TRACKER_"

# Default configuration
DEFAULT_CONFIG: Dict[str, Any] = {
    "data_dir": "lcms_data",
    "injection_log": "lcms_data/injections.csv",
    "methods_file": "lcms_data/methods.json",
    "output_dir": "lcms_reports",
    "log_dir": "logs",
    "log_level": "INFO",
    "batches": {
        "success_policy": "all",
    },
    "guard_columns": {
        "default_lifetime": DEFAULT_GUARD_COLUMN_LIFETIME,
        "types": [
            {"part_number": t.part_number, "expected_lifetime": t.expected_lifetime}
            for t in DEFAULT_GUARD_COLUMN_TYPES
        ],
    },
    "advanced": {
        "lock_timeout_seconds": 0.0,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Optional path to a JSON config file

    Returns:
        A new configuration dictionary (defaults, then file values, then env vars)
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        if os.path.exists(config_path):
            try:
                with open(config_path, "r") as f:
                    _update_nested_dict(config, json.load(f))
            except (OSError, ValueError) as e:
                logger.error(f"Error loading config from {config_path}: {e}")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

    _override_from_env(config)
    return config


def save_config(config: Dict[str, Any], config_path: str) -> bool:
    """
    Save a configuration to file.

    Returns:
        True if successful, False otherwise
    """
    try:
        os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        logger.error(f"Error saving config to {config_path}: {e}")
        return False


def guard_column_types(config: Dict[str, Any]) -> List[GuardColumnType]:
    """Guard column types from a loaded config."""
    return [
        GuardColumnType(
            part_number=str(entry["part_number"]),
            expected_lifetime=int(entry["expected_lifetime"]),
        )
        for entry in config.get("guard_columns", {}).get("types", [])
    ]


def _update_nested_dict(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update a nested dictionary with values from another dictionary.

    Args:
        d: Dictionary to update
        u: Dictionary with new values

    Returns:
        Updated dictionary
    """
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            _update_nested_dict(d[k], v)
        else:
            d[k] = v
    return d


def _override_from_env(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> None:
    """
    Override configuration with environment variables.

    Environment variables should be prefixed with LCMS_TRACKER_
    For nested keys, use double underscore, e.g., LCMS_TRACKER_GUARD_COLUMNS__DEFAULT_LIFETIME

    Args:
        config: Configuration dictionary to update
        environ: Environment mapping (defaults to os.environ)
    """
    if environ is None:
        environ = os.environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        parts = key[len(ENV_PREFIX) :].lower().split("__")

        # Navigate to the correct level in the config
        current = config
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = _convert_env_value(value)


def _convert_env_value(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit() and value.count(".") == 1:
        return float(value)
    return value
