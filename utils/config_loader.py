"""
Configuration loading for the presence engine.

Tunables live in ``configs/thresholds.yaml``. Every component also carries
its own named defaults, so an empty or partial config dict is always valid.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'configs' / 'thresholds.yaml'


def load_config(config_path=None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to YAML file (str or Path). None loads the bundled
                     defaults.

    Returns:
        Configuration dictionary (empty dict for an empty file)

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise yaml.YAMLError(f"Top level of {config_path} must be a mapping")

    logger.debug(f"Loaded config sections: {list(config.keys())}")

    return config


def merge_config(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Recursively merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value in ``override``
    replaces the one in ``base``.
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_run_config(config_path=None) -> Dict[str, Any]:
    """
    Bundled defaults, overlaid with a user file when one is given.

    The defaults are found relative to this package, so a run works from
    any working directory.

    Raises:
        FileNotFoundError: If ``config_path`` is given and doesn't exist
    """
    config = load_config()
    if config_path is not None:
        config = merge_config(config, load_config(config_path))
    return config


def get_nested_config(config: Optional[Dict[str, Any]], key_path: str, default: Any = None) -> Any:
    """
    Get nested configuration value using dot notation.

    Example:
        get_nested_config(config, 'movement.buffer_size', default=10)

    Args:
        config: Configuration dictionary (None is treated as empty)
        key_path: Dot-separated path to value
        default: Default value if path not found

    Returns:
        Configuration value or default
    """
    value = config or {}

    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
