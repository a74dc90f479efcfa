"""
Configuration loader for akv-tui.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.akv/config.yaml) or an explicit file
3. Environment variables (AKV_<SECTION>__<KEY>)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from akv_tui.config.merger import deep_merge, set_nested_value
from akv_tui.config.schema import Config
from akv_tui.storage.paths import get_global_config_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "AKV_"

# Environment variables with their own meaning, never treated as overrides
_RESERVED_ENV = {"AKV_HOME", "AKV_CONFIG"}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return content


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
    AKV_<SECTION>__<KEY>=<value>

    A double underscore separates nesting levels so that keys may
    themselves contain underscores (AKV_RETRY__MAX_ATTEMPTS).

    Args:
        config: Configuration dictionary to modify.

    Returns:
        Configuration with environment overrides applied.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        config_key = key[len(ENV_PREFIX) :].lower().replace("__", ".")
        if "." not in config_key:
            continue

        config = set_nested_value(config, config_key, _parse_env_value(value))
        logger.debug(f"Applied environment override {key}")

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (bool, int, float, list, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if "," in value:
        return [item.strip() for item in value.split(",")]

    return value


def load_config(
    config_path: Path | None = None,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Config file (explicit path, AKV_CONFIG, or ~/.akv/config.yaml)
    3. Environment variables (AKV_*)

    Args:
        config_path: Explicit configuration file. Must exist if given.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump()

    if config_path is None and os.environ.get("AKV_CONFIG"):
        config_path = Path(os.environ["AKV_CONFIG"]).expanduser()

    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config_dict = deep_merge(config_dict, load_yaml_file(config_path))
    else:
        global_path = get_global_config_path()
        if global_path.exists():
            config_dict = deep_merge(config_dict, load_yaml_file(global_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except Exception as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False, config_path: Path | None = None) -> Config:
    """
    Get the global configuration instance.

    Uses a cached instance. Use reload=True to force refresh.

    Args:
        reload: Force reload configuration from disk.
        config_path: Explicit configuration file (forces a reload).

    Returns:
        Config instance.
    """
    global _cached_config

    if _cached_config is None or reload or config_path is not None:
        _cached_config = load_config(config_path=config_path)

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
