"""
Configuration merger for akv-tui.

Implements deep merge and dotted-path access for nested config dicts.
"""

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Merge rules:
    - Scalar values: override replaces base
    - Dicts: recursive deep merge
    - Lists: override replaces base
    - null/None value: remove key from result

    Args:
        base: Base configuration dictionary.
        override: Override configuration dictionary.

    Returns:
        Merged configuration dictionary.

    Examples:
        >>> deep_merge({"retry": {"max_attempts": 3}}, {"retry": {"max_attempts": 5}})
        {'retry': {'max_attempts': 5}}
    """
    result = base.copy()

    for key, value in override.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_nested_value(config: dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a value from a nested dictionary using dot notation.

    Args:
        config: Configuration dictionary.
        path: Dot-separated path (e.g., "retry.max_attempts").
        default: Value returned when the path does not exist.

    Returns:
        The value at the path, or default if not found.
    """
    current: Any = config
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_nested_value(config: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """
    Set a value in a nested dictionary using dot notation.

    Intermediate dictionaries are created as needed.

    Args:
        config: Configuration dictionary (modified in place).
        path: Dot-separated path (e.g., "cache.preload_all").
        value: Value to set.

    Returns:
        The modified configuration dictionary.
    """
    keys = path.split(".")
    current = config

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value
    return config
