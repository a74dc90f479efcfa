"""
akv-tui Configuration.

Pydantic schema, YAML loader and environment overrides.
"""

from akv_tui.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    clear_config_cache,
    get_config,
    load_config,
    load_yaml_file,
)
from akv_tui.config.merger import deep_merge, get_nested_value, set_nested_value
from akv_tui.config.schema import (
    AuthConfig,
    CacheConfig,
    Config,
    GeneralConfig,
    RemoteConfig,
    RetryConfig,
    UIConfig,
)

__all__ = [
    # Schema
    "Config",
    "AuthConfig",
    "RemoteConfig",
    "RetryConfig",
    "CacheConfig",
    "UIConfig",
    "GeneralConfig",
    # Loader
    "ConfigurationError",
    "load_config",
    "load_yaml_file",
    "apply_env_overrides",
    "get_config",
    "clear_config_cache",
    # Merger
    "deep_merge",
    "get_nested_value",
    "set_nested_value",
]
