"""
akv-tui storage helpers.
"""

from akv_tui.storage.paths import (
    ensure_directory,
    expand_path,
    get_akv_home,
    get_default_log_path,
    get_global_config_path,
)

__all__ = [
    "ensure_directory",
    "expand_path",
    "get_akv_home",
    "get_default_log_path",
    "get_global_config_path",
]
