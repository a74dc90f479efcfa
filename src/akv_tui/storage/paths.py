"""
Path utilities for akv-tui.

Provides consistent path resolution for configuration and log files.
"""

import os
from pathlib import Path


def get_akv_home() -> Path:
    """
    Get the akv-tui home directory.

    Resolution order:
    1. AKV_HOME environment variable
    2. Default: ~/.akv

    Returns:
        Path to the akv-tui home directory.
    """
    env_home = os.environ.get("AKV_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".akv"


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.akv/config.yaml
    """
    return get_akv_home() / "config.yaml"


def get_default_log_path() -> Path:
    """
    Get the default debug log path.

    Returns:
        Path to ~/.akv/akv.log
    """
    return get_akv_home() / "akv.log"


def expand_path(path: str | Path) -> Path:
    """
    Expand a path string, handling ~ and environment variables.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded and resolved Path.
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)
    return Path(path).resolve()


def ensure_directory(path: Path, mode: int = 0o700) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path.
        mode: Permission mode for created directories.

    Returns:
        The path (for chaining).
    """
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    return path
