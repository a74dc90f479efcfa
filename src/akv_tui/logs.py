"""
Diagnostic logging setup.

The terminal belongs to the TUI, so log records only ever go to a file,
and only when debug mode is on.
"""

import logging
from pathlib import Path

from akv_tui.storage.paths import ensure_directory, expand_path

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Chatty third-party loggers that would drown our own records
_QUIET_LOGGERS = ("httpx", "httpcore", "azure", "asyncio")


def configure_logging(debug: bool, log_file: str | Path | None = None) -> Path | None:
    """
    Configure the root ``akv_tui`` logger.

    Args:
        debug: Write DEBUG records to ``log_file`` when True.
        log_file: Destination file. Required when debug is True.

    Returns:
        The resolved log path when file logging was enabled, else None.
    """
    root = logging.getLogger("akv_tui")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    if not debug or log_file is None:
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.WARNING)
        return None

    path = expand_path(log_file)
    ensure_directory(path.parent)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Debug logging enabled, writing to {path}")
    return path
