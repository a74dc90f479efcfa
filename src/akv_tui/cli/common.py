"""
Shared plumbing for CLI commands.

Commands load configuration through ``load_cli_config`` (which also sets
up diagnostic logging once) and talk to Azure through ``run_remote``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import typer

from akv_tui.cli.output import print_error
from akv_tui.config import Config, ConfigurationError, load_config
from akv_tui.logs import configure_logging
from akv_tui.remote.exceptions import AkvError, AuthenticationError
from akv_tui.runtime import Runtime, build_runtime

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CliOptions:
    """Global options captured by the root callback."""

    debug: bool = False
    config_path: Path | None = None
    config: Config | None = None


def get_options(ctx: typer.Context) -> CliOptions:
    """Global options of this invocation, created on first use."""
    root = ctx.find_root()
    if not isinstance(root.obj, CliOptions):
        root.obj = CliOptions()
    return root.obj


def load_cli_config(ctx: typer.Context) -> Config:
    """
    Load configuration for a command and configure logging.

    Exits with code 1 on configuration errors.
    """
    options = get_options(ctx)
    if options.config is not None:
        return options.config

    try:
        config = load_config(config_path=options.config_path)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    configure_logging(options.debug or config.general.debug, config.general.log_file)
    options.config = config
    return config


def run_remote(ctx: typer.Context, operation: Callable[[Runtime], Awaitable[T]]) -> T:
    """
    Run ``operation`` against a freshly built runtime.

    Args:
        ctx: Typer context of the running command.
        operation: Coroutine function receiving the runtime.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        typer.Exit: With code 1 on any remote failure.
    """
    config = load_cli_config(ctx)

    async def _run() -> T:
        runtime = build_runtime(config)
        try:
            return await operation(runtime)
        finally:
            await runtime.aclose()

    try:
        return asyncio.run(_run())
    except AuthenticationError as e:
        logger.debug("Authentication failed", exc_info=True)
        print_error(f"Authentication failed: {e.message}")
        raise typer.Exit(1)
    except AkvError as e:
        logger.debug("Remote operation failed", exc_info=True)
        print_error(str(e.message))
        raise typer.Exit(1)
