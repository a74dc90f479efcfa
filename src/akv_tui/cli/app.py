"""
Main Typer application for the akv CLI.

This module defines the root CLI application and registers all commands.
"""

from pathlib import Path
from typing import Annotated

import typer

from akv_tui import __version__
from akv_tui.cli.commands import config, secrets, vaults
from akv_tui.cli.common import CliOptions, load_cli_config
from akv_tui.cli.output import print_error, print_info

# Create the main Typer app
app = typer.Typer(
    name="akv",
    help="Browse, search and edit Azure Key Vault secrets from the terminal.",
    no_args_is_help=False,  # Allow running without args to launch the TUI
    invoke_without_command=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"akv version [green]{__version__}[/green]")
        raise typer.Exit()


# noinspection PyUnusedLocal
@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Write diagnostic logs to the log file (general.log_file).",
        ),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Read configuration from this YAML file.",
        ),
    ] = None,
) -> None:
    """
    [bold blue]akv[/bold blue] - Azure Key Vault secrets in your terminal

    Run [bold]akv[/bold] without arguments to launch the interactive UI.
    Use [bold]akv --help[/bold] to see all commands.
    """
    ctx.obj = CliOptions(debug=debug, config_path=config_path)

    # If no subcommand is invoked, launch the UI
    if ctx.invoked_subcommand is None:
        _launch_ui(ctx)


# Register commands
app.command("vaults")(vaults.vaults)
app.command("secrets")(secrets.secrets)
app.add_typer(config.app, name="config")


def _launch_ui(ctx: typer.Context) -> None:
    """Launch the Textual interface and exit with its return code."""
    app_config = load_cli_config(ctx)

    try:
        from akv_tui.runtime import build_runtime
        from akv_tui.tui import run_tui
    except ImportError as e:
        print_error(f"Failed to load UI: {e}")
        raise typer.Exit(1)

    try:
        code = run_tui(build_runtime(app_config))
    except KeyboardInterrupt:
        code = 0  # Clean exit on Ctrl+C

    raise typer.Exit(code)


if __name__ == "__main__":
    app()
