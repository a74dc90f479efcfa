"""
akv config - Configuration inspection commands.

Usage:
    akv config show
    akv config show --json
    akv config path
"""

import json
import os
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from akv_tui.cli.common import get_options, load_cli_config
from akv_tui.storage.paths import get_global_config_path

app = typer.Typer(
    name="config",
    help="Configuration inspection.",
)

console = Console()


@app.command()
def show(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the effective configuration (defaults, file and environment merged)."""
    config = load_cli_config(ctx)
    config_dict = config.model_dump(mode="json")

    if json_output:
        console.print_json(json.dumps(config_dict))
        return

    output = yaml.dump(
        config_dict,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    console.print(Syntax(output, "yaml", theme="monokai"))


@app.command()
def path(ctx: typer.Context) -> None:
    """Show which configuration file is read."""
    options = get_options(ctx)
    if options.config_path is not None:
        config_path = options.config_path
        source = "--config"
    elif os.environ.get("AKV_CONFIG"):
        config_path = os.path.expanduser(os.environ["AKV_CONFIG"])
        source = "AKV_CONFIG"
    else:
        config_path = get_global_config_path()
        source = "global"

    exists = os.path.exists(config_path)
    status = "[green]found[/green]" if exists else "[dim]not found (defaults apply)[/dim]"
    console.print(f"{config_path}  [cyan]{source}[/cyan]  {status}")
