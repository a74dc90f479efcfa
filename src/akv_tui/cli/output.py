"""
Output formatting utilities for the CLI.

Provides consistent output formatting across all CLI commands.
"""

import json
from typing import Any

from rich.console import Console
from rich.table import Table

# Global console instance
console = Console()


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]i[/blue] {message}")


def print_json(data: Any) -> None:
    """Print data as plain JSON (no markup, safe for piping)."""
    console.print_json(json.dumps(data, default=str))


def print_table(
    headers: list[str],
    rows: list[list[Any]],
    title: str | None = None,
) -> None:
    """Print a table."""
    table = Table(title=title)

    for header in headers:
        table.add_column(header)

    for row in rows:
        table.add_row(*["-" if cell is None else str(cell) for cell in row])

    console.print(table)
