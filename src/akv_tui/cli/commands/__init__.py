"""CLI command modules."""

from akv_tui.cli.commands import config, secrets, vaults

__all__ = ["config", "secrets", "vaults"]
