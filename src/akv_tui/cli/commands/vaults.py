"""
akv vaults - List the vaults visible to the current credential.

Usage:
    akv vaults
    akv vaults --json
"""

from typing import Annotated

import typer

from akv_tui.cli.common import run_remote
from akv_tui.cli.output import print_json, print_table, print_warning


def vaults(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """List all vaults across subscriptions."""
    vault_list = run_remote(ctx, lambda runtime: runtime.cache.list_vaults())

    if json_output:
        print_json(
            [
                {
                    "name": vault.name,
                    "uri": vault.uri,
                    "subscription_id": vault.subscription_id,
                    "resource_id": vault.resource_id,
                }
                for vault in vault_list
            ]
        )
        return

    if not vault_list:
        print_warning("No vaults found.")
        return

    print_table(
        ["Name", "URI", "Subscription"],
        [[vault.name, vault.uri, vault.subscription_id] for vault in vault_list],
        title=f"Vaults ({len(vault_list)})",
    )
