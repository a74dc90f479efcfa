"""
akv secrets - List the secrets of one vault.

Usage:
    akv secrets my-vault
    akv secrets https://my-vault.vault.azure.net/ --filter db
    akv secrets my-vault --json
"""

from typing import Annotated
from urllib.parse import urlparse

import typer

from akv_tui.cli.common import run_remote
from akv_tui.cli.output import print_json, print_table, print_warning
from akv_tui.fuzzy import fuzzy_filter
from akv_tui.remote.exceptions import NotFoundError
from akv_tui.remote.models import Secret, Vault
from akv_tui.runtime import Runtime


def _vault_from_uri(uri: str) -> Vault | None:
    parsed = urlparse(uri)
    if parsed.scheme != "https" or not parsed.hostname:
        return None
    return Vault(name=parsed.hostname.split(".", 1)[0], uri=f"https://{parsed.hostname}/")


def secrets(
    ctx: typer.Context,
    vault: Annotated[
        str,
        typer.Argument(
            help="Vault name or URI.",
        ),
    ],
    filter_query: Annotated[
        str | None,
        typer.Option(
            "--filter",
            "-f",
            help="Fuzzy filter on secret names.",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """List the secrets of a vault (names and metadata only)."""

    async def _list(runtime: Runtime) -> tuple[Vault, tuple[Secret, ...]]:
        # a direct URI does not need vault discovery
        target = _vault_from_uri(vault) or await runtime.find_vault(vault)
        if target is None:
            raise NotFoundError(f"Vault '{vault}' not found")
        return target, await runtime.cache.list_secrets(target)

    target, items = run_remote(ctx, _list)
    rows = fuzzy_filter(filter_query or "", list(items), key=lambda s: s.name)

    if json_output:
        print_json(
            [
                {
                    "name": secret.name,
                    "enabled": secret.enabled,
                    "updated_on": secret.updated_on.isoformat() if secret.updated_on else None,
                    "content_type": secret.content_type,
                }
                for secret in rows
            ]
        )
        return

    if not rows:
        print_warning(f"No secrets in {target.name}" + (f" matching '{filter_query}'." if filter_query else "."))
        return

    print_table(
        ["Name", "Enabled", "Updated", "Content type"],
        [
            [
                secret.name,
                "yes" if secret.enabled else "no",
                f"{secret.updated_on:%Y-%m-%d %H:%M}" if secret.updated_on else None,
                secret.content_type,
            ]
            for secret in rows
        ],
        title=f"{target.name} ({len(rows)} secrets)",
    )
