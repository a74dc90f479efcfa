"""
Runtime wiring.

Builds the credential provider, token cache, transport, remote client
and resource cache from a Config. The CLI commands and the TUI share
this one assembly path.
"""

import logging
from dataclasses import dataclass

from akv_tui.cache.resources import ResourceCache
from akv_tui.cache.tokens import TokenCache
from akv_tui.config.schema import Config
from akv_tui.remote.client import RemoteClient
from akv_tui.remote.models import Token, Vault
from akv_tui.remote.protocol import CredentialProvider, SecretStoreTransport
from akv_tui.remote.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """The assembled remote and caching stack."""

    config: Config
    provider: CredentialProvider
    tokens: TokenCache
    client: RemoteClient
    cache: ResourceCache

    async def verify_credentials(self) -> Token:
        """
        Acquire a management token up front.

        Raises:
            AuthenticationError: If no credential is available.
        """
        return await self.tokens.get_token(self.config.auth.management_scope)

    async def find_vault(self, name_or_uri: str) -> Vault | None:
        """Look a vault up by name (case-insensitive) or URI."""
        wanted = name_or_uri.rstrip("/").lower()
        for vault in await self.cache.list_vaults():
            if vault.name.lower() == wanted or vault.uri.rstrip("/").lower() == wanted:
                return vault
        return None

    async def aclose(self) -> None:
        await self.client.close()
        await self.provider.close()


def build_runtime(
    config: Config,
    provider: CredentialProvider | None = None,
    transport: SecretStoreTransport | None = None,
) -> Runtime:
    """
    Assemble the stack for ``config``.

    Args:
        config: Loaded configuration.
        provider: Credential provider. Defaults to AzureCredentialProvider.
        transport: Secret store transport. Defaults to AzureRestTransport.

    Returns:
        A ready Runtime. Nothing touches the network until first use.
    """
    if provider is None:
        from akv_tui.remote.azure import AzureCredentialProvider

        provider = AzureCredentialProvider(exclude_interactive=config.auth.exclude_interactive)

    if transport is None:
        from akv_tui.remote.azure import AzureRestTransport

        transport = AzureRestTransport(config.remote)

    tokens = TokenCache(provider, skew_margin=config.auth.skew_margin_seconds)
    client = RemoteClient(
        transport,
        tokens,
        management_scope=config.auth.management_scope,
        vault_scope=config.auth.vault_scope,
        policy=RetryPolicy.from_config(config.retry),
        timeout=config.remote.timeout_seconds,
    )
    cache = ResourceCache(client)

    logger.debug(
        f"Runtime built: retry={config.retry.max_attempts} attempts, "
        f"timeout={config.remote.timeout_seconds}s"
    )
    return Runtime(config=config, provider=provider, tokens=tokens, client=client, cache=cache)
