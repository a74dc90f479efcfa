"""
Remote client façade.

Wraps every secret-store operation with token acquisition, a per-call
timeout, error translation and the retry policy. This is the only
component that touches the transport.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from akv_tui.cache.tokens import TokenCache
from akv_tui.remote.exceptions import (
    AkvError,
    AuthenticationError,
    ValidationError,
    translate_error,
)
from akv_tui.remote.models import Page, Secret, Token, Vault
from akv_tui.remote.protocol import SecretStoreTransport
from akv_tui.remote.retry import RetryPolicy, build_retrying

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Key Vault object names: 1-127 alphanumerics and dashes
SECRET_NAME_PATTERN = re.compile(r"^[0-9A-Za-z-]{1,127}$")


def validate_secret_name(name: str) -> str:
    """
    Validate a secret name before it is sent anywhere.

    Args:
        name: Candidate secret name.

    Returns:
        The name, stripped of surrounding whitespace.

    Raises:
        ValidationError: If the name is empty or has invalid characters.
    """
    name = name.strip()
    if not name:
        raise ValidationError("Secret name cannot be empty")
    if not SECRET_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid secret name '{name}': use 1-127 letters, digits and dashes"
        )
    return name


class RemoteClient:
    """
    Uniform entry point for remote operations.

    Every attempt obtains a token from the token cache first; a token
    failure short-circuits with AuthenticationError before the transport
    is called. Transient failures are retried per the retry policy.
    """

    def __init__(
        self,
        transport: SecretStoreTransport,
        tokens: TokenCache,
        management_scope: str,
        vault_scope: str,
        policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the remote client.

        Args:
            transport: Wire-level secret store access.
            tokens: Token cache supplying bearer tokens.
            management_scope: Scope for vault discovery calls.
            vault_scope: Scope for secret (data plane) calls.
            policy: Retry policy. Defaults to RetryPolicy().
            timeout: Upper bound in seconds for a single attempt.
            sleep: Backoff sleep coroutine.
        """
        self.transport = transport
        self.tokens = tokens
        self.management_scope = management_scope
        self.vault_scope = vault_scope
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep

    async def _call(
        self,
        operation: str,
        scope: str,
        fn: Callable[[Token], Awaitable[T]],
    ) -> T:
        """Run one operation under the retry policy."""
        retrying = build_retrying(self.policy, operation, sleep=self._sleep)

        async for attempt in retrying:
            with attempt:
                token = await self.tokens.get_token(scope)
                try:
                    result = await asyncio.wait_for(fn(token), timeout=self.timeout)
                except AkvError as e:
                    self._on_error(scope, e)
                    raise
                except Exception as e:
                    error = translate_error(e)
                    logger.debug(f"{operation}: {type(e).__name__} -> {type(error).__name__}")
                    self._on_error(scope, error)
                    raise error from e

        return result

    def _on_error(self, scope: str, error: AkvError) -> None:
        if isinstance(error, AuthenticationError):
            # token rejected by the service, make the next call re-acquire
            self.tokens.invalidate(scope)

    async def list_vaults_page(self, continuation: str | None = None) -> Page[Vault]:
        """Fetch one page of the vault inventory."""
        return await self._call(
            "list_vaults",
            self.management_scope,
            lambda token: self.transport.list_vaults(token, continuation),
        )

    async def list_secrets_page(
        self,
        vault: Vault,
        continuation: str | None = None,
    ) -> Page[Secret]:
        """Fetch one page of a vault's secret listing."""
        return await self._call(
            f"list_secrets[{vault.name}]",
            self.vault_scope,
            lambda token: self.transport.list_secrets(token, vault, continuation),
        )

    async def get_secret(self, vault: Vault, name: str) -> Secret:
        """Fetch a secret including its value."""
        return await self._call(
            f"get_secret[{vault.name}]",
            self.vault_scope,
            lambda token: self.transport.get_secret(token, vault, name),
        )

    async def set_secret(self, vault: Vault, name: str, value: str) -> Secret:
        """
        Create or update a secret.

        Raises:
            ValidationError: Before any network call, if the name is invalid.
        """
        name = validate_secret_name(name)
        return await self._call(
            f"set_secret[{vault.name}]",
            self.vault_scope,
            lambda token: self.transport.set_secret(token, vault, name, value),
        )

    async def delete_secret(self, vault: Vault, name: str) -> None:
        """Soft-delete a secret."""
        await self._call(
            f"delete_secret[{vault.name}]",
            self.vault_scope,
            lambda token: self.transport.delete_secret(token, vault, name),
        )

    async def close(self) -> None:
        await self.transport.close()
