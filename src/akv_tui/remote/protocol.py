"""
Remote capability protocols.

The core never talks to Azure directly. It consumes two capabilities:
a credential provider (used only by the token cache) and a secret-store
transport (used only by the remote client). Concrete implementations
live in ``akv_tui.remote.azure``; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod

from akv_tui.remote.models import Page, Secret, Token, Vault


class CredentialProvider(ABC):
    """Performs the actual authentication handshake."""

    @abstractmethod
    async def acquire_credential(self, scope: str) -> Token:
        """
        Acquire a fresh access token.

        Args:
            scope: OAuth scope the token is for.

        Returns:
            The new token.

        Raises:
            Exception: Any failure; the token cache wraps it as an
                AuthenticationError.
        """
        ...

    async def close(self) -> None:
        """Release underlying resources."""
        return None


class SecretStoreTransport(ABC):
    """Wire-level access to the remote secret store.

    Every method receives a bearer token obtained by the caller and
    performs exactly one logical request. Failures are raised as
    ``httpx`` exceptions or AkvError subclasses; retrying is the
    caller's job.
    """

    @abstractmethod
    async def list_vaults(self, token: Token, continuation: str | None = None) -> Page[Vault]:
        """Fetch one page of vaults. ``continuation`` is opaque."""
        ...

    @abstractmethod
    async def list_secrets(
        self,
        token: Token,
        vault: Vault,
        continuation: str | None = None,
    ) -> Page[Secret]:
        """Fetch one page of secret properties (no values)."""
        ...

    @abstractmethod
    async def get_secret(self, token: Token, vault: Vault, name: str) -> Secret:
        """Fetch the current version of a secret, including its value."""
        ...

    @abstractmethod
    async def set_secret(self, token: Token, vault: Vault, name: str, value: str) -> Secret:
        """Create a secret or add a new version of an existing one."""
        ...

    @abstractmethod
    async def delete_secret(self, token: Token, vault: Vault, name: str) -> None:
        """Soft-delete a secret."""
        ...

    async def close(self) -> None:
        """Release underlying resources."""
        return None
