"""
Resource cache for vault and secret listings.

- Vault inventory: process-wide, fetched by following continuation
  tokens until exhausted and published only once complete.
- Secret listings: one entry per vault, valid until an explicit refresh
  or a confirmed mutation on that vault.
- Secret values: held for the session only, never written anywhere.

Published listings are tuples of frozen records. Mutations build a new
tuple and swap the entry; nothing is edited in place.
"""

import asyncio
import bisect
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from akv_tui.cache.entry import CacheEntry
from akv_tui.cache.singleflight import SingleFlight
from akv_tui.remote.exceptions import AkvError
from akv_tui.remote.models import Secret, Vault

if TYPE_CHECKING:
    from akv_tui.remote.client import RemoteClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

VAULTS_KEY = ("vaults", "*")


def _secret_sort_key(secret: Secret) -> str:
    # Key Vault names are case-insensitive
    return secret.name.lower()


class ResourceCache:
    """
    Caches remote listings and collapses duplicate fetches.

    A per-vault generation counter is bumped by every confirmed
    mutation, and the mutation is logged. A listing fetch that started
    before the mutation replays the logged mutations onto its result
    before publishing, so a confirmed add or delete is never lost.
    """

    def __init__(
        self,
        client: "RemoteClient",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the resource cache.

        Args:
            client: Remote client façade used for all fetches.
            clock: Monotonic clock for fetch timestamps.
        """
        self.client = client
        self._clock = clock
        self._vaults: CacheEntry[tuple[Vault, ...]] | None = None
        self._secrets: dict[str, CacheEntry[tuple[Secret, ...]]] = {}
        self._values: dict[tuple[str, str], Secret] = {}
        self._generations: dict[str, int] = defaultdict(int)
        # mutations confirmed while a listing fetch is in flight:
        # (generation, lowercased name, listed secret or None when deleted)
        self._mutations: dict[str, list[tuple[int, str, Secret | None]]] = defaultdict(list)
        self._flight: SingleFlight[tuple[str, str], Any] = SingleFlight("resources")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def cached_vaults(self) -> tuple[Vault, ...] | None:
        """The published vault inventory, or None if never fetched."""
        return self._vaults.value if self._vaults is not None else None

    def cached_secrets(self, vault_id: str) -> tuple[Secret, ...] | None:
        """The published secret listing of a vault, or None."""
        entry = self._secrets.get(vault_id)
        return entry.value if entry is not None else None

    def is_fetching_secrets(self, vault_id: str) -> bool:
        return self._flight.in_flight(("secrets", vault_id))

    # ------------------------------------------------------------------
    # Vaults
    # ------------------------------------------------------------------

    async def list_vaults(
        self,
        refresh: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[Vault, ...]:
        """
        Get the complete vault inventory.

        Args:
            refresh: Ignore the cached inventory.
            on_progress: Called with the running total after each page.

        Returns:
            All vaults in server order, de-duplicated by URI.
        """
        if not refresh and self._vaults is not None:
            return self._vaults.value
        return await self._flight.do(VAULTS_KEY, lambda: self._fetch_vaults(on_progress))

    async def _fetch_vaults(self, on_progress: ProgressCallback | None) -> tuple[Vault, ...]:
        merged: list[Vault] = []
        seen: set[str] = set()
        continuation: str | None = None
        pages = 0

        while True:
            page = await self.client.list_vaults_page(continuation)
            pages += 1
            for vault in page.items:
                if vault.id not in seen:
                    seen.add(vault.id)
                    merged.append(vault)
            if on_progress is not None:
                on_progress(len(merged))
            if not page.has_more:
                break
            continuation = page.continuation

        vaults = tuple(merged)
        self._vaults = CacheEntry(value=vaults, fetched_at=self._clock())
        logger.info(f"Vault inventory loaded: {len(vaults)} vaults in {pages} pages")
        return vaults

    # ------------------------------------------------------------------
    # Secret listings
    # ------------------------------------------------------------------

    async def list_secrets(
        self,
        vault: Vault,
        refresh: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[Secret, ...]:
        """
        Get the secret listing of a vault.

        Concurrent requests for the same vault, refreshes included,
        share one fetch.

        Args:
            vault: Vault to list.
            refresh: Ignore the cached listing.
            on_progress: Called with the running total after each page.

        Returns:
            Secrets (without values) sorted by name.
        """
        if not refresh:
            cached = self.cached_secrets(vault.id)
            if cached is not None:
                return cached
        return await self._flight.do(
            ("secrets", vault.id),
            lambda: self._fetch_secrets(vault, on_progress),
        )

    async def _fetch_secrets(
        self,
        vault: Vault,
        on_progress: ProgressCallback | None,
    ) -> tuple[Secret, ...]:
        generation = self._generations[vault.id]
        by_name: dict[str, Secret] = {}
        continuation: str | None = None

        while True:
            page = await self.client.list_secrets_page(vault, continuation)
            for secret in page.items:
                by_name.setdefault(_secret_sort_key(secret), secret.without_value())
            if on_progress is not None:
                on_progress(len(by_name))
            if not page.has_more:
                break
            continuation = page.continuation

        if self._generations[vault.id] != generation:
            # confirmed mutations landed while we were paging
            replayed = self._replay_mutations(vault.id, by_name, since=generation)
            logger.debug(f"Replayed {replayed} confirmed mutations onto listing for {vault.name}")

        secrets = tuple(sorted(by_name.values(), key=_secret_sort_key))
        self._mutations.pop(vault.id, None)
        self._secrets[vault.id] = CacheEntry(value=secrets, fetched_at=self._clock())
        self._drop_values(vault.id)
        logger.info(f"Secret listing for {vault.name} loaded: {len(secrets)} secrets")
        return secrets

    # ------------------------------------------------------------------
    # Secret values
    # ------------------------------------------------------------------

    async def get_secret(self, vault: Vault, name: str, refresh: bool = False) -> Secret:
        """
        Fetch a secret with its value, cached for the session.

        Args:
            vault: Vault holding the secret.
            name: Secret name.
            refresh: Bypass the session value cache.

        Returns:
            The secret including ``value``.
        """
        key = (vault.id, name)
        if not refresh and key in self._values:
            return self._values[key]

        async def fetch() -> Secret:
            secret = await self.client.get_secret(vault, name)
            self._values[key] = secret
            return secret

        return await self._flight.do(("value", f"{vault.id}|{name}"), fetch)

    def _drop_values(self, vault_id: str, name: str | None = None) -> None:
        for key in [k for k in self._values if k[0] == vault_id and (name is None or k[1] == name)]:
            del self._values[key]

    # ------------------------------------------------------------------
    # Mutations (applied only after the service confirms them)
    # ------------------------------------------------------------------

    async def put_secret(self, vault: Vault, name: str, value: str) -> Secret:
        """
        Create or update a secret, then update the cached listing.

        Raises:
            AkvError: The remote call failed; the cache is untouched.
        """
        secret = await self.client.set_secret(vault, name, value)
        listed = secret.without_value()
        self._record_mutation(vault.id, secret.name, listed)
        self._drop_values(vault.id, secret.name)

        entry = self._secrets.get(vault.id)
        if entry is not None:
            secrets = [s for s in entry.value if _secret_sort_key(s) != _secret_sort_key(listed)]
            keys = [_secret_sort_key(s) for s in secrets]
            secrets.insert(bisect.bisect_left(keys, _secret_sort_key(listed)), listed)
            self._secrets[vault.id] = CacheEntry(value=tuple(secrets), fetched_at=self._clock())

        logger.info(f"Secret {secret.name} stored in {vault.name}")
        return secret

    async def delete_secret(self, vault: Vault, name: str) -> None:
        """
        Soft-delete a secret, then drop it from the cached listing.

        Raises:
            AkvError: The remote call failed; the cache is untouched.
        """
        await self.client.delete_secret(vault, name)
        self._record_mutation(vault.id, name, None)
        self._drop_values(vault.id, name)

        entry = self._secrets.get(vault.id)
        if entry is not None:
            remaining = tuple(s for s in entry.value if _secret_sort_key(s) != name.lower())
            self._secrets[vault.id] = CacheEntry(value=remaining, fetched_at=self._clock())

        logger.info(f"Secret {name} deleted from {vault.name}")

    def _record_mutation(self, vault_id: str, name: str, listed: Secret | None) -> None:
        self._generations[vault_id] += 1
        if self.is_fetching_secrets(vault_id):
            self._mutations[vault_id].append((self._generations[vault_id], name.lower(), listed))

    def _replay_mutations(self, vault_id: str, by_name: dict[str, Secret], since: int) -> int:
        """Apply mutations newer than ``since`` to a listing keyed by lowercased name."""
        replayed = 0
        for generation, key, listed in self._mutations.get(vault_id, ()):
            if generation <= since:
                continue
            if listed is None:
                by_name.pop(key, None)
            else:
                by_name[key] = listed
            replayed += 1
        return replayed

    # ------------------------------------------------------------------
    # Invalidation and warming
    # ------------------------------------------------------------------

    def invalidate(self, vault_id: str | None = None) -> None:
        """Forget a vault's listing and values, or everything."""
        if vault_id is None:
            self._vaults = None
            self._secrets.clear()
            self._values.clear()
            return
        self._secrets.pop(vault_id, None)
        self._drop_values(vault_id)

    async def preload(
        self,
        vaults: Iterable[Vault],
        concurrency: int = 4,
        on_loaded: Callable[[Vault, tuple[Secret, ...]], None] | None = None,
    ) -> int:
        """
        Warm the secret listings of many vaults with bounded concurrency.

        Failures are logged and skipped.

        Returns:
            Number of vaults whose listing is now cached.
        """
        semaphore = asyncio.Semaphore(concurrency)
        loaded = 0

        async def warm(vault: Vault) -> None:
            nonlocal loaded
            async with semaphore:
                try:
                    secrets = await self.list_secrets(vault)
                except AkvError as e:
                    logger.debug(f"Preload failed for {vault.name}: {e}")
                    return
            loaded += 1
            if on_loaded is not None:
                on_loaded(vault, secrets)

        await asyncio.gather(*(warm(vault) for vault in vaults))
        logger.debug(f"Preloaded {loaded} vault listings")
        return loaded
