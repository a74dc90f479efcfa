"""
Unit tests for the resource cache: pagination merge, single-flight
listings and the confirmed-mutation policy.
"""

import asyncio

import pytest

from akv_tui.cache.resources import ResourceCache
from akv_tui.cache.tokens import TokenCache
from akv_tui.remote.client import RemoteClient
from akv_tui.remote.exceptions import NetworkError, PermissionDeniedError, ValidationError
from akv_tui.remote.retry import RetryPolicy
from fakes import (
    MANAGEMENT_SCOPE,
    VAULT_SCOPE,
    FakeCredentialProvider,
    FakeTransport,
    make_vault,
    no_sleep,
)


def build_cache(transport: FakeTransport, max_attempts: int = 1) -> ResourceCache:
    client = RemoteClient(
        transport,
        TokenCache(FakeCredentialProvider()),
        management_scope=MANAGEMENT_SCOPE,
        vault_scope=VAULT_SCOPE,
        policy=RetryPolicy(max_attempts=max_attempts, backoff_base=0.0, backoff_max=0.0),
        sleep=no_sleep,
    )
    return ResourceCache(client)


def names(secrets) -> list[str]:
    return [s.name for s in secrets]


# =============================================================================
# Vault listing
# =============================================================================


class TestVaultListing:
    """Tests for vault inventory pagination and caching."""

    @pytest.fixture
    def paged_transport(self) -> FakeTransport:
        vaults = [make_vault(f"vault-{i:02d}") for i in range(20)]
        return FakeTransport(vault_pages=[vaults[0:8], vaults[8:16], vaults[16:20]])

    @pytest.mark.asyncio
    async def test_pages_merged_in_order(self, paged_transport):
        """Test pages of 8, 8 and 4 give 20 vaults in page order with 3 calls."""
        cache = build_cache(paged_transport)

        vaults = await cache.list_vaults()

        assert len(vaults) == 20
        assert [v.name for v in vaults] == [f"vault-{i:02d}" for i in range(20)]
        assert len({v.id for v in vaults}) == 20
        assert paged_transport.count("list_vaults") == 3

    @pytest.mark.asyncio
    async def test_duplicates_across_pages_dropped(self):
        """Test that a vault repeated on a later page appears once."""
        a, b, c = make_vault("a"), make_vault("b"), make_vault("c")
        cache = build_cache(FakeTransport(vault_pages=[[a, b], [b, c]]))

        vaults = await cache.list_vaults()

        assert [v.name for v in vaults] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_progress_reports_running_total(self, paged_transport):
        """Test the progress callback sees the count after every page."""
        cache = build_cache(paged_transport)
        seen: list[int] = []

        await cache.list_vaults(on_progress=seen.append)

        assert seen == [8, 16, 20]

    @pytest.mark.asyncio
    async def test_cached_until_refresh(self, paged_transport):
        """Test that a second listing is served from the cache."""
        cache = build_cache(paged_transport)

        await cache.list_vaults()
        await cache.list_vaults()
        assert paged_transport.count("list_vaults") == 3

        await cache.list_vaults(refresh=True)
        assert paged_transport.count("list_vaults") == 6

    @pytest.mark.asyncio
    async def test_partial_listing_never_published(self, paged_transport):
        """Test that a failure mid-pagination publishes nothing."""
        cache = build_cache(paged_transport)
        original = paged_transport.list_vaults

        async def flaky(token, continuation=None):
            if continuation == "1":
                raise PermissionDeniedError("forbidden", 403)
            return await original(token, continuation)

        paged_transport.list_vaults = flaky

        with pytest.raises(PermissionDeniedError):
            await cache.list_vaults()
        assert cache.cached_vaults() is None

    @pytest.mark.asyncio
    async def test_concurrent_listings_collapse(self, paged_transport):
        """Test that concurrent listings share one pagination run."""
        cache = build_cache(paged_transport)

        first, second = await asyncio.gather(cache.list_vaults(), cache.list_vaults())

        assert first == second
        assert paged_transport.count("list_vaults") == 3


# =============================================================================
# Secret listing
# =============================================================================


class TestSecretListing:
    """Tests for per-vault secret listings."""

    @pytest.mark.asyncio
    async def test_listing_sorted_and_paged(self, vault_a):
        """Test that listing follows continuation and sorts by name."""
        transport = FakeTransport(
            vault_pages=[[vault_a]],
            secrets={vault_a.uri: {f"s{i:02d}": "v" for i in range(7)}},
            page_size=3,
        )
        cache = build_cache(transport)

        secrets = await cache.list_secrets(vault_a)

        assert names(secrets) == [f"s{i:02d}" for i in range(7)]
        assert transport.count("list_secrets") == 3
        assert all(s.value is None for s in secrets)

    @pytest.mark.asyncio
    async def test_cached_per_vault(self, cache, transport, vault_a, vault_b):
        """Test that switching vaults does not evict earlier listings."""
        await cache.list_secrets(vault_a)
        await cache.list_secrets(vault_b)
        await cache.list_secrets(vault_a)

        assert transport.count("list_secrets") == 2
        assert names(cache.cached_secrets(vault_a.id)) == ["api-key", "db-password", "storage-conn"]

    @pytest.mark.asyncio
    async def test_rapid_refreshes_collapse(self, cache, transport, vault_a):
        """Test that refreshes during an in-flight fetch share one round trip."""
        gate = asyncio.Event()
        transport.gates["list_secrets"] = gate

        fetches = [asyncio.create_task(cache.list_secrets(vault_a, refresh=True)) for _ in range(3)]
        await asyncio.sleep(0.01)
        assert cache.is_fetching_secrets(vault_a.id)
        gate.set()
        results = await asyncio.gather(*fetches)

        assert transport.count("list_secrets") == 1
        assert results[0] == results[1] == results[2]

    @pytest.mark.asyncio
    async def test_refresh_drops_session_values(self, cache, transport, vault_a):
        """Test that a refresh forgets cached secret values."""
        await cache.get_secret(vault_a, "api-key")
        await cache.list_secrets(vault_a, refresh=True)
        await cache.get_secret(vault_a, "api-key")

        assert transport.count("get_secret") == 2


# =============================================================================
# Values
# =============================================================================


class TestSecretValues:
    """Tests for the session value cache."""

    @pytest.mark.asyncio
    async def test_value_cached_for_session(self, cache, transport, vault_a):
        """Test that a fetched value is reused."""
        first = await cache.get_secret(vault_a, "db-password")
        second = await cache.get_secret(vault_a, "db-password")

        assert first.value == "hunter2"
        assert second is first
        assert transport.count("get_secret") == 1

    @pytest.mark.asyncio
    async def test_value_refresh_bypasses_cache(self, cache, transport, vault_a):
        """Test explicit value refresh."""
        await cache.get_secret(vault_a, "db-password")
        await cache.get_secret(vault_a, "db-password", refresh=True)

        assert transport.count("get_secret") == 2


# =============================================================================
# Mutations
# =============================================================================


class TestMutations:
    """Tests for the confirmed-mutation policy."""

    @pytest.mark.asyncio
    async def test_successful_delete_removes_exactly_that_entry(self, cache, vault_a):
        """Test that a confirmed delete removes one entry."""
        await cache.list_secrets(vault_a)

        await cache.delete_secret(vault_a, "db-password")

        assert names(cache.cached_secrets(vault_a.id)) == ["api-key", "storage-conn"]

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_listing_unchanged(self, cache, transport, vault_a):
        """Test that a failed delete touches nothing and propagates."""
        before = await cache.list_secrets(vault_a)
        transport.failures["delete_secret"].append(PermissionDeniedError("denied", 403))

        with pytest.raises(PermissionDeniedError):
            await cache.delete_secret(vault_a, "db-password")

        assert cache.cached_secrets(vault_a.id) is before

    @pytest.mark.asyncio
    async def test_add_inserts_in_sorted_position(self, cache, vault_a):
        """Test that a new secret lands in name order."""
        await cache.list_secrets(vault_a)

        secret = await cache.put_secret(vault_a, "cache-url", "redis://")

        assert secret.value == "redis://"
        assert names(cache.cached_secrets(vault_a.id)) == [
            "api-key",
            "cache-url",
            "db-password",
            "storage-conn",
        ]
        assert all(s.value is None for s in cache.cached_secrets(vault_a.id))

    @pytest.mark.asyncio
    async def test_edit_replaces_entry_and_drops_value(self, cache, transport, vault_a):
        """Test that editing keeps one entry and forgets the old value."""
        await cache.list_secrets(vault_a)
        await cache.get_secret(vault_a, "api-key")

        await cache.put_secret(vault_a, "api-key", "new")

        assert names(cache.cached_secrets(vault_a.id)).count("api-key") == 1
        secret = await cache.get_secret(vault_a, "api-key")
        assert secret.value == "new"
        assert transport.count("get_secret") == 2

    @pytest.mark.asyncio
    async def test_failed_put_leaves_listing_unchanged(self, cache, transport, vault_a):
        """Test that a failed put does not insert anything."""
        before = await cache.list_secrets(vault_a)
        transport.failures["set_secret"].append(ValidationError("bad value", 400))

        with pytest.raises(ValidationError):
            await cache.put_secret(vault_a, "new-one", "x")

        assert cache.cached_secrets(vault_a.id) is before

    @pytest.mark.asyncio
    async def test_invalid_name_rejected_before_network(self, cache, transport, vault_a):
        """Test local name validation."""
        with pytest.raises(ValidationError):
            await cache.put_secret(vault_a, "bad name!", "x")

        assert transport.count("set_secret") == 0

    @pytest.mark.asyncio
    async def test_fetch_started_before_mutation_does_not_overwrite(self, cache, transport, vault_a):
        """Test that a listing begun before a delete cannot resurrect the entry."""
        await cache.list_secrets(vault_a)
        gate = asyncio.Event()
        transport.gates["list_secrets"] = gate

        refresh = asyncio.create_task(cache.list_secrets(vault_a, refresh=True))
        await asyncio.sleep(0.01)
        await cache.delete_secret(vault_a, "api-key")
        gate.set()
        await refresh

        assert "api-key" not in names(cache.cached_secrets(vault_a.id))

    @pytest.mark.asyncio
    async def test_mutation_without_cached_listing(self, cache, vault_b):
        """Test that mutating an unlisted vault leaves nothing cached."""
        await cache.put_secret(vault_b, "new-one", "x")
        assert cache.cached_secrets(vault_b.id) is None

    @pytest.mark.asyncio
    async def test_add_during_first_listing_is_kept(self, cache, transport, vault_a):
        """Test that a secret added while the first listing pages is published with it."""
        gate = asyncio.Event()
        transport.gates["list_secrets"] = gate

        listing = asyncio.create_task(cache.list_secrets(vault_a))
        await asyncio.sleep(0.01)
        await cache.put_secret(vault_a, "cache-url", "redis://")
        gate.set()
        secrets = await listing

        assert names(secrets) == ["api-key", "cache-url", "db-password", "storage-conn"]
        assert cache.cached_secrets(vault_a.id) == secrets
        assert all(s.value is None for s in secrets)

    @pytest.mark.asyncio
    async def test_mutations_before_listing_not_replayed(self, cache, transport, vault_a):
        """Test that a mutation confirmed before the fetch began is left to the server."""
        await cache.list_secrets(vault_a)
        await cache.delete_secret(vault_a, "api-key")
        transport.secrets[vault_a.uri]["api-key"] = "restored"

        secrets = await cache.list_secrets(vault_a, refresh=True)

        assert "api-key" in names(secrets)

    @pytest.mark.asyncio
    async def test_delete_ignores_name_case(self, cache, vault_a):
        """Test that deleting with different casing drops the listed entry."""
        await cache.list_secrets(vault_a)

        await cache.delete_secret(vault_a, "API-KEY")

        assert names(cache.cached_secrets(vault_a.id)) == ["db-password", "storage-conn"]


# =============================================================================
# Invalidation and preload
# =============================================================================


class TestInvalidationAndPreload:
    """Tests for invalidate() and preload()."""

    @pytest.mark.asyncio
    async def test_invalidate_vault(self, cache, transport, vault_a):
        """Test that invalidating a vault forces a new listing."""
        await cache.list_secrets(vault_a)
        cache.invalidate(vault_a.id)

        assert cache.cached_secrets(vault_a.id) is None
        await cache.list_secrets(vault_a)
        assert transport.count("list_secrets") == 2

    @pytest.mark.asyncio
    async def test_invalidate_everything(self, cache, vault_a):
        """Test that invalidate() clears vaults and listings."""
        await cache.list_vaults()
        await cache.list_secrets(vault_a)
        cache.invalidate()

        assert cache.cached_vaults() is None
        assert cache.cached_secrets(vault_a.id) is None

    @pytest.mark.asyncio
    async def test_preload_warms_all_vaults(self, cache, vault_a, vault_b):
        """Test that preload caches every vault's listing."""
        loaded: list[str] = []

        count = await cache.preload([vault_a, vault_b], concurrency=1, on_loaded=lambda v, s: loaded.append(v.name))

        assert count == 2
        assert sorted(loaded) == ["vault-a", "vault-b"]
        assert cache.cached_secrets(vault_b.id) is not None

    @pytest.mark.asyncio
    async def test_preload_skips_failures(self, cache, transport, vault_a, vault_b):
        """Test that one failing vault does not stop the others."""
        original = transport.list_secrets

        async def flaky(token, vault, continuation=None):
            if vault.name == "vault-a":
                raise NetworkError("unreachable")
            return await original(token, vault, continuation)

        transport.list_secrets = flaky

        count = await cache.preload([vault_a, vault_b])

        assert count == 1
        assert cache.cached_secrets(vault_a.id) is None
        assert cache.cached_secrets(vault_b.id) is not None
