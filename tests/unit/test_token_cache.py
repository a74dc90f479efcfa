"""Unit tests for the token cache."""

import asyncio

import pytest

from akv_tui.cache.tokens import TokenCache
from akv_tui.remote.exceptions import AuthenticationError
from akv_tui.remote.models import Token
from fakes import VAULT_SCOPE, FakeCredentialProvider


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenProvider(FakeCredentialProvider):
    """Provider raising a non-auth error."""

    async def acquire_credential(self, scope: str) -> Token:
        self.calls += 1
        raise RuntimeError("az not logged in")


class TestTokenCache:
    """Tests for TokenCache."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def provider(self, clock: FakeClock) -> FakeCredentialProvider:
        return FakeCredentialProvider(lifetime=3600.0, clock=clock)

    @pytest.fixture
    def tokens(self, provider: FakeCredentialProvider, clock: FakeClock) -> TokenCache:
        return TokenCache(provider, skew_margin=120.0, clock=clock)

    @pytest.mark.asyncio
    async def test_first_call_acquires(self, tokens, provider):
        """Test that the first call goes to the provider."""
        token = await tokens.get_token(VAULT_SCOPE)

        assert token.value == "token-1"
        assert token.scope == VAULT_SCOPE
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_cached_token_reused(self, tokens, provider, clock):
        """Test that a fresh token is served from the cache."""
        first = await tokens.get_token(VAULT_SCOPE)
        clock.advance(1000)
        second = await tokens.get_token(VAULT_SCOPE)

        assert first is second
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_inside_skew_margin(self, tokens, provider, clock):
        """Test that a token within the margin of expiry is replaced."""
        await tokens.get_token(VAULT_SCOPE)
        clock.advance(3600 - 100)  # 100s left, margin is 120s
        token = await tokens.get_token(VAULT_SCOPE)

        assert token.value == "token-2"
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_valid_just_outside_margin(self, tokens, provider, clock):
        """Test that a token just outside the margin is still served."""
        await tokens.get_token(VAULT_SCOPE)
        clock.advance(3600 - 121)
        await tokens.get_token(VAULT_SCOPE)

        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_scopes_cached_separately(self, tokens, provider):
        """Test that each scope has its own entry."""
        a = await tokens.get_token("scope-a")
        b = await tokens.get_token("scope-b")

        assert a.value != b.value
        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_acquisition(self, clock):
        """Test single-flight: five concurrent callers, one acquisition."""
        provider = FakeCredentialProvider(delay=0.05, clock=clock)
        tokens = TokenCache(provider, clock=clock)

        results = await asyncio.gather(*(tokens.get_token(VAULT_SCOPE) for _ in range(5)))

        assert provider.calls == 1
        assert tokens.acquisitions == 1
        assert all(token == results[0] for token in results)

    @pytest.mark.asyncio
    async def test_failure_leaves_entry_unset(self, clock):
        """Test that a failed acquisition raises and is retried on the next call."""
        provider = FakeCredentialProvider(fail=True, clock=clock)
        tokens = TokenCache(provider, clock=clock)

        with pytest.raises(AuthenticationError):
            await tokens.get_token(VAULT_SCOPE)
        assert tokens.peek(VAULT_SCOPE) is None

        provider.fail = False
        token = await tokens.get_token(VAULT_SCOPE)
        assert token.value == "token-2"

    @pytest.mark.asyncio
    async def test_concurrent_failure_shared(self, clock):
        """Test that concurrent callers all observe the same failure."""
        provider = FakeCredentialProvider(fail=True, delay=0.02, clock=clock)
        tokens = TokenCache(provider, clock=clock)

        results = await asyncio.gather(
            *(tokens.get_token(VAULT_SCOPE) for _ in range(3)),
            return_exceptions=True,
        )

        assert provider.calls == 1
        assert all(isinstance(r, AuthenticationError) for r in results)

    @pytest.mark.asyncio
    async def test_other_errors_become_authentication_errors(self, clock):
        """Test that provider errors are surfaced as AuthenticationError."""
        tokens = TokenCache(BrokenProvider(clock=clock), clock=clock)

        with pytest.raises(AuthenticationError) as exc_info:
            await tokens.get_token(VAULT_SCOPE)
        assert "az not logged in" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalidate_forces_reacquire(self, tokens, provider):
        """Test that invalidate drops the cached token."""
        await tokens.get_token(VAULT_SCOPE)
        tokens.invalidate(VAULT_SCOPE)
        await tokens.get_token(VAULT_SCOPE)

        assert provider.calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_all(self, tokens):
        """Test that invalidate() without a scope clears every entry."""
        await tokens.get_token("scope-a")
        await tokens.get_token("scope-b")
        tokens.invalidate()

        assert tokens.peek("scope-a") is None
        assert tokens.peek("scope-b") is None
        assert tokens.should_refresh("scope-a")


class TestRefreshMargin:
    """Tests for the effective refresh margin."""

    def test_long_lived_token_uses_skew_margin(self):
        """Test that long-lived tokens are refreshed skew_margin seconds early."""
        tokens = TokenCache(FakeCredentialProvider(), skew_margin=120.0)
        token = Token(value="t", expires_on=3600.0, acquired_at=0.0)
        assert tokens.margin_for(token) == 120.0

    def test_short_lived_token_uses_tenth_of_lifetime(self):
        """Test that short tokens are refreshed at 90% of their life."""
        tokens = TokenCache(FakeCredentialProvider(), skew_margin=120.0)
        token = Token(value="t", expires_on=300.0, acquired_at=0.0)
        assert tokens.margin_for(token) == 30.0

    def test_margin_has_one_second_floor(self):
        """Test that very short tokens still get a one second margin."""
        tokens = TokenCache(FakeCredentialProvider(), skew_margin=120.0)
        token = Token(value="t", expires_on=5.0, acquired_at=0.0)
        assert tokens.margin_for(token) == 1.0

    def test_unknown_lifetime_uses_skew_margin(self):
        """Test that a token without acquisition time falls back to skew_margin."""
        tokens = TokenCache(FakeCredentialProvider(), skew_margin=60.0)
        token = Token(value="t", expires_on=0.0)
        assert tokens.margin_for(token) == 60.0

    @pytest.mark.asyncio
    async def test_short_token_not_reacquired_every_call(self):
        """Test that a 60s token with a 120s skew is still cached."""
        clock = FakeClock()
        provider = FakeCredentialProvider(lifetime=60.0, clock=clock)
        tokens = TokenCache(provider, skew_margin=120.0, clock=clock)

        await tokens.get_token(VAULT_SCOPE)
        clock.advance(30)
        await tokens.get_token(VAULT_SCOPE)
        assert provider.calls == 1

        clock.advance(25)  # 5s left, margin is 6s
        await tokens.get_token(VAULT_SCOPE)
        assert provider.calls == 2
