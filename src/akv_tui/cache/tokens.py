"""
Token cache.

One entry per scope. A cached token is handed out while
``now < expires_on - margin``; otherwise a new one is acquired through
the credential provider, with concurrent callers for the same scope
sharing a single acquisition.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from akv_tui.cache.entry import CacheEntry
from akv_tui.cache.singleflight import SingleFlight
from akv_tui.remote.exceptions import AuthenticationError
from akv_tui.remote.models import Token
from akv_tui.remote.protocol import CredentialProvider

logger = logging.getLogger(__name__)

DEFAULT_SKEW_MARGIN = 120.0


class TokenCache:
    """
    Per-scope access token cache with single-flight refresh.

    The refresh margin is ``min(skew_margin, max(1s, lifetime / 10))``:
    long-lived tokens are refreshed ``skew_margin`` seconds early, short
    ones at 90% of their life so they are not re-acquired on every call.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        skew_margin: float = DEFAULT_SKEW_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the token cache.

        Args:
            provider: Credential provider performing acquisitions.
            skew_margin: Maximum seconds before expiry to treat a token as stale.
            clock: Wall-clock source in epoch seconds (token expiries are epoch based).
        """
        self.provider = provider
        self.skew_margin = skew_margin
        self._clock = clock
        self._entries: dict[str, CacheEntry[Token]] = {}
        self._flight: SingleFlight[str, Token] = SingleFlight("tokens")
        self.acquisitions = 0

    def margin_for(self, token: Token) -> float:
        """Refresh margin applied to ``token``."""
        lifetime = token.lifetime
        if lifetime <= 0:
            return self.skew_margin
        return min(self.skew_margin, max(1.0, lifetime / 10))

    def peek(self, scope: str) -> Token | None:
        """Return the cached token for ``scope`` if it is still usable."""
        entry = self._entries.get(scope)
        if entry is None:
            return None
        if not entry.is_valid(self._clock()):
            return None
        return entry.value

    def should_refresh(self, scope: str) -> bool:
        return self.peek(scope) is None

    async def get_token(self, scope: str) -> Token:
        """
        Get a usable token for ``scope``.

        Args:
            scope: OAuth scope.

        Returns:
            A token valid for at least the refresh margin.

        Raises:
            AuthenticationError: If acquisition failed. The entry is left
                unset so the next call tries again.
        """
        token = self.peek(scope)
        if token is not None:
            return token
        return await self._flight.do(scope, lambda: self._acquire(scope))

    async def _acquire(self, scope: str) -> Token:
        self.acquisitions += 1
        started = self._clock()
        logger.debug(f"Acquiring token for scope {scope}")

        try:
            token = await self.provider.acquire_credential(scope)
        except AuthenticationError:
            logger.warning(f"Token acquisition failed for {scope}", exc_info=True)
            raise
        except Exception as e:
            logger.warning(f"Token acquisition failed for {scope}: {e}", exc_info=True)
            raise AuthenticationError(f"Could not acquire a credential for {scope}: {e}") from e

        if not token.acquired_at:
            token = replace(token, acquired_at=started)
        if not token.scope:
            token = replace(token, scope=scope)

        self._entries[scope] = CacheEntry(
            value=token,
            fetched_at=started,
            expires_at=token.expires_on - self.margin_for(token),
        )
        logger.debug(f"Token for {scope} cached, lifetime={token.lifetime:.0f}s")
        return token

    def invalidate(self, scope: str | None = None) -> None:
        """Drop the cached token for ``scope``, or all tokens."""
        if scope is None:
            self._entries.clear()
        else:
            self._entries.pop(scope, None)
