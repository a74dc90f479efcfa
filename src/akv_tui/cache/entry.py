"""Immutable cache entries."""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    A cached value and its freshness bookkeeping.

    ``expires_at`` is an absolute timestamp on the owning cache's clock.
    ``None`` means the entry stays valid until explicitly invalidated.
    """

    value: T
    fetched_at: float
    expires_at: float | None = None

    def is_valid(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at
