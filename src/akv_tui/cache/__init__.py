"""Caching layer: access tokens, vault and secret listings."""

from akv_tui.cache.entry import CacheEntry
from akv_tui.cache.resources import ResourceCache
from akv_tui.cache.singleflight import SingleFlight
from akv_tui.cache.tokens import TokenCache

__all__ = [
    "CacheEntry",
    "ResourceCache",
    "SingleFlight",
    "TokenCache",
]
