from dataclasses import dataclass, field
from typing import Optional

from .cache import Cache
from .key import CalculateCacheKey, calculate_cache_key
from .strategies import ShouldCacheResponse, cache_everything
from .sync import LockingSynchronizationStrategy, SynchronizationStrategy


@dataclass(frozen=True)
class CacheConfig:
    """
    Everything a caching fetch needs to know, supplied up front. There is no process-wide default.
    """

    cache: Cache
    """
    Where entries are stored.
    """

    synchronization_strategy: SynchronizationStrategy = field(default_factory=LockingSynchronizationStrategy)
    """
    Serializes concurrent requests that share a cache key.
    """

    should_cache_response: ShouldCacheResponse = cache_everything
    """
    Decides whether a live response is stored.
    """

    calculate_cache_key: CalculateCacheKey = calculate_cache_key
    """
    Maps a request to its cache key.
    """

    ttl: Optional[float] = None
    """
    Seconds until new entries expire. `None` defers to the store's own default.
    """


@dataclass(frozen=True)
class CallOptions:
    """
    Overrides for a single call. Anything left as `None` falls back to the `CacheConfig`.
    """

    calculate_cache_key: Optional[CalculateCacheKey] = None
    should_cache_response: Optional[ShouldCacheResponse] = None
