"""
A caching `fetch()` for the requests library.

    from fetchcache import MemoryCache, create

    fetch = create(MemoryCache())
    response = fetch('https://httpbin.org/json')
    response.returned_from_cache  # False
    fetch('https://httpbin.org/json').returned_from_cache  # True
"""

from .body import Body, BytesBody, EmptyBody, FormBody, MultipartBody, StreamBody
from .cache import Cache, FileCache, MemoryCache
from .config import CacheConfig, CallOptions
from .exceptions import (BodyAlreadyConsumed, CorruptEntry, FetchCacheError, UnsupportedBodyType,
                         UnsupportedResourceType)
from .fetch import FetchCache, Orchestrator, create
from .key import KeyCalculator, calculate_cache_key
from .model import CachedResponse, Request, deserialize, serialize
from .response import CachedFetchResponse
from .strategies import cache_everything, cache_non_5xx_only, cache_ok_only, cache_statuses
from .sync import LockingSynchronizationStrategy, NoopSynchronizationStrategy, SynchronizationStrategy

__version__ = '0.1.0'
