"""
A cache backed by a Redis server, for sharing entries between processes.
"""

import logging
from typing import Optional

import redis

from .cache import Cache
from .model import CachedResponse, deserialize, serialize


logger = logging.getLogger(__name__)


class RedisCache(Cache):
    """
    Stores serialized entries as Redis strings.

    Expiry is left to Redis itself, via `SET ... PX`.

    @param client
      A ready `redis.Redis` client. If omitted, one is created from `url`.
    @param prefix
      Prepended to every key, to keep entries apart from other data in the same database.
    """

    def __init__(self, client: Optional[redis.Redis] = None, url: str = 'redis://localhost:6379/0',
                 prefix: str = 'fetchcache:', default_ttl: Optional[float] = None) -> None:
        self.__client = client if client is not None else redis.Redis.from_url(url)
        self.__prefix = prefix
        self.__default_ttl = default_ttl

    def _make_key(self, key: str) -> str:
        return self.__prefix + key

    def get(self, key: str) -> Optional[CachedResponse]:
        name = self._make_key(key)
        data = self.__client.get(name)
        if data is None:
            logger.info('No matching cache entry found in Redis.')
            return None
        return deserialize(data, name)

    def set(self, key: str, entry: CachedResponse, ttl: Optional[float] = None) -> None:
        ttl = ttl if ttl is not None else self.__default_ttl
        name = self._make_key(key)
        data = serialize(entry)
        if ttl is not None:
            self.__client.set(name, data, px=max(1, int(ttl * 1000)))
        else:
            self.__client.set(name, data)

    def delete(self, key: str) -> None:
        self.__client.delete(self._make_key(key))

    def close(self) -> None:
        self.__client.close()
