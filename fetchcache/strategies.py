"""
Built-in policies deciding whether a live response is worth caching.

A policy receives the live response before the caller does. It may read the body; whatever it reads is what gets
cached and returned.
"""

from typing import TYPE_CHECKING, Callable, FrozenSet

if TYPE_CHECKING:
    from .response import CachedFetchResponse

ShouldCacheResponse = Callable[['CachedFetchResponse'], bool]


def cache_everything(response: 'CachedFetchResponse') -> bool:
    return True


def cache_ok_only(response: 'CachedFetchResponse') -> bool:
    return response.ok


def cache_non_5xx_only(response: 'CachedFetchResponse') -> bool:
    return response.status < 500


class cache_statuses:
    """
    Caches only the listed status codes. E.g., `cache_statuses(200, 203, 300, 301)`.
    """

    def __init__(self, *statuses: int) -> None:
        self.__statuses = frozenset(statuses)

    @property
    def statuses(self) -> FrozenSet[int]:
        return self.__statuses

    def __call__(self, response: 'CachedFetchResponse') -> bool:
        return response.status in self.__statuses
