"""
Strategies that keep concurrent identical requests from all hitting the network.
"""

from abc import ABC, abstractmethod
import logging
import threading
from typing import Callable, Dict, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar('T')


class SynchronizationStrategy(ABC):
    @abstractmethod
    def with_exclusive_lock(self, key: str, action: Callable[[], T]) -> T:
        """
        Run `action` while holding the lock for `key`.

        @return
          Whatever `action` returns. Anything `action` raises propagates to this caller only.
        """


class NoopSynchronizationStrategy(SynchronizationStrategy):
    """
    Runs every action immediately.

    Concurrent misses for the same key may each perform a live fetch, and the last one to finish wins the cache slot.
    """

    def with_exclusive_lock(self, key: str, action: Callable[[], T]) -> T:
        return action()


class _KeyLock:
    __slots__ = ('lock', 'users')

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class LockingSynchronizationStrategy(SynchronizationStrategy):
    """
    Allows one action per key at a time.

    Callers for a busy key wait for the lock and then run their own action, which is expected to look in the cache
    first and find what the previous holder stored. Locks for distinct keys are independent, and a key's lock is
    forgotten once nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self.__guard = threading.Lock()
        self.__locks = {}  # type: Dict[str, _KeyLock]

    def with_exclusive_lock(self, key: str, action: Callable[[], T]) -> T:
        key_lock = self._checkout(key)
        try:
            if not key_lock.lock.acquire(blocking=False):
                logger.info('Waiting for another request with the same cache key to finish.')
                key_lock.lock.acquire()
            try:
                return action()
            finally:
                key_lock.lock.release()
        finally:
            self._checkin(key, key_lock)

    def _checkout(self, key: str) -> _KeyLock:
        with self.__guard:
            key_lock = self.__locks.get(key)
            if key_lock is None:
                key_lock = self.__locks[key] = _KeyLock()
            key_lock.users += 1
            return key_lock

    def _checkin(self, key: str, key_lock: _KeyLock) -> None:
        with self.__guard:
            key_lock.users -= 1
            if key_lock.users == 0:
                del self.__locks[key]

    @property
    def active_keys(self) -> int:
        """
        The number of keys currently locked or awaited.
        """
        with self.__guard:
            return len(self.__locks)
