from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
import hashlib
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
import time
from typing import Callable, Optional

from .exceptions import CorruptEntry
from .model import CachedResponse
from .util import clamp


logger = logging.getLogger(__name__)


class Cache(ABC):
    """
    An abstraction of a response store.

    A store has a relatively narrow scope: to remember an entry under a key such that it can be recalled later. It
    does not decide what is worth caching, nor when two requests are the same; the caller works that out and hands
    over a key. The only invalidation a store performs on its own is expiry of entries whose TTL has elapsed.

    Implementations must tolerate interleaved calls from several threads, and must never let a `get()` observe a
    partially written entry.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[CachedResponse]:
        """
        Retrieve the entry stored under `key`.

        @param key
          The cache key to look up.
        @return
          The stored entry, or `None` if there is none or it has expired.
        @throws CorruptEntry
          If something is stored under `key` but cannot be decoded.
        """

    @abstractmethod
    def set(self, key: str, entry: CachedResponse, ttl: Optional[float] = None) -> None:
        """
        Store `entry` under `key`, replacing anything already there.

        @param ttl
          Seconds until the entry expires. `None` means the store's default, if it has one.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove the entry stored under `key`. Removing an absent key is not an error.
        """

    def close(self) -> None:
        """
        Close any resources associated with the cache.
        """


@dataclass
class _MemoryEntry:
    entry: CachedResponse
    expires_at: Optional[float]


class MemoryCache(Cache):
    """
    Keeps entries in a dictionary for the life of the process.

    Expired entries are dropped lazily when looked up. When `max_size` is reached, the oldest entry makes room.
    """

    def __init__(self, default_ttl: Optional[float] = None, max_size: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.__entries = OrderedDict()  # type: OrderedDict[str, _MemoryEntry]
        self.__lock = threading.Lock()
        self.__default_ttl = default_ttl
        self.__max_size = max_size
        self.__clock = clock

    def get(self, key: str) -> Optional[CachedResponse]:
        with self.__lock:
            stored = self.__entries.get(key)
            if stored is None:
                return None
            if stored.expires_at is not None and self.__clock() >= stored.expires_at:
                logger.info('Entry {} has expired.'.format(key))
                del self.__entries[key]
                return None
            return stored.entry

    def set(self, key: str, entry: CachedResponse, ttl: Optional[float] = None) -> None:
        ttl = ttl if ttl is not None else self.__default_ttl
        expires_at = self.__clock() + ttl if ttl is not None else None
        with self.__lock:
            self.__entries.pop(key, None)
            if self.__max_size is not None:
                while self.__entries and len(self.__entries) >= self.__max_size:
                    evicted, _ = self.__entries.popitem(last=False)
                    logger.info('Evicting {} to make room.'.format(evicted))
            self.__entries[key] = _MemoryEntry(entry=entry, expires_at=expires_at)

    def delete(self, key: str) -> None:
        with self.__lock:
            self.__entries.pop(key, None)

    def clear(self) -> None:
        with self.__lock:
            self.__entries.clear()

    def __len__(self) -> int:
        with self.__lock:
            return len(self.__entries)


@dataclass
class FileCacheEntryModel:
    entry_path: Path
    body_path: Path
    expires_at: Optional[float]
    metadata: dict


class FileCache(Cache):
    """
    Keeps entries on the file system.

    Each entry is a JSON file under `entries/`, at a path derived from a hash of the cache key. The body lives in its
    own file under `bodies/`, at a random path that the entry file points to. Both are written to a temporary file
    first and then moved into place, so a reader sees either the old state or the new one.
    """

    def __init__(self, directory: Path, cache_directory_levels: int, default_ttl: Optional[float] = None,
                 clock: Callable[[], float] = time.time) -> None:
        """
        Initialize the file cache.

        @param directory
          The path to the root directory of the cache.
        @param cache_directory_levels
          The number of subdirectory levels to use in the cache directory. This
          will be clamped to be between 0 and 20, respectively.
        @param default_ttl
          Seconds until an entry expires, unless `set()` is given a TTL.
        @param clock
          Wall-clock time source. Expiry times are persisted, so this must not be a monotonic clock.
        """
        self.__directory = Path(directory)
        self.__entry_directory = self.__directory / 'entries'
        self.__body_directory = self.__directory / 'bodies'
        self.__cache_directory_levels = clamp(cache_directory_levels, 0, 20)
        self.__default_ttl = default_ttl
        self.__clock = clock

    def _get_path(self, key: str) -> Path:
        hashed = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return self._split_path(hashed)

    def _split_path(self, path: str) -> Path:
        subdirectories = (list(path[:self.__cache_directory_levels])
                          + [path[self.__cache_directory_levels:]])
        return Path(*subdirectories)

    def _load_entry(self, key: str) -> FileCacheEntryModel:
        """
        Read an entry file.

        @throws FileNotFoundError
          If there is no entry file for `key`.
        @throws CorruptEntry
          If the entry file could not be parsed, or points at a body outside the body directory.
        """
        entry_path = self.__entry_directory / self._get_path(key)
        try:
            with open(entry_path, 'r', encoding='utf-8') as f:
                contents = json.load(f)
            expires_at = contents['expires_at']
            body_path = (self.__body_directory / Path(contents['body'])).resolve()
            if self.__body_directory.resolve() not in body_path.parents:
                raise CorruptEntry(str(entry_path), 'body path is outside the body directory')
            return FileCacheEntryModel(entry_path=entry_path,
                                       body_path=body_path,
                                       expires_at=float(expires_at) if expires_at is not None else None,
                                       metadata=contents['response'])
        except FileNotFoundError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptEntry(str(entry_path), str(e)) from e

    def get(self, key: str) -> Optional[CachedResponse]:
        try:
            logger.info('Looking at the file system for a cache entry matching the key.')
            entry_model = self._load_entry(key)
        except FileNotFoundError:
            logger.info('No matching cache entry found.')
            return None

        if entry_model.expires_at is not None and self.__clock() >= entry_model.expires_at:
            logger.info('Found an expired cache entry. Deleting it.')
            self._unlink(entry_model.entry_path, entry_model.body_path)
            return None

        try:
            with open(entry_model.body_path, 'rb') as f:
                body = f.read()
        except FileNotFoundError as e:
            raise CorruptEntry(str(entry_model.entry_path), 'missing body file') from e
        try:
            entry = CachedResponse.from_metadata(entry_model.metadata, body)
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptEntry(str(entry_model.entry_path), str(e)) from e
        logger.info('Loaded entry file. Returning the cache entry.')
        return entry

    def set(self, key: str, entry: CachedResponse, ttl: Optional[float] = None) -> None:
        ttl = ttl if ttl is not None else self.__default_ttl
        entry_path = self.__entry_directory / self._get_path(key)

        logger.info('Building randomized path to the body file.')
        # A randomized body path lets a new body be written while readers may still be following the old entry.
        body_path = self.__body_directory / self._split_path(os.urandom(32).hex())

        previous = None
        try:
            previous = self._load_entry(key)
        except (FileNotFoundError, CorruptEntry):
            pass

        serialized = {
            'response': entry.metadata(),
            'body': str(body_path.relative_to(self.__body_directory)),
            'expires_at': self.__clock() + ttl if ttl is not None else None,
        }

        logger.info('Writing the body file.')
        self._write_atomically(body_path, entry.body)
        logger.info('Writing the entry file that points to the body file.')
        self._write_atomically(entry_path, json.dumps(serialized).encode('utf-8'))

        if previous is not None:
            self._unlink(previous.body_path)

    def delete(self, key: str) -> None:
        try:
            logger.info('Looking for a cache entry matching the key so that we can delete both the entry and the associated body.')
            entry_model = self._load_entry(key)
            paths_to_delete = [entry_model.entry_path, entry_model.body_path]
        except CorruptEntry as e:
            logger.warning('Found a corrupt cache entry. Marking only the entry file for deletion.')
            paths_to_delete = [Path(e.location)]
        except FileNotFoundError:
            logger.info('No matching cache entry found. Nothing to delete.')
            return
        self._unlink(*paths_to_delete)

    def _write_atomically(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=str(path.parent), prefix='.tmp-')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(temp_name, str(path))
        except BaseException:
            os.unlink(temp_name)
            raise

    def _unlink(self, *paths: Path) -> None:
        for path in paths:
            try:
                logger.info('Deleting {}'.format(path))
                path.unlink()
            except FileNotFoundError:
                pass
            except Exception:
                logger.exception('Unexpected error occurred while deleting {}'.format(path))
