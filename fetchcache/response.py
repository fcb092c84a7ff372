"""
The response object handed back to callers.

It looks the same whether it wraps a live `requests.Response` or replays a `CachedResponse`, and its body can be read
exactly once, the same way a live body stream can.
"""

from io import BytesIO
import json as complexjson
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

import requests
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from .exceptions import BodyAlreadyConsumed
from .model import CachedResponse, Headers, normalize_headers
from .util import Tee

if TYPE_CHECKING:
    from .cache import Cache


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10 * 1024


class CachedFetchResponse:
    def __init__(self, status: int, reason: str, url: str, redirected: bool, headers: Headers,
                 chunks: Callable[[int], Iterator[bytes]], cache: Optional['Cache'] = None,
                 cache_key: Optional[str] = None, returned_from_cache: bool = False, is_cache_miss: bool = False,
                 on_complete: Optional[Callable[[], None]] = None) -> None:
        """
        @param chunks
          Opens the body. Called at most once, with the chunk size to read in.
        @param on_complete
          Called once the body has been read to the end.
        """
        self.status = status
        self.reason = reason
        self.url = url
        self.redirected = redirected
        self.raw_headers = headers
        self.headers = _merge_headers(headers)
        self.cache_key = cache_key
        self.returned_from_cache = returned_from_cache
        self.is_cache_miss = is_cache_miss
        self.__cache = cache
        self.__open = chunks
        self.__on_complete = on_complete
        self.__tee = None  # type: Optional[Tee]
        self.__buffer = BytesIO()
        self.__normalized = None  # type: Optional[bytes]
        self.__used = False

    @classmethod
    def from_live(cls, response: requests.Response, **kw) -> 'CachedFetchResponse':
        return cls(status=response.status_code,
                   reason=response.reason or '',
                   url=response.url,
                   redirected=bool(response.history),
                   headers=_live_headers(response),
                   chunks=response.iter_content,
                   on_complete=response.close,
                   **kw)

    @classmethod
    def from_entry(cls, entry: CachedResponse, **kw) -> 'CachedFetchResponse':
        body = entry.body

        def chunks(size: int) -> Iterator[bytes]:
            return (body[offset:offset + size] for offset in range(0, len(body), size))

        return cls(status=entry.status,
                   reason=entry.reason,
                   url=entry.url,
                   redirected=entry.redirected,
                   headers=entry.headers,
                   chunks=chunks,
                   **kw)

    @classmethod
    def cache_miss(cls, url: str, **kw) -> 'CachedFetchResponse':
        """
        The stand-in returned when an only-if-cached request finds nothing in the cache.
        """
        entry = CachedResponse(status=504, reason='Gateway Timeout', url=url, redirected=False, headers=(), body=b'')
        return cls.from_entry(entry, is_cache_miss=True, **kw)

    @property
    def status_code(self) -> int:
        return self.status

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def body_used(self) -> bool:
        return self.__used

    # region Body accessors. Only one of these may be called, and only once.

    def content(self) -> bytes:
        self._consume()
        self._tee().drain()
        return self.__buffer.getvalue()

    def text(self) -> str:
        """
        Decode the body with the charset the Content-Type declares, or as UTF-8 when it declares none.
        """
        data = self.content()
        encoding = 'utf-8'
        if 'charset=' in self.headers.get('Content-Type', '').lower():
            encoding = get_encoding_from_headers(self.headers) or encoding
        try:
            return str(data, encoding, errors='replace')
        except LookupError:
            return str(data, 'utf-8', errors='replace')

    def json(self, **kwargs) -> Any:
        """
        Parse the body as JSON.

        The body is remembered in its compact re-serialized form, so insignificant whitespace from the original bytes
        does not survive into a cache entry made from this response.
        """
        value = complexjson.loads(self.content(), **kwargs)
        self.__normalized = complexjson.dumps(value, separators=(',', ':'), ensure_ascii=False).encode('utf-8')
        return value

    def iter_content(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """
        @return
          A one-shot iterator over the body in chunks of at most `chunk_size` bytes.
        """
        self._consume()
        return self._tee(chunk_size)

    # endregion

    def snapshot(self) -> bytes:
        """
        The full body as seen through this response, whether or not it has been read yet.

        This does not count as consuming the body. Any unread remainder is pulled in first.
        """
        if self.__normalized is not None:
            return self.__normalized
        self._tee().drain()
        return self.__buffer.getvalue()

    def to_entry(self, body: bytes) -> CachedResponse:
        return CachedResponse(status=self.status,
                              reason=self.reason,
                              url=self.url,
                              redirected=self.redirected,
                              headers=self.raw_headers,
                              body=body)

    def eject_from_cache(self) -> None:
        """
        Remove the entry for this response's cache key. Safe to call when the entry is already gone.
        """
        if self.__cache is None or self.cache_key is None:
            return
        logger.info('Ejecting {} from the cache.'.format(self.cache_key))
        self.__cache.delete(self.cache_key)

    def close(self) -> None:
        if self.__on_complete is not None:
            self.__on_complete()

    def _consume(self) -> None:
        if self.__used:
            raise BodyAlreadyConsumed(self.url)
        self.__used = True

    def _tee(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Tee:
        if self.__tee is None:
            self.__tee = Tee(iter(self.__open(chunk_size)), self.__buffer, self.__on_complete)
        return self.__tee

    def __repr__(self) -> str:
        origin = 'cache' if self.returned_from_cache else 'network'
        return '<CachedFetchResponse [{}] from {}>'.format(self.status, origin)


def _live_headers(response: requests.Response) -> Headers:
    # urllib3 keeps repeated headers apart; requests folds them together.
    raw_headers = getattr(response.raw, 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'iteritems'):
        return normalize_headers(list(raw_headers.iteritems()))
    return normalize_headers(list(response.headers.items()))


def _merge_headers(pairs: Headers) -> CaseInsensitiveDict:
    merged = CaseInsensitiveDict()
    for name, value in pairs:
        if name in merged:
            merged[name] = '{}, {}'.format(merged[name], value)
        else:
            merged[name] = value
    return merged
