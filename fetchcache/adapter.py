from io import BytesIO
from pathlib import Path
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from .body import StreamBody
from .cache import FileCache
from .config import CacheConfig
from .fetch import Orchestrator
from .resource import to_request
from .response import CachedFetchResponse


class CachedHTTPAdapter(HTTPAdapter):
    """
    A transport adapter that puts a cache in front of every request a `requests.Session` sends through it.

    Mount it like any other adapter:

        session.mount('https://', CachedHTTPAdapter(CacheConfig(MemoryCache())))

    Responses carry two extra attributes: `from_cache`, and `is_cache_miss` for only-if-cached requests that found
    nothing.
    """

    def __init__(self, config: CacheConfig, *args, **kw) -> None:
        super().__init__(*args, **kw)
        self.orchestrator = Orchestrator(config)

    def send(self, request: requests.PreparedRequest, **kw) -> requests.Response:
        """
        Send a request. Use the request information to see if it
        exists in the cache and cache the response if we need to and can.
        """
        descriptor = to_request(request)
        key = self.orchestrator.compute_key(descriptor)

        if isinstance(descriptor.body, StreamBody) and descriptor.body.drained:
            # Computing the key consumed the original stream. Send the buffered copy instead.
            request = request.copy()
            request.headers.pop('Transfer-Encoding', None)
            request.prepare_body(descriptor.body.payload(), None)

        response = self.orchestrator.resolve(descriptor, key, lambda: super(CachedHTTPAdapter, self).send(request, **kw))
        return self.build_cached_response(request, response)

    def build_cached_response(self, request: requests.PreparedRequest,
                              response: CachedFetchResponse) -> requests.Response:
        result = requests.Response()
        result.status_code = response.status
        result.reason = response.reason
        result.headers = CaseInsensitiveDict(response.headers)
        result.encoding = get_encoding_from_headers(result.headers)
        result.raw = _ChunkReader(response.iter_content())
        result.url = response.url or request.url
        result.request = request
        result.connection = self
        result.from_cache = response.returned_from_cache
        result.is_cache_miss = response.is_cache_miss
        result.cache_key = response.cache_key
        return result

    def close(self) -> None:
        self.orchestrator.cache.close()
        super().close()


class _ChunkReader(BytesIO):
    """
    Exposes an iterator of chunks as the `read()` interface `requests.Response.raw` expects.
    """

    def __init__(self, chunks) -> None:
        super().__init__()
        self.__chunks = chunks
        self.__pending = b''

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            data = self.__pending + b''.join(self.__chunks)
            self.__pending = b''
            return data
        while len(self.__pending) < size:
            chunk = next(self.__chunks, None)
            if chunk is None:
                break
            self.__pending += chunk
        data, self.__pending = self.__pending[:size], self.__pending[size:]
        return data


def create(directory: Path, ttl: Optional[float] = None) -> CachedHTTPAdapter:
    return CachedHTTPAdapter(CacheConfig(FileCache(directory, 5, default_ttl=ttl)))
