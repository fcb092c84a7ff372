import logging
from typing import Callable, Optional

import requests

from .config import CacheConfig, CallOptions
from .exceptions import CorruptEntry
from .model import CachedResponse, Request
from .resource import to_request, transport_options
from .response import CachedFetchResponse
from .util import NO_STORE, ONLY_IF_CACHED, parse_cache_control


logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Runs a single request through the cache.

    The transport is left to the caller: `resolve()` is handed a function that performs the live request, and only
    calls it on a cache miss.
    """

    def __init__(self, config: CacheConfig) -> None:
        self.config = config

    @property
    def cache(self):
        return self.config.cache

    def compute_key(self, request: Request, options: Optional[CallOptions] = None) -> str:
        calculate = self.config.calculate_cache_key
        if options is not None and options.calculate_cache_key is not None:
            calculate = options.calculate_cache_key
        return calculate(request)

    def resolve(self, request: Request, key: str, send: Callable[[], requests.Response],
                options: Optional[CallOptions] = None) -> CachedFetchResponse:
        """
        Produce the response for `request`, from the cache if possible.

        Steps:
        1. Take the lock for `key`.
        2. Look in the cache. A hit is replayed, and a corrupt entry counts as a miss.
        3. On a miss, an only-if-cached request gets a synthetic 504 without touching the network.
        4. Otherwise `send()` performs the live request, and the response is stored unless the request says
           `no-store` or the cache policy declines it.

        @throws requests.RequestException
          Whatever the transport raises. Nothing is stored in that case.
        """
        directives = parse_cache_control(request.headers)
        should_cache_response = self.config.should_cache_response
        if options is not None and options.should_cache_response is not None:
            should_cache_response = options.should_cache_response

        def action() -> CachedFetchResponse:
            entry = self._lookup(key)
            if entry is not None:
                logger.info('Cache hit for {}.'.format(key))
                return self._replay(entry, key, returned_from_cache=True)

            if ONLY_IF_CACHED in directives:
                logger.info('Cache miss for only-if-cached request {}. Not fetching.'.format(key))
                return CachedFetchResponse.cache_miss(request.uri, cache=self.cache, cache_key=key)

            logger.info('Cache miss for {}. Fetching.'.format(key))
            live = CachedFetchResponse.from_live(send(), cache=self.cache, cache_key=key)
            try:
                return self._store(live, key, NO_STORE not in directives and should_cache_response(live))
            except Exception:
                live.close()
                raise

        return self.config.synchronization_strategy.with_exclusive_lock(key, action)

    def _lookup(self, key: str) -> Optional[CachedResponse]:
        try:
            return self.cache.get(key)
        except CorruptEntry as e:
            logger.warning('Discarding corrupt cache entry: {}'.format(e))
            self.cache.delete(key)
            return None

    def _store(self, live: CachedFetchResponse, key: str, should_cache: bool) -> CachedFetchResponse:
        if not should_cache:
            logger.info('Not caching the response for {}.'.format(key))
            if live.body_used:
                # The policy read the body, so the caller gets a fresh copy of what it saw.
                return self._replay(live.to_entry(live.snapshot()), key, returned_from_cache=False)
            return live

        entry = live.to_entry(live.snapshot())
        logger.info('Caching {} bytes for {}.'.format(len(entry.body), key))
        self.cache.set(key, entry, self.config.ttl)
        return self._replay(entry, key, returned_from_cache=False)

    def _replay(self, entry: CachedResponse, key: str, returned_from_cache: bool) -> CachedFetchResponse:
        return CachedFetchResponse.from_entry(entry, cache=self.cache, cache_key=key,
                                              returned_from_cache=returned_from_cache)


class FetchCache(Orchestrator):
    """
    A `fetch()` that answers from the cache when it can, and sends the request with a `requests.Session` when it
    cannot.
    """

    def __init__(self, config: CacheConfig, session: Optional[requests.Session] = None) -> None:
        super().__init__(config)
        self.session = session if session is not None else requests.Session()

    def fetch(self, resource, method=None, headers=None, data=None, json=None, params=None, files=None, auth=None,
              cookies=None, hooks=None, timeout=None, allow_redirects=True,
              cache_options: Optional[CallOptions] = None, **send_kwargs) -> CachedFetchResponse:
        """
        Fetch `resource`, going through the cache.

        @param resource
          A URL string, a `requests.Request` or a `requests.PreparedRequest`. The remaining request arguments override
          the matching parts of it.
        @param auth, cookies, hooks
          Passed on to the live request. Like headers, they are not part of the default cache key.
        @param cache_options
          Overrides for the cache key function and the cache policy, for this call only.
        @param send_kwargs
          `proxies`, `verify` and `cert`, as `requests.Session.send` takes them.
        @throws UnsupportedResourceType, UnsupportedBodyType
          Before any I/O, if the request cannot be understood.
        """
        request = to_request(resource, method=method, headers=headers, data=data, json=json, params=params,
                             files=files)
        options = transport_options(resource, auth=auth, cookies=cookies, hooks=hooks)
        key = self.compute_key(request, cache_options)

        def send() -> requests.Response:
            prepared = self.session.prepare_request(requests.Request(method=request.method,
                                                                     url=request.uri,
                                                                     headers=dict(request.headers),
                                                                     data=request.body.payload(),
                                                                     files=request.body.files(),
                                                                     **options))
            settings = dict(send_kwargs)
            proxies = settings.pop('proxies', None) or {}
            verify = settings.pop('verify', None)
            cert = settings.pop('cert', None)
            # Always streamed. The response facade reads the body lazily.
            settings.update(self.session.merge_environment_settings(prepared.url, proxies, True, verify, cert))
            settings.update(timeout=timeout, allow_redirects=allow_redirects)
            return self.session.send(prepared, **settings)

        return self.resolve(request, key, send, cache_options)

    __call__ = fetch

    def cache_key(self, resource, cache_options: Optional[CallOptions] = None, **kw) -> str:
        """
        The cache key that `fetch()` would use for the same arguments.
        """
        return self.compute_key(to_request(resource, **kw), cache_options)

    def close(self) -> None:
        self.session.close()
        self.cache.close()

    def __enter__(self) -> 'FetchCache':
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create(cache, session: Optional[requests.Session] = None, **kw) -> FetchCache:
    """
    Shorthand for `FetchCache(CacheConfig(cache, **kw), session)`.
    """
    return FetchCache(CacheConfig(cache, **kw), session)
