"""
Cache key derivation.

The default key is the upper-cased method, the prepared URL and a digest of the body, joined by spaces. Headers only
take part when they are named explicitly, in the same spirit as a `Vary` header.
"""

import hashlib
import json
import logging
from typing import Callable, Iterable, Mapping

from .model import Request


logger = logging.getLogger(__name__)

CalculateCacheKey = Callable[[Request], str]


class KeyCalculator:
    def __init__(self, include_headers: Iterable[str] = ()) -> None:
        """
        @param include_headers
          Names of request headers whose values should distinguish otherwise identical requests. Matching is
          case-insensitive.
        """
        self.__include_headers = tuple(sorted({name.lower() for name in include_headers}))

    def __call__(self, request: Request) -> str:
        parts = [request.method.upper(), request.uri, request.body.digest()]
        if self.__include_headers:
            parts.append(self._header_digest(request.headers))
        key = ' '.join(parts)
        logger.debug('Calculated cache key {}'.format(key))
        return key

    def _header_digest(self, headers: Mapping[str, str]) -> str:
        selected = [[name, headers.get(name, '')] for name in self.__include_headers]
        return hashlib.sha256(json.dumps(selected).encode('utf-8')).hexdigest()


calculate_cache_key = KeyCalculator()
