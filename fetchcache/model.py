"""
Defines types to use in the caching interface.

These types are as simple as possible in order to most conveniently consume and
produce instances of them.
"""

from dataclasses import dataclass, field
import json
import struct
from typing import Any, Dict, Mapping, Sequence, Tuple

from requests.structures import CaseInsensitiveDict

from .body import Body, EmptyBody
from .exceptions import CorruptEntry


@dataclass
class Request:
    """
    Represents an arbitrary request, reduced to the parts that matter for caching.
    """

    method: str
    """
    The HTTP method of the request. E.g., "GET".
    """

    uri: str
    """
    The prepared URL of the resource being requested, query string included.
    """

    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    """
    All the headers being sent with the request. Lookups are case-insensitive.
    """

    body: Body = field(default_factory=EmptyBody, compare=False)
    """
    The request payload.
    """


Headers = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class CachedResponse:
    """
    A response as it is kept in a cache.

    Unlike a live response, the body here is fully materialized. Header pairs keep their original order and any
    repeated names.
    """

    status: int
    """
    The status code of the response. E.g., 200 or 400.
    """

    reason: str
    """
    The reason string, which relates to the status code.
    """

    url: str
    """
    The final URL of the response, after any redirects.
    """

    redirected: bool
    """
    Whether the response was reached through at least one redirect.
    """

    headers: Headers
    """
    The response headers as ordered name/value pairs.
    """

    body: bytes = field(repr=False)
    """
    The response payload.
    """

    def metadata(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'reason': self.reason,
            'url': self.url,
            'redirected': self.redirected,
            'headers': [list(pair) for pair in self.headers],
        }

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any], body: bytes) -> 'CachedResponse':
        """
        @throws KeyError, TypeError, ValueError
          If `metadata` does not have the expected shape.
        """
        return cls(status=int(metadata['status']),
                   reason=str(metadata['reason']),
                   url=str(metadata['url']),
                   redirected=bool(metadata['redirected']),
                   headers=normalize_headers(metadata['headers']),
                   body=bytes(body))


def normalize_headers(pairs: Sequence[Sequence[str]]) -> Headers:
    result = []
    for name, value in pairs:
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError('Header names and values must be strings')
        result.append((name, value))
    return tuple(result)


_LENGTH = struct.Struct('>I')


def serialize(entry: CachedResponse) -> bytes:
    """
    Encode an entry as a length-prefixed JSON header followed by the raw body.
    """
    metadata = json.dumps(entry.metadata(), separators=(',', ':')).encode('utf-8')
    return _LENGTH.pack(len(metadata)) + metadata + entry.body


def deserialize(data: bytes, location: str = '<bytes>') -> CachedResponse:
    """
    Decode the output of `serialize()`.

    @throws CorruptEntry
      If `data` is truncated or does not hold a valid entry.
    """
    if len(data) < _LENGTH.size:
        raise CorruptEntry(location, 'truncated length prefix')
    (length,) = _LENGTH.unpack_from(data)
    end = _LENGTH.size + length
    if len(data) < end:
        raise CorruptEntry(location, 'truncated metadata')
    try:
        metadata = json.loads(data[_LENGTH.size:end].decode('utf-8'))
        return CachedResponse.from_metadata(metadata, data[end:])
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptEntry(location, str(e)) from e
