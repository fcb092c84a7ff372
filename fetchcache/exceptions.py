"""
Errors raised by the caching layer.

Transport failures are not wrapped: whatever `requests` raises reaches the caller unchanged.
"""


class FetchCacheError(Exception):
    """
    Base class for all errors raised by this package.
    """


class UnsupportedResourceType(FetchCacheError, TypeError):
    def __init__(self, resource: object) -> None:
        super().__init__(
            'The first argument to fetch must be either a string or a requests Request instance, got {}'.format(
                type(resource).__name__))
        self.resource = resource


class UnsupportedBodyType(FetchCacheError, TypeError):
    def __init__(self, body: object) -> None:
        super().__init__('Unsupported body type: {}'.format(type(body).__name__))
        self.body = body


class BodyAlreadyConsumed(FetchCacheError):
    def __init__(self, url: str) -> None:
        super().__init__('body used already for: {}'.format(url))
        self.url = url


class CorruptEntry(FetchCacheError):
    """
    A stored entry could not be decoded.

    The orchestrator treats this as a cache miss; it never reaches the caller.
    """

    def __init__(self, location: str, reason: str = '') -> None:
        message = 'Corrupt cache entry at {}'.format(location)
        if reason:
            message = '{}: {}'.format(message, reason)
        super().__init__(message)
        self.__location = location

    @property
    def location(self) -> str:
        return self.__location
