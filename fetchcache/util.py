from typing import BinaryIO, Callable, FrozenSet, Iterator, Mapping, Optional


CACHE_CONTROL = 'Cache-Control'
ONLY_IF_CACHED = 'only-if-cached'
NO_STORE = 'no-store'


def clamp(value, minimum, maximum):
    return sorted((minimum, value, maximum))[1]


def parse_cache_control(headers: Mapping[str, str]) -> FrozenSet[str]:
    """
    Collect the directive names from a Cache-Control header.

    Names are lowercased and stripped of whitespace. Any `=value` part is dropped.

    @param headers
      A case-insensitive header mapping.
    """
    value = headers.get(CACHE_CONTROL)
    if not value:
        return frozenset()
    directives = set()
    for token in value.split(','):
        name = token.split('=', 1)[0].strip().lower()
        if name:
            directives.add(name)
    return frozenset(directives)


class Tee:
    """
    Iterates a stream of chunks while copying every chunk into `writer`.

    `on_complete` runs once the reader is exhausted, so it only fires for a body that was read in full.
    """

    def __init__(self, reader: Iterator[bytes], writer: BinaryIO,
                 on_complete: Optional[Callable[[], None]] = None) -> None:
        self.__reader = reader
        self.__writer = writer
        self.__on_complete = on_complete
        self.__complete = False

    @property
    def complete(self) -> bool:
        return self.__complete

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        try:
            chunk = next(self.__reader)
        except StopIteration:
            self._finish()
            raise
        if chunk:
            self.__writer.write(chunk)
        return chunk

    def drain(self) -> None:
        """
        Read whatever is left of the reader into the writer.
        """
        for _ in self:
            pass

    def _finish(self) -> None:
        if not self.__complete:
            self.__complete = True
            if self.__on_complete is not None:
                self.__on_complete()
