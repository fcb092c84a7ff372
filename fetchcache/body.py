"""
Request body variants.

A request body arrives in one of several shapes. Each shape knows how to produce a digest of its canonical bytes
(for the cache key) and the payload that should be handed to `requests` for the live fetch.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
import hashlib
import json
import logging
from typing import Any, Iterable, List, Optional, Tuple
from urllib.parse import urlencode

from requests.utils import guess_filename, to_key_val_list

from .exceptions import UnsupportedBodyType


logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

EMPTY_MARKER = '-'
"""
Stands in for the digest of a request without a body.
"""


class Body(ABC):
    @abstractmethod
    def digest(self) -> str:
        """
        @return
          A hex digest of the canonical body bytes, or `EMPTY_MARKER` when there is no body.
        """

    @abstractmethod
    def payload(self) -> Any:
        """
        @return
          The value to send as `data` on the live request.
        """

    def files(self) -> Optional[List[Tuple[Any, Any]]]:
        """
        @return
          The value to send as `files` on the live request, if the body is a multipart upload.
        """
        return None


class EmptyBody(Body):
    def digest(self) -> str:
        return EMPTY_MARKER

    def payload(self) -> None:
        return None


class BytesBody(Body):
    def __init__(self, data) -> None:
        self.__data = data

    def digest(self) -> str:
        data = self.__data.encode('utf-8') if isinstance(self.__data, str) else bytes(self.__data)
        return hashlib.sha256(data).hexdigest()

    def payload(self):
        return self.__data


class FormBody(Body):
    """
    Form fields, either a mapping or a sequence of name/value pairs.

    A mapping carries no meaningful order, so its fields are sorted before hashing. A sequence of pairs is hashed in
    the order given, since that is the order that goes over the wire.
    """

    def __init__(self, fields) -> None:
        self.__fields = fields

    def pairs(self) -> List[Tuple[Any, Any]]:
        result = []
        for name, value in to_key_val_list(self.__fields):
            if isinstance(value, (str, bytes)) or not hasattr(value, '__iter__'):
                value = [value]
            for item in value:
                # requests leaves these out of the encoded body.
                if item is not None:
                    result.append((name, item))
        if isinstance(self.__fields, Mapping):
            result.sort(key=lambda pair: (_text(pair[0]), _text(pair[1])))
        return result

    def digest(self) -> str:
        pairs = self.pairs()
        if not pairs:
            return EMPTY_MARKER
        canonical = urlencode(pairs).encode('ascii')
        return hashlib.sha256(canonical).hexdigest()

    def payload(self):
        return self.__fields


class MultipartBody(Body):
    """
    A multipart upload: optional form fields plus the `files` argument of `requests`.

    File contents are read when the body is built, so the bytes that are hashed are the bytes that get sent. The
    digest covers each part's field name, filename, content type, extra headers and content. It leaves out the
    boundary, which `requests` picks at random for every request.
    """

    def __init__(self, fields, files) -> None:
        """
        @param fields
          Form fields, in any shape `FormBody` accepts, or `None`.
        @param files
          A mapping or a sequence of pairs from field name to a file, as `requests` accepts them: a file-like object,
          bytes, text, or a `(filename, file[, content_type[, headers]])` tuple.
        @throws UnsupportedBodyType
          If the fields are not form fields, or a file is not one of the shapes above.
        """
        form = from_data(fields)
        if not isinstance(form, (EmptyBody, FormBody)):
            raise UnsupportedBodyType(fields)
        self.__form = form
        self.__parts = []
        for name, value in to_key_val_list(files):
            part = _read_file_part(name, value)
            if part is not None:
                self.__parts.append(part)
        logger.info('Buffered {} file(s) for a multipart request body.'.format(len(self.__parts)))

    def digest(self) -> str:
        fields = self.__form.pairs() if isinstance(self.__form, FormBody) else []
        canonical = {
            'fields': [[_text(name), _text(value)] for name, value in fields],
            'files': [[_text(name), _text(filename) if filename is not None else None, content_type,
                       [[_text(key), _text(value)] for key, value in to_key_val_list(headers or {})],
                       hashlib.sha256(content).hexdigest()]
                      for name, (filename, content, content_type, headers) in self.__parts],
        }
        return hashlib.sha256(json.dumps(canonical, sort_keys=True).encode('utf-8')).hexdigest()

    def payload(self):
        return self.__form.payload()

    def files(self) -> List[Tuple[Any, Any]]:
        return list(self.__parts)


class StreamBody(Body):
    """
    A file-like object or an iterator of chunks, whose length is unknown until it has been read.

    Computing the digest drains the source into a buffer. From then on the buffer is the payload, so the source is
    only ever read once.
    """

    def __init__(self, source) -> None:
        self.__source = source
        self.__buffer = None  # type: Optional[bytes]
        self.__digest = None  # type: Optional[str]

    @property
    def drained(self) -> bool:
        return self.__buffer is not None

    def drain(self) -> bytes:
        if self.__buffer is None:
            hasher = hashlib.sha256()
            chunks = []
            for chunk in _read_chunks(self.__source):
                hasher.update(chunk)
                chunks.append(chunk)
            self.__buffer = b''.join(chunks)
            self.__digest = hasher.hexdigest()
            self.__source = None
            logger.info('Buffered {} bytes from a streamed request body.'.format(len(self.__buffer)))
        return self.__buffer

    def digest(self) -> str:
        self.drain()
        return self.__digest

    def payload(self):
        if self.__buffer is None:
            return self.__source
        return self.__buffer


def from_data(data) -> Body:
    """
    Classify a `data` argument into one of the body variants.

    @throws UnsupportedBodyType
      If `data` is not text, bytes, form fields, a file-like object or an iterator.
    """
    if isinstance(data, Body):
        return data
    if data is None:
        return EmptyBody()
    if isinstance(data, (str, bytes, bytearray, memoryview)):
        return BytesBody(data) if len(data) else EmptyBody()
    if isinstance(data, Mapping):
        return FormBody(data) if data else EmptyBody()
    if isinstance(data, (list, tuple)):
        if not data:
            return EmptyBody()
        if not all(isinstance(pair, (list, tuple)) and len(pair) == 2 for pair in data):
            raise UnsupportedBodyType(data)
        return FormBody(data)
    if hasattr(data, 'read') or isinstance(data, Iterator):
        return StreamBody(data)
    raise UnsupportedBodyType(data)


def _read_chunks(source) -> Iterable[bytes]:
    if hasattr(source, 'read'):
        chunks = iter(lambda: source.read(CHUNK_SIZE), source.read(0))
    else:
        chunks = source
    for chunk in chunks:
        if isinstance(chunk, str):
            chunk = chunk.encode('utf-8')
        elif isinstance(chunk, (bytes, bytearray, memoryview)):
            chunk = bytes(chunk)
        else:
            raise UnsupportedBodyType(chunk)
        yield chunk


def _read_file_part(name, value):
    """
    Normalize one entry of a `files` argument to `(name, (filename, content, content_type, headers))`.

    Follows `requests.models.RequestEncodingMixin._encode_files`. A part whose file is `None` is dropped, as
    `requests` drops it.
    """
    content_type = headers = None
    if isinstance(value, (tuple, list)):
        if len(value) == 2:
            filename, source = value
        elif len(value) == 3:
            filename, source, content_type = value
        elif len(value) == 4:
            filename, source, content_type, headers = value
        else:
            raise UnsupportedBodyType(value)
    else:
        filename = guess_filename(value) or name
        source = value

    if source is None:
        return None
    if isinstance(source, str):
        content = source.encode('utf-8')
    elif isinstance(source, (bytes, bytearray)):
        content = bytes(source)
    elif hasattr(source, 'read'):
        content = source.read()
        if isinstance(content, str):
            content = content.encode('utf-8')
    else:
        raise UnsupportedBodyType(source)
    return name, (filename, content, content_type, headers)


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode('utf-8', 'replace')
    return str(value)
