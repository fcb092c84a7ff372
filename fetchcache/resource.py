"""
Turns the arguments of a fetch call into a `Request` descriptor.
"""

import json as complexjson

import requests
from requests.structures import CaseInsensitiveDict

from . import body
from .exceptions import UnsupportedBodyType, UnsupportedResourceType
from .model import Request


# These describe a particular encoding of the body and are recomputed whenever the body is prepared again.
_FRAMING_HEADERS = ('Content-Length', 'Transfer-Encoding')


def to_request(resource, method=None, headers=None, data=None, json=None, params=None, files=None) -> Request:
    """
    Build the request descriptor for a fetch call.

    Keyword arguments take precedence over the corresponding parts of `resource`. The body follows the precedence of
    `requests`: `files` make a multipart body out of the form fields in `data`, and otherwise `json` is only used when
    `data` is empty.

    @param resource
      A URL string, a `requests.Request` or a `requests.PreparedRequest`.
    @throws UnsupportedResourceType
      If `resource` is none of the above.
    @throws UnsupportedBodyType
      If the body is not one of the recognized shapes.
    """
    if isinstance(resource, str):
        base_method, url, base_headers = 'GET', resource, {}
        base_data, base_json, base_params, base_files = None, None, None, None
    elif isinstance(resource, requests.Request):
        base_method, url, base_headers = resource.method or 'GET', resource.url, resource.headers or {}
        base_data, base_json, base_params, base_files = resource.data, resource.json, resource.params, resource.files
    elif isinstance(resource, requests.PreparedRequest):
        base_method, url, base_headers = resource.method or 'GET', resource.url, resource.headers or {}
        base_data, base_json, base_params, base_files = resource.body, None, None, None
    else:
        raise UnsupportedResourceType(resource)

    merged_headers = CaseInsensitiveDict(base_headers)
    for name in _FRAMING_HEADERS:
        merged_headers.pop(name, None)
    if headers:
        merged_headers.update(headers)

    if data is None and json is None:
        data, json = base_data, base_json
    if files is None:
        files = base_files

    return Request(method=(method or base_method).upper(),
                   uri=prepare_url(url, params if params is not None else base_params),
                   headers=merged_headers,
                   body=_body(data, json, files, merged_headers))


def transport_options(resource, auth=None, cookies=None, hooks=None) -> dict:
    """
    The parts of a request that only matter to the transport. They reach the live request but not the cache key.

    Keyword arguments take precedence over the corresponding parts of a `requests.Request`. A prepared request has
    already folded its auth and cookies into its headers.
    """
    if isinstance(resource, requests.Request):
        auth = auth if auth is not None else resource.auth
        cookies = cookies if cookies is not None else resource.cookies
        hooks = hooks if hooks is not None else resource.hooks
    elif isinstance(resource, requests.PreparedRequest):
        hooks = hooks if hooks is not None else resource.hooks
    return {'auth': auth, 'cookies': cookies, 'hooks': hooks}


def prepare_url(url: str, params=None) -> str:
    prepared = requests.PreparedRequest()
    prepared.prepare_url(url, params)
    return prepared.url


def _body(data, json, files, headers: CaseInsensitiveDict) -> body.Body:
    if files:
        if isinstance(data, (str, bytes, bytearray)):
            # requests refuses to mix a raw body with files.
            raise UnsupportedBodyType(data)
        return body.MultipartBody(data, files)
    if not data and json is not None:
        return _json_body(json, headers)
    return body.from_data(data)


def _json_body(value, headers: CaseInsensitiveDict) -> body.Body:
    if 'Content-Type' not in headers:
        headers['Content-Type'] = 'application/json'
    return body.BytesBody(complexjson.dumps(value, allow_nan=False).encode('utf-8'))
