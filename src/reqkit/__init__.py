"""Declarative HTTP requests dispatched through httpx."""

import logging

from .body import JSON, Bytes, NoBody, RequestBody, Stream, Text
from .client import Client, limit_redirects, never_follow
from .compression import Compression, deflate, get_compression, gzip, zlib
from .context import Context
from .exceptions import (
    ConfigurationError,
    ContextCancelled,
    DeadlineExceeded,
    DecodeError,
    EncodingError,
    PolicyError,
    ReqkitError,
    TransportError,
    UrlError,
)
from .options import DEFAULT_CLIENT_OPTIONS, ClientOptions, Dialer
from .params import encode_params
from .request import Request
from .response import Response, ResponseBody

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Bytes",
    "Client",
    "ClientOptions",
    "Compression",
    "ConfigurationError",
    "Context",
    "ContextCancelled",
    "DEFAULT_CLIENT_OPTIONS",
    "DeadlineExceeded",
    "DecodeError",
    "Dialer",
    "EncodingError",
    "JSON",
    "NoBody",
    "PolicyError",
    "ReqkitError",
    "Request",
    "RequestBody",
    "Response",
    "ResponseBody",
    "Stream",
    "Text",
    "TransportError",
    "UrlError",
    "deflate",
    "encode_params",
    "get_compression",
    "gzip",
    "limit_redirects",
    "never_follow",
    "zlib",
]
