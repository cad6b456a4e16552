"""Declarative request description and its conversion into a wire request."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Iterator

import httpx

from .body import prepare_body
from .compression import Compression, read_chunk
from .params import QueryType, encode_params
from .urls import append_query, parse_request_url

if TYPE_CHECKING:
    from .context import Context

BeforeRequestHook = Callable[["Request", httpx.Request], None]


def _iter_stream(stream: Any) -> Iterator[bytes]:
    while True:
        chunk = read_chunk(stream)
        if not chunk:
            return
        yield chunk


def _basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


@dataclass
class Request:
    """Everything needed to build one HTTP request.

    ``body`` accepts ``None``, ``str``, ``bytes``, a readable object, any
    JSON-serializable value (pydantic models and dataclasses included) or an
    explicit :class:`reqkit.body.RequestBody`. ``query`` accepts a mapping,
    ``httpx.QueryParams``, a list of pairs or a tagged record (see
    :mod:`reqkit.params`).

    ``on_before_request`` is the last chance to mutate the wire request
    before it is sent; it receives this description and the built
    ``httpx.Request``.
    """

    uri: str = ""
    method: str = ""
    body: Any = None
    query: QueryType | None = None
    content_type: str = ""
    accept: str = ""
    host: str = ""
    user_agent: str = ""
    basic_auth_username: str = ""
    basic_auth_password: str = ""
    compression: Compression | None = None
    show_debug: bool = False
    on_before_request: BeforeRequestHook | None = None
    context: Context | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    cookies: list[tuple[str, str]] = field(default_factory=list)

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def add_cookie(self, name: str, value: str) -> None:
        self.cookies.append((name, value))

    def build(self) -> httpx.Request:
        """Build the wire request.

        Raises ``EncodingError`` for bodies or query values that cannot be
        encoded and ``UrlError`` for unusable URIs. Nothing is sent. An explicit
        Host header takes precedence over ``host``.
        """
        method = self.method or "GET"
        body = prepare_body(self.body)

        uri = self.uri
        if self.query is not None:
            uri = append_query(uri, encode_params(self.query))

        content = self._content(body)
        url = parse_request_url(uri)

        header_list: list[tuple[str, str]] = []
        if self.host and not any(name.lower() == "host" for name, _ in self.headers):
            header_list.append(("Host", self.host))
        if self.user_agent:
            header_list.append(("User-Agent", self.user_agent))
        if self.accept:
            header_list.append(("Accept", self.accept))
        if self.content_type:
            header_list.append(("Content-Type", self.content_type))
        if self.compression is not None:
            header_list.append(("Content-Encoding", self.compression.content_encoding))
            header_list.append(("Accept-Encoding", self.compression.content_encoding))
        header_list.extend(self.headers)

        if self.basic_auth_username:
            header_list = [(k, v) for k, v in header_list if k.lower() != "authorization"]
            header_list.append(
                ("Authorization", _basic_auth_header(self.basic_auth_username, self.basic_auth_password))
            )

        if self.cookies:
            header_list = self._with_cookies(header_list)

        return httpx.Request(method, url, headers=httpx.Headers(header_list), content=content)

    def _content(self, body: BinaryIO | None) -> bytes | Iterator[bytes] | None:
        if body is None:
            return None
        if self.compression is not None:
            return self.compression.compress(body)
        if isinstance(body, io.BytesIO):
            return body.read()
        return _iter_stream(body)

    def _with_cookies(self, header_list: list[tuple[str, str]]) -> list[tuple[str, str]]:
        pairs = "; ".join(f"{name}={value}" for name, value in self.cookies)
        for index, (key, value) in enumerate(header_list):
            if key.lower() == "cookie":
                header_list[index] = (key, f"{value}; {pairs}" if value else pairs)
                return header_list
        header_list.append(("Cookie", pairs))
        return header_list
