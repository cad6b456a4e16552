from __future__ import annotations

import base64
import io
import zlib

import pytest

from reqkit import Request, gzip
from reqkit.exceptions import EncodingError, UrlError


def test_unset_method_builds_as_get() -> None:
    request = Request(uri="http://example.com/")
    wire = request.build()

    assert wire.method == "GET"
    assert request.method == ""


def test_query_is_appended_to_the_uri() -> None:
    wire = Request(uri="http://example.com/search", query={"q": "cats", "page": 2}).build()
    assert str(wire.url) == "http://example.com/search?page=2&q=cats"


def test_query_joins_an_existing_query_string() -> None:
    wire = Request(uri="http://example.com/search?lang=en#top", query={"q": "cats"}).build()
    assert wire.url.query == b"lang=en&q=cats"
    assert wire.url.fragment == "top"


def test_header_fields_and_explicit_headers() -> None:
    request = Request(
        uri="http://example.com/",
        host="virtual.example.org",
        user_agent="agent/1.0",
        accept="application/json",
        content_type="application/json",
    )
    request.add_header("X-Trace", "1")
    request.add_header("X-Trace", "2")
    wire = request.build()

    assert wire.headers["Host"] == "virtual.example.org"
    assert wire.headers["User-Agent"] == "agent/1.0"
    assert wire.headers["Accept"] == "application/json"
    assert wire.headers["Content-Type"] == "application/json"
    assert wire.headers.get_list("x-trace") == ["1", "2"]


def test_basic_auth_replaces_authorization_header() -> None:
    request = Request(uri="http://example.com/", basic_auth_username="user", basic_auth_password="pass")
    request.add_header("Authorization", "Bearer stale")
    wire = request.build()

    expected = "Basic " + base64.b64encode(b"user:pass").decode("ascii")
    assert wire.headers.get_list("Authorization") == [expected]


def test_cookies_are_merged_into_one_header() -> None:
    request = Request(uri="http://example.com/")
    request.add_header("Cookie", "theme=dark")
    request.add_cookie("session", "abc")
    request.add_cookie("lang", "en")

    assert request.build().headers["Cookie"] == "theme=dark; session=abc; lang=en"


def test_build_takes_a_snapshot() -> None:
    request = Request(uri="http://example.com/")
    request.add_header("X-One", "1")
    wire = request.build()
    request.add_header("X-Two", "2")

    assert "X-Two" not in wire.headers


def test_compression_sets_headers_and_compresses_the_body() -> None:
    wire = Request(method="POST", uri="http://example.com/", body="hello " * 50, compression=gzip()).build()

    assert wire.headers["Content-Encoding"] == "gzip"
    assert wire.headers["Accept-Encoding"] == "gzip"
    assert zlib.decompress(wire.read(), 16 + zlib.MAX_WBITS) == b"hello " * 50


def test_stream_bodies_are_sent_in_chunks() -> None:
    wire = Request(method="PUT", uri="http://example.com/", body=io.BytesIO(b"streamed")).build()
    assert wire.read() == b"streamed"

    class TextReader:
        def __init__(self) -> None:
            self._chunks = ["abc", "def", ""]

        def read(self, size: int) -> str:
            return self._chunks.pop(0)

    wire = Request(method="PUT", uri="http://example.com/", body=TextReader()).build()
    assert wire.read() == b"abcdef"


def test_json_body_is_compact() -> None:
    wire = Request(method="POST", uri="http://example.com/", body={"a": [1, 2]}).build()
    assert wire.read() == b'{"a":[1,2]}'
    assert wire.headers["Content-Length"] == "11"


@pytest.mark.parametrize("uri", ["not a url", "ftp://example.com/file", "http://", "http://exa\x00mple.com/"])
def test_unusable_uris_are_rejected(uri: str) -> None:
    with pytest.raises(UrlError):
        Request(uri=uri).build()


def test_bad_query_is_an_encoding_error() -> None:
    with pytest.raises(EncodingError):
        Request(uri="http://example.com/", query=3.14).build()


def test_explicit_host_header_wins_over_host_field() -> None:
    request = Request(uri="http://example.com/", host="override.example")
    request.add_header("host", "explicit.example")

    assert request.build().headers.get_list("Host") == ["explicit.example"]
