from __future__ import annotations

import gzip as gzip_module
import time

import httpx
import pytest

from reqkit import Client, ClientOptions, Request, gzip
from reqkit.exceptions import DecodeError, TransportError
from reqkit.response import Response


class _FailingStream(httpx.SyncByteStream):
    def __iter__(self):
        yield b"partial"
        raise httpx.ReadTimeout("read timed out")


def _dispatch(response: httpx.Response, **fields) -> Response:
    client = Client(transport=httpx.MockTransport(lambda request: response))
    return client.dispatch(Request(uri="http://example.com/", **fields))


def test_close_releases_both_layers() -> None:
    payload = b"layered body " * 100
    raw = httpx.Response(
        200,
        headers={"Content-Encoding": "gzip"},
        stream=httpx.ByteStream(gzip_module.compress(payload)),
    )
    response = _dispatch(raw, compression=gzip())
    body = response.body

    assert body.read() == payload
    assert body.reader.read() == b""

    body.close()
    body.close()

    assert raw.is_closed
    with pytest.raises(ValueError):
        body.reader.read()
    assert body.compressed_reader.read() == b""


def test_close_without_compressed_layer() -> None:
    raw = httpx.Response(200, stream=httpx.ByteStream(b"plain"))
    response = _dispatch(raw)

    with response:
        assert response.body.compressed_reader is None
    response.close()

    with pytest.raises(ValueError):
        response.body.read()


def test_text_uses_the_response_charset() -> None:
    raw = httpx.Response(
        200,
        headers={"Content-Type": "text/plain; charset=latin-1"},
        stream=httpx.ByteStream("café".encode("latin-1")),
    )
    assert _dispatch(raw).body.text() == "café"


def test_json_decoding() -> None:
    raw = httpx.Response(200, stream=httpx.ByteStream(b'{"a": 1, "b": 2}'))
    assert _dispatch(raw).body.json(dict[str, int]) == {"a": 1, "b": 2}

    raw = httpx.Response(200, stream=httpx.ByteStream(b"[1, 2"))
    with pytest.raises(DecodeError):
        _dispatch(raw).body.json()

    raw = httpx.Response(200, stream=httpx.ByteStream(b'{"a": "x"}'))
    with pytest.raises(DecodeError):
        _dispatch(raw).body.json(dict[str, int])


def test_iteration_yields_chunks() -> None:
    raw = httpx.Response(200, stream=httpx.ByteStream(b"abc" * 10))
    assert b"".join(_dispatch(raw).body) == b"abc" * 10


def test_partial_reads() -> None:
    raw = httpx.Response(200, stream=httpx.ByteStream(b"0123456789"))
    body = _dispatch(raw).body
    assert body.read(4) == b"0123"
    assert body.read(4) == b"4567"
    assert body.read() == b"89"
    assert body.read() == b""


def test_read_failure_is_a_transport_error() -> None:
    raw = httpx.Response(200, stream=_FailingStream())
    body = _dispatch(raw).body

    with pytest.raises(TransportError) as exc_info:
        body.read()

    assert exc_info.value.is_timeout()


def test_response_metadata() -> None:
    raw = httpx.Response(
        200,
        headers={"Content-Length": "5", "Set-Cookie": "id=1; Path=/"},
        stream=httpx.ByteStream(b"hello"),
    )
    response = _dispatch(raw)

    assert response.content_length == 5
    assert response.cookies["id"] == "1"
    assert repr(response) == "<Response [200] http://example.com/>"

    partial = Response(None, "", None, None)
    assert partial.status_code is None
    assert partial.content_length is None
    partial.close()


class _TricklingStream(httpx.SyncByteStream):
    def __iter__(self):
        for _ in range(20):
            time.sleep(0.05)
            yield b"."


def test_body_reads_stop_at_the_overall_deadline() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=_TricklingStream()))
    client = Client(ClientOptions(timeout=0.3), transport=transport)
    body = client.dispatch(Request(uri="http://example.com/")).body

    began = time.monotonic()
    with pytest.raises(TransportError) as exc_info:
        body.read()

    assert exc_info.value.is_timeout()
    assert time.monotonic() - began < 0.9
