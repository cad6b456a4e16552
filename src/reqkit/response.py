"""Response model and the lazy, optionally decompressing response body."""

from __future__ import annotations

import json
import time
from typing import Any, Iterator, TypeVar, overload

import httpx
from pydantic import TypeAdapter, ValidationError

from .compression import CHUNK_SIZE, Compression, DecompressingReader
from .exceptions import DecodeError, ReqkitError, TransportError, is_timeout_error

T = TypeVar("T")


class RawStream:
    """File-like view over the undecoded bytes of a streaming httpx response.

    With a ``deadline`` (a ``time.monotonic()`` value) no new chunk is
    fetched once it has passed.
    """

    def __init__(self, response: httpx.Response, deadline: float | None = None) -> None:
        self._response = response
        self._deadline = deadline
        self._chunks: Iterator[bytes] | None = None
        self._buffer = bytearray()
        self._exhausted = False
        self.closed = False

    def _next_chunk(self) -> bytes | None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise TransportError(
                "request deadline exceeded while reading response body",
                timeout=True,
                request=self._response.request,
            )
        if self._chunks is None:
            self._chunks = self._response.iter_raw()
        try:
            return next(self._chunks)
        except StopIteration:
            return None
        except httpx.TransportError as exc:
            raise TransportError(
                "error reading response body",
                timeout=is_timeout_error(exc),
                request=self._response.request,
                cause=exc,
            ) from exc

    def read(self, size: int | None = -1) -> bytes:
        if self.closed:
            raise ValueError("read from closed response body")
        if size is None:
            size = -1
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            chunk = self._next_chunk()
            if chunk is None:
                self._exhausted = True
                break
            self._buffer += chunk
        if size < 0:
            data, self._buffer = bytes(self._buffer), bytearray()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._buffer = bytearray()
        self._response.close()


class ResponseBody:
    """Owns the raw network stream and, optionally, a decompressing layer on top.

    Reads go through the outermost layer. ``close()`` releases both layers
    and may be called any number of times. After closing, reading the raw
    layer raises ``ValueError`` while the decompressing layer returns
    ``b""``.
    """

    def __init__(
        self,
        reader: RawStream,
        compressed_reader: DecompressingReader | None = None,
        *,
        encoding: str | None = None,
    ) -> None:
        self.reader = reader
        self.compressed_reader = compressed_reader
        self.encoding = encoding
        self.closed = False

    def read(self, size: int | None = -1) -> bytes:
        if self.compressed_reader is not None:
            return self.compressed_reader.read(size)
        return self.reader.read(size)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.reader.close()
        finally:
            if self.compressed_reader is not None:
                self.compressed_reader.close()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(CHUNK_SIZE)
            if not chunk:
                return
            yield chunk

    def __enter__(self) -> "ResponseBody":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def text(self) -> str:
        """Read the rest of the body and decode it."""
        return self.read().decode(self.encoding or "utf-8", errors="replace")

    @overload
    def json(self) -> Any: ...

    @overload
    def json(self, target: type[T]) -> T: ...

    def json(self, target: Any = None) -> Any:
        """Read the rest of the body as JSON, optionally validated into ``target``.

        ``target`` is anything pydantic can validate into: a model, a
        dataclass, ``dict[str, str]`` and so on.
        """
        data = self.read()
        try:
            if target is None:
                return json.loads(data)
            return TypeAdapter(target).validate_json(data)
        except (ValueError, ValidationError) as exc:
            raise DecodeError("response body is not valid JSON for the target", cause=exc) from exc


class Response:
    """Result of a dispatch.

    ``raw`` is the final ``httpx.Response``; it is ``None`` for the partial
    response attached to a transport failure that never got an answer.
    ``request`` is the wire request that was sent, after the pre-send hook.
    ``uri`` is the URL of the last hop that was reached.
    """

    def __init__(
        self,
        raw: httpx.Response | None,
        uri: str,
        body: ResponseBody | None,
        request: httpx.Request | None,
        history: list[httpx.Response] | None = None,
    ) -> None:
        self.raw = raw
        self.uri = uri
        self.body = body
        self.request = request
        self.history = history or []

    @classmethod
    def wrap(
        cls,
        raw: httpx.Response,
        request: httpx.Request,
        compression: Compression | None = None,
        history: list[httpx.Response] | None = None,
        deadline: float | None = None,
    ) -> "Response":
        """Wrap a streaming httpx response, attaching a decompressing layer
        when ``compression`` matches the response's Content-Encoding.

        Opening the decoder reads the codec header; a bad header raises
        ``DecodeError`` and closes the raw stream.
        """
        reader = RawStream(raw, deadline)
        compressed_reader = None
        if compression is not None and compression.matches(raw.headers.get("Content-Encoding")):
            try:
                compressed_reader = compression.reader(reader)
            except ReqkitError as exc:
                reader.close()
                if exc.request is None:
                    exc.request = request
                raise
        body = ResponseBody(reader, compressed_reader, encoding=raw.charset_encoding)
        return cls(raw, str(raw.request.url), body, request, history=history)

    @property
    def status_code(self) -> int | None:
        return self.raw.status_code if self.raw is not None else None

    @property
    def headers(self) -> httpx.Headers:
        return self.raw.headers if self.raw is not None else httpx.Headers()

    @property
    def content_length(self) -> int | None:
        value = self.headers.get("Content-Length")
        if value is None or not value.strip().isdigit():
            return None
        return int(value)

    @property
    def cookies(self) -> httpx.Cookies:
        return self.raw.cookies if self.raw is not None else httpx.Cookies()

    def close(self) -> None:
        if self.body is not None:
            self.body.close()

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.uri}>"
