"""Content-encoding codecs used for request bodies and response bodies."""

from __future__ import annotations

import io
import zlib as _zlib
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable

from .exceptions import DecodeError

CHUNK_SIZE = 65536

GZIP_WBITS = 16 + _zlib.MAX_WBITS
ZLIB_WBITS = _zlib.MAX_WBITS
RAW_DEFLATE_WBITS = -_zlib.MAX_WBITS


def read_chunk(source: Any, size: int = CHUNK_SIZE) -> bytes:
    chunk = source.read(size)
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return chunk or b""


class CompressingWriter:
    """Writable stream deflating everything written into ``target``.

    Output is only complete once ``close()`` has run.
    """

    def __init__(self, target: BinaryIO, wbits: int, level: int = _zlib.Z_DEFAULT_COMPRESSION) -> None:
        self._target = target
        self._obj = _zlib.compressobj(level, _zlib.DEFLATED, wbits)
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed compressor")
        self._target.write(self._obj.compress(data))
        return len(data)

    def flush(self) -> None:
        if self.closed:
            return
        self._target.write(self._obj.flush(_zlib.Z_SYNC_FLUSH))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._target.write(self._obj.flush())

    def __enter__(self) -> "CompressingWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class DecompressingReader:
    """Readable stream inflating bytes pulled lazily from ``source``.

    Closing the reader does not close ``source``. Reads after ``close()``
    return ``b""``. ``head`` holds bytes already taken from ``source``;
    they are inflated first.
    """

    def __init__(
        self,
        source: Any,
        wbits: int,
        *,
        fallback_wbits: int | None = None,
        multi_member: bool = False,
        head: bytes = b"",
    ) -> None:
        self._source = source
        self._head = head
        self._wbits = wbits
        self._fallback_wbits = fallback_wbits
        self._multi_member = multi_member
        self._obj = _zlib.decompressobj(wbits)
        self._replay = bytearray()
        self._out = bytearray()
        self._first_try = fallback_wbits is not None
        self._seen_input = False
        self._eof = False
        self.closed = False

    def _decompress(self, data: bytes) -> bytes:
        if self._first_try:
            self._replay += data
            try:
                out = self._decompress_members(data)
            except _zlib.error:
                # Some servers send raw deflate streams without the zlib header.
                self._first_try = False
                self._wbits = self._fallback_wbits
                self._obj = _zlib.decompressobj(self._wbits)
                data, self._replay = bytes(self._replay), bytearray()
                return self._decompress_members(data)
            if out:
                self._first_try = False
                self._replay = bytearray()
            return out
        return self._decompress_members(data)

    def _decompress_members(self, data: bytes) -> bytes:
        out = bytearray()
        while data:
            out += self._obj.decompress(data)
            if not self._obj.eof:
                break
            data = self._obj.unused_data
            if not data or not self._multi_member:
                break
            self._obj = _zlib.decompressobj(self._wbits)
        return bytes(out)

    def _fill(self, size: int) -> None:
        while not self._eof and (size < 0 or len(self._out) < size):
            if self._head:
                chunk, self._head = self._head, b""
            else:
                chunk = read_chunk(self._source)
            try:
                if chunk:
                    self._seen_input = True
                    self._out += self._decompress(chunk)
                    continue
                self._out += self._obj.flush()
            except _zlib.error as exc:
                raise DecodeError("invalid compressed data", cause=exc) from exc
            self._eof = True
            if self._seen_input and not self._obj.eof:
                raise DecodeError("unexpected end of compressed data")

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            return b""
        if size is None:
            size = -1
        self._fill(size)
        if size < 0:
            data, self._out = bytes(self._out), bytearray()
        else:
            data = bytes(self._out[:size])
            del self._out[:size]
        return data

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._out = bytearray()
        self._obj = None
        self._head = b""


GZIP_MAGIC = b"\x1f\x8b"
GZIP_HEADER_SIZE = 10


def _read_gzip_header(source: Any) -> bytes:
    head = b""
    while len(head) < GZIP_HEADER_SIZE:
        chunk = read_chunk(source)
        if not chunk:
            break
        head += chunk
    if not head:
        return head
    if len(head) < GZIP_HEADER_SIZE:
        raise DecodeError("unexpected end of gzip header")
    if head[:2] != GZIP_MAGIC or head[2] != _zlib.DEFLATED:
        raise DecodeError("invalid gzip header")
    return head


def _gzip_reader(source: Any) -> DecompressingReader:
    """Open a gzip stream, reading its header before returning."""
    if not callable(getattr(source, "read", None)):
        raise DecodeError("gzip reader needs a readable source")
    head = _read_gzip_header(source)
    return DecompressingReader(source, GZIP_WBITS, multi_member=True, head=head)


def _gzip_writer(target: BinaryIO) -> CompressingWriter:
    return CompressingWriter(target, GZIP_WBITS)


def _deflate_reader(source: Any) -> DecompressingReader:
    if not callable(getattr(source, "read", None)):
        raise DecodeError("deflate reader needs a readable source")
    return DecompressingReader(source, ZLIB_WBITS, fallback_wbits=RAW_DEFLATE_WBITS)


def _deflate_writer(target: BinaryIO) -> CompressingWriter:
    return CompressingWriter(target, ZLIB_WBITS)


@dataclass(frozen=True)
class Compression:
    """A content-encoding token with its writer and reader factories."""

    content_encoding: str
    writer: Callable[[BinaryIO], CompressingWriter]
    reader: Callable[[Any], DecompressingReader]

    def compress(self, source: Any) -> bytes:
        """Pipe all of ``source`` through the writer and return the result."""
        buffer = io.BytesIO()
        with self.writer(buffer) as writer:
            while True:
                chunk = read_chunk(source)
                if not chunk:
                    break
                writer.write(chunk)
        return buffer.getvalue()

    def matches(self, content_encoding: str | None) -> bool:
        """Substring match against a response's Content-Encoding header."""
        return bool(content_encoding) and self.content_encoding in content_encoding


_GZIP = Compression(content_encoding="gzip", writer=_gzip_writer, reader=_gzip_reader)
_DEFLATE = Compression(content_encoding="deflate", writer=_deflate_writer, reader=_deflate_reader)


def gzip() -> Compression:
    return _GZIP


def deflate() -> Compression:
    return _DEFLATE


def zlib() -> Compression:
    """Alias of :func:`deflate`; both use the zlib-wrapped deflate format."""
    return deflate()


CODECS: dict[str, Callable[[], Compression]] = {
    "gzip": gzip,
    "deflate": deflate,
    "zlib": zlib,
}


def get_compression(name: str) -> Compression:
    try:
        return CODECS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unsupported compression: {name}") from None
