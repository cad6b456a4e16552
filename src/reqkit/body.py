"""Request body variants and their conversion into a readable byte stream."""

from __future__ import annotations

import dataclasses
import io
import json
from typing import Any, BinaryIO

from pydantic import BaseModel

from .exceptions import EncodingError


class RequestBody:
    """One of the accepted request body shapes."""

    def open(self) -> BinaryIO | None:
        raise NotImplementedError()


class NoBody(RequestBody):
    def open(self) -> None:
        return None


class Text(RequestBody):
    def __init__(self, text: str, encoding: str = "utf-8") -> None:
        self.text = text
        self.encoding = encoding

    def open(self) -> BinaryIO:
        return io.BytesIO(self.text.encode(self.encoding))


class Bytes(RequestBody):
    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self.data = bytes(data)

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)


class Stream(RequestBody):
    """A caller-provided readable object, handed over as-is.

    The builder takes over consumption of the stream; it is read once.
    """

    def __init__(self, fp: Any) -> None:
        self.fp = fp

    def open(self) -> Any:
        return self.fp


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def compact_json_dumps(value: Any) -> bytes:
    return json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_json_default,
    ).encode("utf-8")


class JSON(RequestBody):
    def __init__(self, value: Any) -> None:
        self.value = value

    def open(self) -> BinaryIO:
        try:
            return io.BytesIO(compact_json_dumps(self.value))
        except (TypeError, ValueError) as exc:
            raise EncodingError("body is not JSON encodable", cause=exc) from exc


def coerce_body(value: Any) -> RequestBody:
    """Pick the body variant matching the runtime shape of ``value``."""
    if isinstance(value, RequestBody):
        return value
    if value is None:
        return NoBody()
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Bytes(value)
    if callable(getattr(value, "read", None)):
        return Stream(value)
    return JSON(value)


def prepare_body(value: Any) -> BinaryIO | None:
    """Turn any accepted body shape into a readable stream, or ``None`` for no body."""
    return coerce_body(value).open()
