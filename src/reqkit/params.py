"""Query-string encoding for multimaps, mappings and annotated records.

Records are dataclass or pydantic model instances. Each field may carry a
``url`` tag in the same ``name,option,option`` shape struct tags use::

    @dataclass
    class Search:
        term: str = field(metadata={"url": "q"})
        page: int | None = field(default=None, metadata={"url": "page,omitempty"})
        secret: str = field(default="", metadata={"url": "-"})
        paging: Paging = field(default_factory=Paging, metadata={"url": ",squash"})

For pydantic models the tag goes in ``Field(json_schema_extra={"url": ...})``.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping, Sequence, Union
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from .exceptions import EncodingError

TAG_KEY = "url"

QueryType = Union[
    httpx.QueryParams,
    Mapping[str, Any],
    Sequence[tuple[str, Any]],
    BaseModel,
    Any,
]


@dataclass(frozen=True)
class FieldSpec:
    attr: str
    key: str
    omitempty: bool = False
    squash: bool = False


def parse_tag(tag: str) -> tuple[str, frozenset[str]]:
    name, _, options = tag.partition(",")
    return name.strip(), frozenset(opt.strip() for opt in options.split(",") if opt.strip())


def is_record(value: Any) -> bool:
    if isinstance(value, BaseModel):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _field_spec(attr: str, tag: str | None) -> FieldSpec | None:
    if attr.startswith("_") or tag == "-":
        return None
    name, options = parse_tag(tag or "")
    return FieldSpec(
        attr=attr,
        key=name or attr.lower(),
        omitempty="omitempty" in options,
        squash="squash" in options,
    )


@functools.lru_cache(maxsize=256)
def field_specs(record_type: type) -> tuple[FieldSpec, ...]:
    """Build the field descriptor table of a record type, in declaration order."""
    if issubclass(record_type, BaseModel):
        tagged = []
        for attr, info in record_type.model_fields.items():
            extra = info.json_schema_extra
            tagged.append((attr, extra.get(TAG_KEY) if isinstance(extra, dict) else None))
    elif dataclasses.is_dataclass(record_type):
        tagged = [(f.name, f.metadata.get(TAG_KEY)) for f in dataclasses.fields(record_type)]
    else:
        raise EncodingError(f"{record_type.__name__} is not a record type")

    specs = (_field_spec(attr, tag) for attr, tag in tagged)
    return tuple(spec for spec in specs if spec is not None)


def stringify(value: Any) -> str:
    """Scalar-to-string conversion used for query values."""
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return stringify(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _multimap_pairs(query: Any) -> list[tuple[str, str]]:
    if isinstance(query, httpx.QueryParams):
        return [(key, value) for key, value in query.multi_items()]

    pairs: list[tuple[str, str]] = []
    if isinstance(query, Mapping):
        for key, value in query.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((str(key), stringify(item)) for item in value)
            else:
                pairs.append((str(key), stringify(value)))
        return pairs

    for entry in query:
        try:
            key, value = entry
        except (TypeError, ValueError) as exc:
            raise EncodingError("query pairs must be (key, value) tuples", cause=exc) from exc
        pairs.append((str(key), stringify(value)))
    return pairs


def _record_pairs(record: Any, pairs: list[tuple[str, str]]) -> None:
    for spec in field_specs(type(record)):
        value = getattr(record, spec.attr)
        if spec.squash:
            if not is_record(value):
                raise EncodingError(f"squashed field {spec.attr!r} does not hold a record")
            _record_pairs(value, pairs)
            continue
        text = stringify(value)
        if spec.omitempty and not text:
            continue
        pairs.append((spec.key, text))


def encode_params(query: QueryType) -> str:
    """Encode ``query`` into a key-sorted, percent-encoded query string."""
    if isinstance(query, (httpx.QueryParams, Mapping, list, tuple)):
        pairs = _multimap_pairs(query)
    elif is_record(query):
        pairs = []
        _record_pairs(query, pairs)
    else:
        raise EncodingError(f"can not parse query string from {type(query).__name__}")

    # sorted() is stable, so repeated keys keep their relative order
    return urlencode(sorted(pairs, key=lambda pair: pair[0]))
