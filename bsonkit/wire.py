"""Encoding of BSON values and documents to their raw wire bytes."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from .errors import InvalidDocumentKeyError, SerializationError
from .oid import ObjectId
from .spec import BinarySubtype, BinarySubtypeKind, ElementType
from .values import (
    Binary,
    Code,
    CodeWithScope,
    DateTime,
    DbPointer,
    Decimal128,
    Regex,
    Symbol,
    Timestamp,
    element_type_of,
    to_bson,
)

__all__ = [
    "MAX_BSON_SIZE",
    "write_string",
    "write_cstring",
    "write_i32",
    "write_i64",
    "write_f64",
    "write_binary",
    "encode_key",
    "serialize_bson",
    "serialize_array",
    "encode_document",
]

MAX_BSON_SIZE = 16 * 1024 * 1024

_I32 = struct.Struct("<i")
_I64 = struct.Struct("<q")
_F64 = struct.Struct("<d")
_TIMESTAMP = struct.Struct("<II")


def _pack(packer: struct.Struct, value: Any, what: str) -> bytes:
    try:
        return packer.pack(value)
    except struct.error as exc:
        raise SerializationError(f"cannot write {value!r} as {what}: {exc}") from exc


def write_i32(value: int) -> bytes:
    """Little-endian signed 32-bit integer."""
    return _pack(_I32, value, "i32")


def write_i64(value: int) -> bytes:
    """Little-endian signed 64-bit integer."""
    return _pack(_I64, value, "i64")


def write_f64(value: float) -> bytes:
    """Little-endian IEEE 754 double."""
    return _pack(_F64, value, "f64")


def write_string(s: str) -> bytes:
    """A length-prefixed, NUL-terminated UTF-8 string."""
    raw = s.encode("utf-8")
    return write_i32(len(raw) + 1) + raw + b"\x00"


def write_cstring(s: str) -> bytes:
    """A NUL-terminated UTF-8 string."""
    return s.encode("utf-8") + b"\x00"


def write_binary(data: bytes, subtype: BinarySubtype) -> bytes:
    """Binary payload: length, subtype byte, (old-style inner length,) bytes."""
    data = bytes(data)
    is_old = subtype.kind is BinarySubtypeKind.BINARY_OLD
    length = len(data) + 4 if is_old else len(data)
    if length > MAX_BSON_SIZE:
        raise SerializationError(f"binary length {len(data)} exceeded maximum size")
    parts = [write_i32(length), bytes([int(subtype)])]
    if is_old:
        parts.append(write_i32(length - 4))
    parts.append(data)
    return b"".join(parts)


def encode_key(key: Any) -> bytes:
    """Encode a document key; only strings (and enum members, by name) are allowed."""
    if isinstance(key, str):
        return write_cstring(key)
    if isinstance(key, Enum):
        return write_cstring(key.name)
    try:
        converted = to_bson(key)
    except (SerializationError, TypeError):
        converted = None
    raise InvalidDocumentKeyError(converted)


def _elements(items: Iterable[tuple[Any, Any]]) -> bytes:
    return b"".join(_element(key, value) for key, value in items)


def _wrap_document(body: bytes) -> bytes:
    return write_i32(len(body) + 5) + body + b"\x00"


def serialize_array(values: Iterable[Any]) -> bytes:
    """An array: a document whose keys are the decimal indices."""
    return _wrap_document(
        b"".join(serialize_bson(str(index), value) for index, value in enumerate(values))
    )


def encode_document(mapping: Mapping[Any, Any]) -> bytes:
    """A whole document: total length, elements, and a closing NUL."""
    return _wrap_document(_elements(mapping.items()))


def _payload(kind: ElementType, value: Any) -> bytes:
    if kind is ElementType.DOUBLE:
        return write_f64(value)
    if kind is ElementType.STRING:
        return write_string(value)
    if kind is ElementType.ARRAY:
        return serialize_array(value)
    if kind is ElementType.EMBEDDED_DOCUMENT:
        return encode_document(value)
    if kind is ElementType.BOOLEAN:
        return b"\x01" if value else b"\x00"
    if kind is ElementType.REGULAR_EXPRESSION:
        regex: Regex = value
        return write_cstring(regex.pattern) + write_cstring("".join(sorted(regex.options)))
    if kind is ElementType.JAVASCRIPT_CODE:
        code: Code = value
        return write_string(code.code)
    if kind is ElementType.OBJECT_ID:
        oid: ObjectId = value
        return bytes(oid)
    if kind is ElementType.JAVASCRIPT_CODE_WITH_SCOPE:
        cws: CodeWithScope = value
        body = write_string(cws.code) + encode_document(cws.scope)
        return write_i32(len(body) + 4) + body
    if kind is ElementType.INT32:
        return write_i32(value)
    if kind is ElementType.INT64:
        return write_i64(value)
    if kind is ElementType.TIMESTAMP:
        ts: Timestamp = value
        return _TIMESTAMP.pack(ts.increment, ts.time)
    if kind is ElementType.BINARY:
        if isinstance(value, Binary):
            return write_binary(value.data, value.subtype)
        return write_binary(bytes(value), BinarySubtype(BinarySubtypeKind.GENERIC))
    if kind is ElementType.DATE_TIME:
        dt: DateTime = value
        return write_i64(dt.millis)
    if kind is ElementType.SYMBOL:
        symbol: Symbol = value
        return write_string(symbol.symbol)
    if kind is ElementType.DECIMAL128:
        decimal: Decimal128 = value
        return decimal.raw
    if kind is ElementType.DB_POINTER:
        pointer: DbPointer = value
        return write_string(pointer.namespace) + bytes(pointer.id)
    # NULL, UNDEFINED, MIN_KEY and MAX_KEY carry no payload.
    return b""


def _element(key: Any, value: Any) -> bytes:
    kind = element_type_of(value)
    return bytes([kind]) + encode_key(key) + _payload(kind, value)


def serialize_bson(key: str, value: Any) -> bytes:
    """One element: type byte, key, and the value's payload."""
    return _element(key, value)