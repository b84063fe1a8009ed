"""Direct encoding of Python values into raw BSON document bytes."""

from __future__ import annotations

import dataclasses
import struct
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .errors import SerializationError, UnsupportedUnsignedIntegerError
from .extended import ValueType, encode_extended
from .oid import ObjectId
from .spec import BinarySubtype, BinarySubtypeKind, ElementType
from .values import (
    Binary,
    Code,
    CodeWithScope,
    DateTime,
    DbPointer,
    Decimal128,
    Int64,
    MaxKey,
    MinKey,
    Regex,
    Symbol,
    Timestamp,
    Undefined,
    element_type_of,
    to_bson,
)
from .wire import encode_key, write_binary, write_f64, write_i32, write_i64, write_string

__all__ = ["Encoder", "to_vec"]

_I32_MIN, _I32_MAX = -(1 << 31), (1 << 31) - 1
_I64_MIN, _I64_MAX = -(1 << 63), (1 << 63) - 1
_U64_MAX = (1 << 64) - 1
_LENGTH = struct.Struct("<i")
_GENERIC = BinarySubtype(BinarySubtypeKind.GENERIC)

_EXTENDED_TYPES: dict[type, ValueType] = {
    DateTime: ValueType.DATE_TIME,
    Binary: ValueType.BINARY,
    Regex: ValueType.REGULAR_EXPRESSION,
    Timestamp: ValueType.TIMESTAMP,
    DbPointer: ValueType.DB_POINTER,
    Code: ValueType.JAVASCRIPT_CODE,
    CodeWithScope: ValueType.JAVASCRIPT_CODE_WITH_SCOPE,
    Symbol: ValueType.SYMBOL,
    Decimal128: ValueType.DECIMAL128,
    MinKey: ValueType.MIN_KEY,
    MaxKey: ValueType.MAX_KEY,
    Undefined: ValueType.UNDEFINED,
}


def _is_struct(value: Any) -> bool:
    """A dataclass instance that is not one of the BSON value types."""
    return (
        dataclasses.is_dataclass(value)
        and not isinstance(value, type)
        and not isinstance(value, tuple(_EXTENDED_TYPES))
    )


def _struct_items(value: Any) -> list[tuple[str, Any]]:
    return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]


class Encoder:
    """Accumulates top-level BSON documents as raw bytes."""

    def __init__(self) -> None:
        self._out = bytearray()

    def getvalue(self) -> bytes:
        """The bytes of every document encoded so far."""
        return bytes(self._out)

    def encode(self, value: Any) -> None:
        """Append one top-level document; on failure nothing is appended."""
        if isinstance(value, Mapping):
            items = list(value.items())
        elif _is_struct(value):
            items = _struct_items(value)
        else:
            kind = element_type_of(to_bson(value))
            raise SerializationError(
                f"attempted to encode a non-document type at the top level: {kind.name}"
            )
        start = len(self._out)
        try:
            self._document(items)
        except BaseException:
            del self._out[start:]
            raise

    def _document(self, items: Any) -> None:
        start = len(self._out)
        self._out += b"\x00\x00\x00\x00"
        for key, item in items:
            self._element(key, item)
        self._out.append(0)
        _LENGTH.pack_into(self._out, start, len(self._out) - start)

    def _element(self, key: Any, value: Any) -> None:
        # The type byte precedes the key but is known only once the value is written.
        type_index = len(self._out)
        self._out.append(0)
        self._out += encode_key(key)
        self._out[type_index] = self._value(value)

    def _value(self, value: Any) -> ElementType:
        if value is None:
            return ElementType.NULL
        if isinstance(value, bool):
            self._out.append(1 if value else 0)
            return ElementType.BOOLEAN
        if isinstance(value, Enum):
            self._out += write_string(value.name)
            return ElementType.STRING
        if isinstance(value, ObjectId):
            return self._extended(ValueType.OBJECT_ID, {"$oid": value.to_hex()})
        if isinstance(value, Binary) and value.subtype.kind is BinarySubtypeKind.GENERIC:
            self._out += write_binary(value.data, _GENERIC)
            return ElementType.BINARY
        if isinstance(value, CodeWithScope):
            body = {"$code": value.code, "$scope": to_bson(value.scope)}
            return self._extended(ValueType.JAVASCRIPT_CODE_WITH_SCOPE, body)
        for kind, value_type in _EXTENDED_TYPES.items():
            if isinstance(value, kind):
                return self._extended(value_type, value.to_extended())
        if isinstance(value, Int64):
            self._out += write_i64(int(value))
            return ElementType.INT64
        if isinstance(value, int):
            return self._int(int(value))
        if isinstance(value, float):
            self._out += write_f64(value)
            return ElementType.DOUBLE
        if isinstance(value, str):
            self._out += write_string(value)
            return ElementType.STRING
        if isinstance(value, (bytes, bytearray, memoryview)):
            self._out += write_binary(bytes(value), _GENERIC)
            return ElementType.BINARY
        if isinstance(value, Mapping):
            self._document(value.items())
            return ElementType.EMBEDDED_DOCUMENT
        if isinstance(value, (list, tuple, set, frozenset)):
            self._document((str(index), item) for index, item in enumerate(value))
            return ElementType.ARRAY
        if _is_struct(value):
            self._document(_struct_items(value))
            return ElementType.EMBEDDED_DOCUMENT
        raise SerializationError(f"cannot serialize value of type {type(value).__name__}")

    def _int(self, value: int) -> ElementType:
        if _I32_MIN <= value <= _I32_MAX:
            self._out += write_i32(value)
            return ElementType.INT32
        if _I64_MIN <= value <= _I64_MAX:
            self._out += write_i64(value)
            return ElementType.INT64
        if _I64_MAX < value <= _U64_MAX:
            raise UnsupportedUnsignedIntegerError(value)
        raise SerializationError(f"integer {value} does not fit in a BSON integer")

    def _extended(self, value_type: ValueType, body: Mapping[str, Any]) -> ElementType:
        self._out += encode_extended(value_type, body)
        return value_type.element_type()


def to_vec(value: Any) -> bytes:
    """Encode a document-like value into BSON bytes."""
    encoder = Encoder()
    encoder.encode(value)
    return encoder.getvalue()