"""BSON value types and the conversion of Python values into BSON values."""

from __future__ import annotations

import base64
import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from .errors import (
    InvalidDocumentKeyError,
    SerializationError,
    UnsupportedUnsignedIntegerError,
)
from .oid import ObjectId
from .spec import BinarySubtype, BinarySubtypeKind, ElementType

__all__ = [
    "Int64",
    "DateTime",
    "Binary",
    "Regex",
    "Timestamp",
    "DbPointer",
    "Code",
    "CodeWithScope",
    "Symbol",
    "Decimal128",
    "MinKey",
    "MaxKey",
    "Undefined",
    "element_type_of",
    "to_bson",
    "to_document",
]

_I32_MIN, _I32_MAX = -(1 << 31), (1 << 31) - 1
_I64_MIN, _I64_MAX = -(1 << 63), (1 << 63) - 1
_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class Int64(int):
    """An integer that is stored as a 64-bit BSON integer."""

    def __new__(cls, value: int = 0) -> Int64:
        number = int(value)
        if not _I64_MIN <= number <= _I64_MAX:
            raise ValueError(f"value out of range for a 64-bit integer: {number}")
        return super().__new__(cls, number)

    def __repr__(self) -> str:
        return f"Int64({int(self)})"


@dataclass(frozen=True, order=True)
class DateTime:
    """A UTC datetime with millisecond precision, stored as milliseconds since the epoch."""

    millis: int

    def __post_init__(self) -> None:
        if not _I64_MIN <= self.millis <= _I64_MAX:
            raise ValueError(f"milliseconds out of range: {self.millis}")

    @classmethod
    def from_millis(cls, millis: int) -> DateTime:
        return cls(int(millis))

    @classmethod
    def from_datetime(cls, value: datetime) -> DateTime:
        """Convert a datetime; a naive one is taken to be in UTC. Sub-millisecond parts are floored."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return cls((value - _EPOCH) // _ONE_MS)

    def to_datetime(self) -> datetime:
        """Return an aware UTC datetime; raises OverflowError outside the datetime range."""
        return _EPOCH + timedelta(milliseconds=self.millis)

    def to_rfc3339(self) -> str:
        dt = self.to_datetime()
        text = (
            f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
            f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
        )
        millis = dt.microsecond // 1000
        if millis:
            text += f".{millis:03d}"
        return text + "+00:00"

    def to_extended(self) -> dict[str, Any]:
        return {"$date": {"$numberLong": str(self.millis)}}


@dataclass(frozen=True)
class Binary:
    """Binary data with its subtype."""

    subtype: BinarySubtype
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    def to_extended(self) -> bytes | dict[str, Any]:
        """Generic binary is returned as plain bytes; other subtypes as a ``$binary`` body."""
        if self.subtype.kind is BinarySubtypeKind.GENERIC:
            return self.data
        return {
            "$binary": {
                "base64": base64.b64encode(self.data).decode("ascii"),
                "subType": f"{int(self.subtype):02x}",
            }
        }


@dataclass(frozen=True)
class Regex:
    """A regular expression pattern with its option characters."""

    pattern: str
    options: str = ""

    def to_extended(self) -> dict[str, Any]:
        return {"$regularExpression": {"pattern": self.pattern, "options": self.options}}


@dataclass(frozen=True, order=True)
class Timestamp:
    """An internal BSON timestamp: seconds and an ordinal within that second."""

    time: int
    increment: int

    def __post_init__(self) -> None:
        for name in ("time", "increment"):
            value = getattr(self, name)
            if not 0 <= value <= _U32_MAX:
                raise ValueError(f"timestamp {name} out of range for u32: {value}")

    def to_extended(self) -> dict[str, Any]:
        return {"$timestamp": {"t": self.time, "i": self.increment}}


@dataclass(frozen=True)
class DbPointer:
    """A deprecated reference to a document in a namespace."""

    namespace: str
    id: ObjectId

    def to_extended(self) -> dict[str, Any]:
        return {"$dbPointer": {"$ref": self.namespace, "$id": {"$oid": self.id.to_hex()}}}


@dataclass(frozen=True)
class Code:
    """JavaScript code."""

    code: str

    def to_extended(self) -> dict[str, Any]:
        return {"$code": self.code}


@dataclass
class CodeWithScope:
    """JavaScript code together with a scope document."""

    code: str
    scope: dict[str, Any] = field(default_factory=dict)

    def to_extended(self) -> dict[str, Any]:
        return {"$code": self.code, "$scope": self.scope}


@dataclass(frozen=True)
class Symbol:
    """A deprecated symbol value."""

    symbol: str

    def to_extended(self) -> dict[str, Any]:
        return {"$symbol": self.symbol}


@dataclass(frozen=True)
class Decimal128:
    """A 128-bit decimal held as its 16 raw little-endian bytes."""

    raw: bytes

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) != 16:
            raise ValueError(f"Decimal128 needs exactly 16 bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    def to_extended(self) -> dict[str, Any]:
        return {"$numberDecimalBytes": self.raw}


@dataclass(frozen=True)
class MinKey:
    """The value that compares lower than every other."""

    def to_extended(self) -> dict[str, Any]:
        return {"$minKey": 1}


@dataclass(frozen=True)
class MaxKey:
    """The value that compares higher than every other."""

    def to_extended(self) -> dict[str, Any]:
        return {"$maxKey": 1}


@dataclass(frozen=True)
class Undefined:
    """The deprecated undefined value."""

    def to_extended(self) -> dict[str, Any]:
        return {"$undefined": True}


_VALUE_TYPES: dict[type, ElementType] = {
    ObjectId: ElementType.OBJECT_ID,
    DateTime: ElementType.DATE_TIME,
    Binary: ElementType.BINARY,
    Regex: ElementType.REGULAR_EXPRESSION,
    Timestamp: ElementType.TIMESTAMP,
    DbPointer: ElementType.DB_POINTER,
    Code: ElementType.JAVASCRIPT_CODE,
    CodeWithScope: ElementType.JAVASCRIPT_CODE_WITH_SCOPE,
    Symbol: ElementType.SYMBOL,
    Decimal128: ElementType.DECIMAL128,
    MinKey: ElementType.MIN_KEY,
    MaxKey: ElementType.MAX_KEY,
    Undefined: ElementType.UNDEFINED,
}


def element_type_of(value: Any) -> ElementType:
    """Return the BSON element type of a BSON value."""
    for kind, element in _VALUE_TYPES.items():
        if isinstance(value, kind):
            return element
    if value is None:
        return ElementType.NULL
    if isinstance(value, bool):
        return ElementType.BOOLEAN
    if isinstance(value, Int64):
        return ElementType.INT64
    if isinstance(value, int):
        if _I32_MIN <= value <= _I32_MAX:
            return ElementType.INT32
        if _I64_MIN <= value <= _I64_MAX:
            return ElementType.INT64
        raise SerializationError(f"integer {value} does not fit in a BSON integer")
    if isinstance(value, float):
        return ElementType.DOUBLE
    if isinstance(value, str):
        return ElementType.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ElementType.BINARY
    if isinstance(value, (list, tuple)):
        return ElementType.ARRAY
    if isinstance(value, Mapping):
        return ElementType.EMBEDDED_DOCUMENT
    raise TypeError(f"not a BSON value: {type(value).__name__}")


def _convert_int(value: int) -> int:
    if _I32_MIN <= value <= _I32_MAX:
        return value
    if _I64_MIN <= value <= _I64_MAX:
        return Int64(value)
    if _I64_MAX < value <= _U64_MAX:
        raise UnsupportedUnsignedIntegerError(value)
    raise SerializationError(f"integer {value} does not fit in a BSON integer")


def _convert_mapping(items: Any) -> dict[str, Any]:
    document: dict[str, Any] = {}
    for key, item in items:
        converted_key = to_bson(key)
        if not isinstance(converted_key, str):
            raise InvalidDocumentKeyError(converted_key)
        document[converted_key] = to_bson(item)
    return document


def to_bson(value: Any) -> Any:
    """Convert a Python value into its BSON value."""
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, tuple(_VALUE_TYPES)) or isinstance(value, Int64):
        return value
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, int):
        return _convert_int(int(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Binary(BinarySubtype(BinarySubtypeKind.GENERIC), bytes(value))
    if isinstance(value, Mapping):
        return _convert_mapping(value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_bson(item) for item in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _convert_mapping(
            (f.name, getattr(value, f.name)) for f in dataclasses.fields(value)
        )
    raise SerializationError(f"cannot serialize value of type {type(value).__name__}")


def to_document(value: Any) -> dict[str, Any]:
    """Convert a Python value into a BSON document, failing if it is not one."""
    converted = to_bson(value)
    if isinstance(converted, dict):
        return converted
    raise SerializationError(
        f"Could not be serialized to Document, got {element_type_of(converted).name} instead"
    )