"""Encoding of extended-JSON value bodies (``{"$oid": ...}`` and the like) to raw BSON payloads."""

from __future__ import annotations

import base64
import binascii
import re
import struct
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .errors import SerializationError
from .oid import ObjectId, ObjectIdError
from .spec import BinarySubtype, ElementType
from .wire import encode_document, write_binary, write_cstring, write_i32, write_i64, write_string

__all__ = ["ValueType", "value_type_for", "encode_extended"]

_I64_MIN, _I64_MAX = -(1 << 63), (1 << 63) - 1
_U32_MAX = (1 << 32) - 1
_U32_PAIR = struct.Struct("<II")
_DECIMAL_INTEGER = re.compile(r"[+-]?[0-9]+")
_HEX_CHARS = frozenset("0123456789abcdefABCDEF")


class ValueType(Enum):
    """BSON types whose extended form is a struct named after its marker key."""

    DATE_TIME = "$date"
    BINARY = "$binary"
    OBJECT_ID = "$oid"
    SYMBOL = "$symbol"
    REGULAR_EXPRESSION = "$regularExpression"
    TIMESTAMP = "$timestamp"
    DB_POINTER = "$dbPointer"
    JAVASCRIPT_CODE = "$code"
    JAVASCRIPT_CODE_WITH_SCOPE = "$codeWithScope"
    MIN_KEY = "$minKey"
    MAX_KEY = "$maxKey"
    DECIMAL128 = "$numberDecimal"
    UNDEFINED = "$undefined"

    def element_type(self) -> ElementType:
        """The element type written for a value of this kind."""
        return _ELEMENT_TYPES[self]


_ELEMENT_TYPES: dict[ValueType, ElementType] = {
    ValueType.BINARY: ElementType.BINARY,
    ValueType.DATE_TIME: ElementType.DATE_TIME,
    ValueType.DB_POINTER: ElementType.DB_POINTER,
    ValueType.DECIMAL128: ElementType.DECIMAL128,
    ValueType.SYMBOL: ElementType.SYMBOL,
    ValueType.REGULAR_EXPRESSION: ElementType.REGULAR_EXPRESSION,
    ValueType.TIMESTAMP: ElementType.TIMESTAMP,
    ValueType.JAVASCRIPT_CODE: ElementType.JAVASCRIPT_CODE,
    ValueType.JAVASCRIPT_CODE_WITH_SCOPE: ElementType.JAVASCRIPT_CODE_WITH_SCOPE,
    ValueType.MAX_KEY: ElementType.MAX_KEY,
    ValueType.MIN_KEY: ElementType.MIN_KEY,
    ValueType.UNDEFINED: ElementType.UNDEFINED,
    ValueType.OBJECT_ID: ElementType.OBJECT_ID,
}


def value_type_for(name: str) -> ValueType | None:
    """Return the value type whose struct carries this name, or None for a plain document."""
    try:
        return ValueType(name)
    except ValueError:
        return None


class _Step(Enum):
    OID = "Oid"
    DATE_TIME = "DateTime"
    DATE_TIME_NUMBER_LONG = "DateTimeNumberLong"
    BINARY = "Binary"
    BINARY_BASE64 = "BinaryBase64"
    BINARY_SUB_TYPE = "BinarySubType"
    SYMBOL = "Symbol"
    REGEX = "RegEx"
    REGEX_PATTERN = "RegExPattern"
    REGEX_OPTIONS = "RegExOptions"
    TIMESTAMP = "Timestamp"
    TIMESTAMP_TIME = "TimestampTime"
    TIMESTAMP_INCREMENT = "TimestampIncrement"
    DB_POINTER = "DbPointer"
    DB_POINTER_REF = "DbPointerRef"
    DB_POINTER_ID = "DbPointerId"
    CODE = "Code"
    CODE_WITH_SCOPE_CODE = "CodeWithScopeCode"
    CODE_WITH_SCOPE_SCOPE = "CodeWithScopeScope"
    MIN_KEY = "MinKey"
    MAX_KEY = "MaxKey"
    UNDEFINED = "Undefined"
    DECIMAL128 = "Decimal128"
    DECIMAL128_VALUE = "Decimal128Value"
    DONE = "Done"


_INITIAL_STEP: dict[ValueType, _Step] = {
    ValueType.DATE_TIME: _Step.DATE_TIME,
    ValueType.BINARY: _Step.BINARY,
    ValueType.OBJECT_ID: _Step.OID,
    ValueType.SYMBOL: _Step.SYMBOL,
    ValueType.REGULAR_EXPRESSION: _Step.REGEX,
    ValueType.TIMESTAMP: _Step.TIMESTAMP,
    ValueType.DB_POINTER: _Step.DB_POINTER,
    ValueType.JAVASCRIPT_CODE: _Step.CODE,
    ValueType.JAVASCRIPT_CODE_WITH_SCOPE: _Step.CODE_WITH_SCOPE_CODE,
    ValueType.MIN_KEY: _Step.MIN_KEY,
    ValueType.MAX_KEY: _Step.MAX_KEY,
    ValueType.DECIMAL128: _Step.DECIMAL128,
    ValueType.UNDEFINED: _Step.UNDEFINED,
}

# Steps that carry a value from an earlier field, with the name shown in messages.
_HELD_FIELD = {
    _Step.BINARY_SUB_TYPE: "base64",
    _Step.TIMESTAMP_INCREMENT: "time",
    _Step.CODE_WITH_SCOPE_SCOPE: "code",
}


def _to_u32(value: int) -> int:
    if not 0 <= value <= _U32_MAX:
        raise SerializationError("out of range integral type conversion attempted")
    return value


def _parse_i64(text: str) -> int:
    if not _DECIMAL_INTEGER.fullmatch(text):
        raise SerializationError("invalid digit found in string")
    number = int(text)
    if not _I64_MIN <= number <= _I64_MAX:
        raise SerializationError("number too large to fit in target type")
    return number


def _decode_hex(text: str) -> bytes:
    for index, char in enumerate(text):
        if char not in _HEX_CHARS:
            raise SerializationError(f"Invalid character {char!r} at position {index}")
    if len(text) % 2:
        raise SerializationError("Odd number of digits")
    return bytes.fromhex(text)


def _decode_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SerializationError(f"invalid base64: {exc}") from exc


class _ValueWriter:
    """Walks an extended body field by field, writing the raw payload as it goes."""

    def __init__(self, value_type: ValueType) -> None:
        self._step = _INITIAL_STEP[value_type]
        self._held: Any = None
        self._out = bytearray()

    def payload(self) -> bytes:
        return bytes(self._out)

    def _describe(self) -> str:
        field_name = _HELD_FIELD.get(self._step)
        if field_name is None:
            return self._step.value
        held = f'"{self._held}"' if isinstance(self._held, str) else str(self._held)
        return f"{self._step.value} {{ {field_name}: {held} }}"

    def _invalid(self, primitive: str) -> SerializationError:
        return SerializationError(f"cannot serialize {primitive} at step {self._describe()}")

    def write_struct(self, body: Mapping[Any, Any]) -> None:
        for key, value in body.items():
            self._field(key, value)

    def _field(self, key: Any, value: Any) -> None:
        match (self._step, key):
            case (_Step.DATE_TIME, "$date"):
                self._step = _Step.DATE_TIME_NUMBER_LONG
                self._value(value)
            case (_Step.DATE_TIME_NUMBER_LONG, "$numberLong"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.OID, "$oid"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.BINARY, "$binary"):
                self._step = _Step.BINARY_BASE64
                self._value(value)
            case (_Step.BINARY_BASE64, "base64"):
                self._value(value)
            case (_Step.BINARY_SUB_TYPE, "subType"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.SYMBOL, "$symbol"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.REGEX, "$regularExpression"):
                self._step = _Step.REGEX_PATTERN
                self._value(value)
            case (_Step.REGEX_PATTERN, "pattern"):
                self._value(value)
                self._step = _Step.REGEX_OPTIONS
            case (_Step.REGEX_OPTIONS, "options"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.TIMESTAMP, "$timestamp"):
                self._step = _Step.TIMESTAMP_TIME
                self._value(value)
            case (_Step.TIMESTAMP_TIME, "t"):
                self._value(value)
            case (_Step.TIMESTAMP_INCREMENT, "i"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.DB_POINTER, "$dbPointer"):
                self._step = _Step.DB_POINTER_REF
                self._value(value)
            case (_Step.DB_POINTER_REF, "$ref"):
                self._value(value)
                self._step = _Step.DB_POINTER_ID
            case (_Step.DB_POINTER_ID, "$id"):
                self._step = _Step.OID
                self._value(value)
            case (_Step.CODE, "$code"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.CODE_WITH_SCOPE_CODE, "$code"):
                self._value(value)
            case (_Step.CODE_WITH_SCOPE_SCOPE, "$scope"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.MIN_KEY, "$minKey") | (_Step.MAX_KEY, "$maxKey") | (
                _Step.UNDEFINED,
                "$undefined",
            ):
                self._step = _Step.DONE
            case (_Step.DECIMAL128, "$numberDecimal" | "$numberDecimalBytes"):
                self._step = _Step.DECIMAL128_VALUE
                self._value(value)
            case (_Step.DECIMAL128_VALUE, "$numberDecimal"):
                self._value(value)
                self._step = _Step.DONE
            case (_Step.DONE, _):
                raise SerializationError(
                    f'expected to end serialization of type, got extra key "{key}"'
                )
            case _:
                raise SerializationError(
                    f'mismatched serialization step and next key: {self._describe()} + "{key}"'
                )

    def _value(self, value: Any) -> None:
        if isinstance(value, Mapping):
            if self._step is _Step.CODE_WITH_SCOPE_SCOPE:
                self._scope(value)
            else:
                self.write_struct(value)
        elif isinstance(value, str):
            self._str(value)
        elif isinstance(value, bool):
            raise self._invalid("bool")
        elif isinstance(value, int):
            self._i64(int(value))
        elif isinstance(value, (bytes, bytearray, memoryview)):
            self._bytes(bytes(value))
        elif isinstance(value, float):
            raise self._invalid("f64")
        elif value is None:
            raise self._invalid("none")
        elif isinstance(value, (list, tuple)):
            raise self._invalid("seq")
        else:
            raise self._invalid(type(value).__name__)

    def _i64(self, value: int) -> None:
        if not _I64_MIN <= value <= _I64_MAX:
            raise self._invalid("u64")
        if self._step is _Step.TIMESTAMP_TIME:
            self._step = _Step.TIMESTAMP_INCREMENT
            self._held = value
        elif self._step is _Step.TIMESTAMP_INCREMENT:
            time = _to_u32(self._held)
            increment = _to_u32(value)
            self._out += _U32_PAIR.pack(increment, time)
        else:
            raise self._invalid("i64")

    def _bytes(self, value: bytes) -> None:
        if self._step is not _Step.DECIMAL128_VALUE:
            raise self._invalid("&[u8]")
        self._out += value

    def _str(self, value: str) -> None:
        step = self._step
        if step is _Step.DATE_TIME_NUMBER_LONG:
            self._out += write_i64(_parse_i64(value))
        elif step is _Step.OID:
            try:
                oid = ObjectId.parse_str(value)
            except ObjectIdError as exc:
                raise SerializationError(str(exc)) from exc
            self._out += bytes(oid)
        elif step is _Step.BINARY_BASE64:
            self._step = _Step.BINARY_SUB_TYPE
            self._held = value
        elif step is _Step.BINARY_SUB_TYPE:
            subtype_bytes = _decode_hex(value)
            if not subtype_bytes:
                raise SerializationError("binary subtype is empty")
            subtype = BinarySubtype.from_byte(subtype_bytes[0])
            data = _decode_base64(self._held)
            self._out += write_binary(data, subtype)
        elif step in (_Step.SYMBOL, _Step.DB_POINTER_REF, _Step.CODE):
            self._out += write_string(value)
        elif step in (_Step.REGEX_PATTERN, _Step.REGEX_OPTIONS):
            self._out += write_cstring(value)
        elif step is _Step.CODE_WITH_SCOPE_CODE:
            self._step = _Step.CODE_WITH_SCOPE_SCOPE
            self._held = value
        else:
            raise SerializationError(f"can't serialize string for step {self._describe()}")

    def _scope(self, scope: Mapping[Any, Any]) -> None:
        body = write_string(self._held) + encode_document(scope)
        self._out += write_i32(len(body) + 4) + body


def encode_extended(value_type: ValueType, body: Mapping[Any, Any]) -> bytes:
    """Write the raw payload of a value given in its extended struct form."""
    if not isinstance(body, Mapping):
        raise SerializationError(
            f"cannot serialize {type(body).__name__} as {value_type.value}"
        )
    writer = _ValueWriter(value_type)
    writer.write_struct(body)
    return writer.payload()