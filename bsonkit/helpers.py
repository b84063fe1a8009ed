"""Conversions between plain Python values and the BSON values used to store them."""

from __future__ import annotations

import math
import re
import sys
import uuid
from datetime import date
from decimal import Decimal
from typing import Any

from .errors import SerializationError
from .oid import ObjectId, ObjectIdError
from .spec import BinarySubtype, BinarySubtypeKind
from .values import Binary, DateTime, Int64, Timestamp

__all__ = [
    "serialize_u32_as_i32",
    "serialize_u32_as_i64",
    "serialize_u64_as_i32",
    "serialize_u64_as_i64",
    "serialize_object_id_as_hex_string",
    "serialize_u32_as_f64",
    "deserialize_u32_from_f64",
    "serialize_u64_as_f64",
    "deserialize_u64_from_f64",
    "serialize_rfc3339_string_as_bson_datetime",
    "deserialize_rfc3339_string_from_bson_datetime",
    "serialize_bson_datetime_as_rfc3339_string",
    "deserialize_bson_datetime_from_rfc3339_string",
    "serialize_hex_string_as_object_id",
    "deserialize_hex_string_from_object_id",
    "serialize_uuid_as_binary",
    "deserialize_uuid_from_binary",
    "serialize_uuid_as_java_legacy_binary",
    "deserialize_uuid_from_java_legacy_binary",
    "serialize_uuid_as_python_legacy_binary",
    "deserialize_uuid_from_python_legacy_binary",
    "serialize_uuid_as_c_sharp_legacy_binary",
    "deserialize_uuid_from_c_sharp_legacy_binary",
    "serialize_u32_as_timestamp",
    "deserialize_u32_from_timestamp",
    "serialize_timestamp_as_u32",
    "deserialize_timestamp_from_u32",
]

_I32_MIN, _I32_MAX = -(1 << 31), (1 << 31) - 1
_I64_MAX = (1 << 63) - 1
_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1
_EPOCH_ORDINAL = date(1970, 1, 1).toordinal()

_UUID_SUBTYPE = BinarySubtype(BinarySubtypeKind.UUID)
_UUID_OLD_SUBTYPE = BinarySubtype(BinarySubtypeKind.UUID_OLD)

_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})[Tt ]([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?(?:([Zz])|([+-])([0-9]{2}):([0-9]{2}))"
)


def _unsigned(val: Any, bits: int) -> int:
    if isinstance(val, bool) or not isinstance(val, int):
        raise TypeError(f"expected an unsigned integer, got {type(val).__name__}")
    if not 0 <= val < (1 << bits):
        raise ValueError(f"value out of range for u{bits}: {val}")
    return int(val)


def _float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a double, got {type(value).__name__}")
    return float(value)


def _format_f64(f: float) -> str:
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "inf" if f > 0 else "-inf"
    if f.is_integer():
        return str(int(f))
    return format(Decimal(repr(f)), "f")


def _saturating_cast(f: float, maximum: int) -> int:
    """Truncate toward zero, clamping to [0, maximum]; NaN becomes 0."""
    if math.isnan(f) or f <= 0:
        return 0
    if f >= maximum:
        return maximum
    return int(f)


def _exact_unsigned_from_f64(value: Any, maximum: int, name: str) -> int:
    f = _float(value)
    n = _saturating_cast(f, maximum)
    if abs(f - float(n)) <= sys.float_info.epsilon:
        return n
    raise ValueError(f"cannot convert f64 (BSON double) {_format_f64(f)} to {name}")


def _parse_rfc3339(text: str) -> DateTime | None:
    match = _RFC3339.fullmatch(text)
    if match is None:
        return None
    year, month, day, hour, minute, second = (int(g) for g in match.group(1, 2, 3, 4, 5, 6))
    fraction = match.group(7) or ""
    try:
        days = date(year, month, day).toordinal() - _EPOCH_ORDINAL
    except ValueError:
        return None
    if hour > 23 or minute > 59 or second > 60:
        return None
    offset = 0
    if match.group(8) is None:
        off_hour, off_minute = int(match.group(10)), int(match.group(11))
        if off_hour > 23 or off_minute > 59:
            return None
        offset = off_hour * 3600 + off_minute * 60
        if match.group(9) == "-":
            offset = -offset
    seconds = days * 86400 + hour * 3600 + minute * 60 + second - offset
    millis = seconds * 1000 + int((fraction + "000")[:3])
    try:
        return DateTime.from_millis(millis)
    except ValueError:
        return None


def serialize_u32_as_i32(val: int) -> int:
    """A u32 as a 32-bit integer; fails if it does not fit."""
    val = _unsigned(val, 32)
    if val > _I32_MAX:
        raise SerializationError(f"cannot convert {val} to i32")
    return val


def serialize_u32_as_i64(val: int) -> Int64:
    """A u32 as a 64-bit integer."""
    return Int64(_unsigned(val, 32))


def serialize_u64_as_i32(val: int) -> int:
    """A u64 as a 32-bit integer; fails if it does not fit."""
    val = _unsigned(val, 64)
    if val > _I32_MAX:
        raise SerializationError(f"cannot convert {val} to i32")
    return val


def serialize_u64_as_i64(val: int) -> Int64:
    """A u64 as a 64-bit integer; fails if it does not fit."""
    val = _unsigned(val, 64)
    if val > _I64_MAX:
        raise SerializationError(f"cannot convert {val} to i64")
    return Int64(val)


def serialize_object_id_as_hex_string(val: ObjectId) -> str:
    """An ObjectId as its hex string."""
    return val.to_hex()


def serialize_u32_as_f64(val: int) -> float:
    """A u32 as a double."""
    return float(_unsigned(val, 32))


def deserialize_u32_from_f64(value: float) -> int:
    """A u32 from a double; fails unless the conversion is exact."""
    return _exact_unsigned_from_f64(value, _U32_MAX, "u32")


def serialize_u64_as_f64(val: int) -> float:
    """A u64 as a double; fails unless the conversion is exact."""
    val = _unsigned(val, 64)
    if val < _U64_MAX and val == int(float(val)):
        return float(val)
    raise SerializationError(f"cannot convert u64 {val} to f64 (BSON double)")


def deserialize_u64_from_f64(value: float) -> int:
    """A u64 from a double; fails unless the conversion is exact."""
    return _exact_unsigned_from_f64(value, _U64_MAX, "u64")


def serialize_rfc3339_string_as_bson_datetime(val: str) -> DateTime:
    """An RFC 3339 string as a BSON datetime."""
    parsed = _parse_rfc3339(val)
    if parsed is None:
        raise SerializationError(f"cannot convert {val} to a datetime")
    return parsed


def deserialize_rfc3339_string_from_bson_datetime(value: DateTime) -> str:
    """An RFC 3339 string from a BSON datetime."""
    if not isinstance(value, DateTime):
        raise TypeError(f"expected a DateTime, got {type(value).__name__}")
    return value.to_rfc3339()


def serialize_bson_datetime_as_rfc3339_string(val: DateTime) -> str:
    """A BSON datetime as an RFC 3339 string."""
    return val.to_rfc3339()


def deserialize_bson_datetime_from_rfc3339_string(value: str) -> DateTime:
    """A BSON datetime from an RFC 3339 string."""
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    parsed = _parse_rfc3339(value)
    if parsed is None:
        raise ValueError(f'cannot parse RFC 3339 datetime from "{value}"')
    return parsed


def serialize_hex_string_as_object_id(val: str) -> ObjectId:
    """A hex string as an ObjectId."""
    try:
        return ObjectId.parse_str(val)
    except ObjectIdError as exc:
        raise SerializationError(f"cannot convert {val} to ObjectId") from exc


def deserialize_hex_string_from_object_id(value: ObjectId) -> str:
    """A hex string from an ObjectId."""
    if not isinstance(value, ObjectId):
        raise TypeError(f"expected an ObjectId, got {type(value).__name__}")
    return value.to_hex()


def serialize_uuid_as_binary(val: uuid.UUID) -> Binary:
    """A UUID as binary of the UUID subtype."""
    return Binary(_UUID_SUBTYPE, val.bytes)


def deserialize_uuid_from_binary(value: Binary) -> uuid.UUID:
    """A UUID from binary of the UUID subtype."""
    if value.subtype != _UUID_SUBTYPE:
        raise ValueError("cannot convert Binary to Uuid: incorrect binary subtype")
    if len(value.data) != 16:
        raise ValueError("cannot convert Binary to Uuid: incorrect bytes length")
    return uuid.UUID(bytes=value.data)


def _legacy_bytes(value: Binary) -> bytes:
    if value.subtype != _UUID_OLD_SUBTYPE:
        raise ValueError("expecting UuidOld binary subtype")
    if len(value.data) != 16:
        raise ValueError("expecting 16 bytes")
    return value.data


def _swap_java_halves(raw: bytes) -> bytes:
    return raw[:8][::-1] + raw[8:][::-1]


def serialize_uuid_as_java_legacy_binary(val: uuid.UUID) -> Binary:
    """A UUID in the legacy Java byte order."""
    return Binary(_UUID_OLD_SUBTYPE, _swap_java_halves(val.bytes))


def deserialize_uuid_from_java_legacy_binary(value: Binary) -> uuid.UUID:
    """A UUID from the legacy Java byte order."""
    return uuid.UUID(bytes=_swap_java_halves(_legacy_bytes(value)))


def serialize_uuid_as_python_legacy_binary(val: uuid.UUID) -> Binary:
    """A UUID in the legacy Python layout (plain bytes, old subtype)."""
    return Binary(_UUID_OLD_SUBTYPE, val.bytes)


def deserialize_uuid_from_python_legacy_binary(value: Binary) -> uuid.UUID:
    """A UUID from the legacy Python layout."""
    return uuid.UUID(bytes=_legacy_bytes(value))


def serialize_uuid_as_c_sharp_legacy_binary(val: uuid.UUID) -> Binary:
    """A UUID in the legacy C# byte order (first three fields little-endian)."""
    return Binary(_UUID_OLD_SUBTYPE, val.bytes_le)


def deserialize_uuid_from_c_sharp_legacy_binary(value: Binary) -> uuid.UUID:
    """A UUID from the legacy C# byte order."""
    return uuid.UUID(bytes_le=_legacy_bytes(value))


def serialize_u32_as_timestamp(val: int) -> Timestamp:
    """Seconds since the epoch as a timestamp with a zero increment."""
    return Timestamp(_unsigned(val, 32), 0)


def deserialize_u32_from_timestamp(value: Timestamp) -> int:
    """The seconds of a timestamp."""
    if not isinstance(value, Timestamp):
        raise TypeError(f"expected a Timestamp, got {type(value).__name__}")
    return value.time


def serialize_timestamp_as_u32(val: Timestamp) -> int:
    """A timestamp as its seconds; fails if the increment is not zero."""
    if val.increment != 0:
        raise SerializationError("Cannot convert Timestamp with a non-zero increment to u32")
    return val.time


def deserialize_timestamp_from_u32(value: int) -> Timestamp:
    """A timestamp with a zero increment from seconds since the epoch."""
    return Timestamp(_unsigned(value, 32), 0)