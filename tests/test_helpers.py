import math
import uuid
from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bsonkit.errors import SerializationError
from bsonkit.helpers import (
    deserialize_bson_datetime_from_rfc3339_string,
    deserialize_hex_string_from_object_id,
    deserialize_rfc3339_string_from_bson_datetime,
    deserialize_timestamp_from_u32,
    deserialize_u32_from_f64,
    deserialize_u32_from_timestamp,
    deserialize_u64_from_f64,
    deserialize_uuid_from_binary,
    deserialize_uuid_from_c_sharp_legacy_binary,
    deserialize_uuid_from_java_legacy_binary,
    deserialize_uuid_from_python_legacy_binary,
    serialize_bson_datetime_as_rfc3339_string,
    serialize_hex_string_as_object_id,
    serialize_object_id_as_hex_string,
    serialize_rfc3339_string_as_bson_datetime,
    serialize_timestamp_as_u32,
    serialize_u32_as_f64,
    serialize_u32_as_i32,
    serialize_u32_as_i64,
    serialize_u32_as_timestamp,
    serialize_u64_as_f64,
    serialize_u64_as_i32,
    serialize_u64_as_i64,
    serialize_uuid_as_binary,
    serialize_uuid_as_c_sharp_legacy_binary,
    serialize_uuid_as_java_legacy_binary,
    serialize_uuid_as_python_legacy_binary,
)
from bsonkit.oid import ObjectId
from bsonkit.spec import BinarySubtype, BinarySubtypeKind, ElementType
from bsonkit.values import Binary, DateTime, Int64, Timestamp, element_type_of

SAMPLE_UUID = uuid.UUID("00112233-4455-6677-8899-aabbccddeeff")
U32_MAX = 0xFFFF_FFFF
U64_MAX = (1 << 64) - 1


def test_u32_as_i32_fits():
    assert serialize_u32_as_i32(2**31 - 1) == 2**31 - 1


def test_u32_as_i32_too_large():
    with pytest.raises(SerializationError, match="cannot convert 2147483648 to i32"):
        serialize_u32_as_i32(2**31)


def test_u32_as_i64_is_int64():
    result = serialize_u32_as_i64(U32_MAX)
    assert result == U32_MAX
    assert element_type_of(result) is ElementType.INT64


def test_u64_as_i32():
    assert serialize_u64_as_i32(7) == 7
    with pytest.raises(SerializationError):
        serialize_u64_as_i32(2**40)


def test_u64_as_i64():
    assert serialize_u64_as_i64(2**63 - 1) == Int64(2**63 - 1)
    with pytest.raises(SerializationError, match="to i64"):
        serialize_u64_as_i64(2**63)


def test_unsigned_rejects_negative():
    with pytest.raises(ValueError):
        serialize_u32_as_i64(-1)


def test_object_id_as_hex_string():
    oid = ObjectId.parse_str("53e37d08776f724e42000000")
    assert serialize_object_id_as_hex_string(oid) == "53e37d08776f724e42000000"


@given(st.integers(min_value=0, max_value=U32_MAX))
def test_u32_f64_round_trip(n):
    assert deserialize_u32_from_f64(serialize_u32_as_f64(n)) == n


@pytest.mark.parametrize("value", [1.5, -1.0, math.nan, 1e10])
def test_u32_from_inexact_f64(value):
    with pytest.raises(ValueError, match="to u32"):
        deserialize_u32_from_f64(value)


def test_u32_from_f64_message():
    with pytest.raises(ValueError, match=r"cannot convert f64 \(BSON double\) 1.5 to u32"):
        deserialize_u32_from_f64(1.5)


def test_u64_as_f64_exact():
    assert serialize_u64_as_f64(2**53) == float(2**53)


@pytest.mark.parametrize("value", [2**53 + 1, U64_MAX])
def test_u64_as_f64_inexact(value):
    with pytest.raises(SerializationError, match="to f64"):
        serialize_u64_as_f64(value)


@given(st.integers(min_value=0, max_value=2**53))
def test_u64_f64_round_trip(n):
    assert deserialize_u64_from_f64(serialize_u64_as_f64(n)) == n


def test_u64_from_f64_saturates_at_top():
    assert deserialize_u64_from_f64(float(2**64)) == U64_MAX


def test_u64_from_f64_fraction_fails():
    with pytest.raises(ValueError, match="to u64"):
        deserialize_u64_from_f64(0.25)


def test_rfc3339_epoch():
    assert serialize_rfc3339_string_as_bson_datetime("1970-01-01T00:00:00Z") == DateTime(0)


def test_rfc3339_offset_applied():
    assert serialize_rfc3339_string_as_bson_datetime("1970-01-01T01:00:00+01:00") == DateTime(0)


def test_rfc3339_fraction_truncated_to_millis():
    result = serialize_rfc3339_string_as_bson_datetime("1970-01-01T00:00:00.123456Z")
    assert result == DateTime(123)


def test_rfc3339_matches_object_id_timestamp():
    expected = ObjectId.parse_str("7FFFFFFF0000000000000000").timestamp()
    result = serialize_rfc3339_string_as_bson_datetime("2038-01-19T03:14:07Z")
    assert result == DateTime.from_datetime(expected)
    assert result == DateTime.from_datetime(datetime(2038, 1, 19, 3, 14, 7, tzinfo=timezone.utc))


@pytest.mark.parametrize(
    "text", ["not a date", "2020-13-01T00:00:00Z", "2020-01-01T00:00:00", "2020-02-30T00:00:00Z"]
)
def test_rfc3339_invalid(text):
    with pytest.raises(SerializationError, match="cannot convert"):
        serialize_rfc3339_string_as_bson_datetime(text)
    with pytest.raises(ValueError, match="cannot parse RFC 3339 datetime"):
        deserialize_bson_datetime_from_rfc3339_string(text)


@given(st.integers(min_value=-62135596800000, max_value=253402300799999))
def test_datetime_rfc3339_round_trip(millis):
    dt = DateTime.from_millis(millis)
    text = serialize_bson_datetime_as_rfc3339_string(dt)
    assert deserialize_bson_datetime_from_rfc3339_string(text) == dt
    assert serialize_rfc3339_string_as_bson_datetime(
        deserialize_rfc3339_string_from_bson_datetime(dt)
    ) == dt


def test_hex_string_as_object_id():
    oid = serialize_hex_string_as_object_id("53e37d08776f724e42000000")
    assert bytes(oid) == bytes.fromhex("53e37d08776f724e42000000")
    assert deserialize_hex_string_from_object_id(oid) == "53e37d08776f724e42000000"


def test_hex_string_as_object_id_invalid():
    with pytest.raises(SerializationError, match="cannot convert zz to ObjectId"):
        serialize_hex_string_as_object_id("zz")


def test_uuid_as_binary():
    binary = serialize_uuid_as_binary(SAMPLE_UUID)
    assert binary.subtype == BinarySubtype(BinarySubtypeKind.UUID)
    assert binary.data == SAMPLE_UUID.bytes
    assert deserialize_uuid_from_binary(binary) == SAMPLE_UUID


def test_uuid_from_binary_wrong_subtype():
    binary = Binary(BinarySubtype(BinarySubtypeKind.GENERIC), SAMPLE_UUID.bytes)
    with pytest.raises(ValueError, match="incorrect binary subtype"):
        deserialize_uuid_from_binary(binary)


def test_uuid_from_binary_wrong_length():
    binary = Binary(BinarySubtype(BinarySubtypeKind.UUID), b"\x01\x02")
    with pytest.raises(ValueError, match="incorrect bytes length"):
        deserialize_uuid_from_binary(binary)


def test_java_legacy_byte_order():
    binary = serialize_uuid_as_java_legacy_binary(SAMPLE_UUID)
    assert binary.subtype == BinarySubtype(BinarySubtypeKind.UUID_OLD)
    assert binary.data == bytes.fromhex("7766554433221100ffeeddccbbaa9988")


def test_python_legacy_layout():
    binary = serialize_uuid_as_python_legacy_binary(SAMPLE_UUID)
    assert binary.subtype == BinarySubtype(BinarySubtypeKind.UUID_OLD)
    assert binary.data == SAMPLE_UUID.bytes


def test_c_sharp_legacy_layout():
    binary = serialize_uuid_as_c_sharp_legacy_binary(SAMPLE_UUID)
    assert binary.subtype == BinarySubtype(BinarySubtypeKind.UUID_OLD)
    assert binary.data == SAMPLE_UUID.bytes_le


@pytest.mark.parametrize(
    "serialize,deserialize",
    [
        (serialize_uuid_as_java_legacy_binary, deserialize_uuid_from_java_legacy_binary),
        (serialize_uuid_as_python_legacy_binary, deserialize_uuid_from_python_legacy_binary),
        (serialize_uuid_as_c_sharp_legacy_binary, deserialize_uuid_from_c_sharp_legacy_binary),
    ],
)
@given(raw=st.binary(min_size=16, max_size=16))
def test_legacy_round_trips(serialize, deserialize, raw):
    value = uuid.UUID(bytes=raw)
    assert deserialize(serialize(value)) == value


@pytest.mark.parametrize(
    "deserialize",
    [
        deserialize_uuid_from_java_legacy_binary,
        deserialize_uuid_from_python_legacy_binary,
        deserialize_uuid_from_c_sharp_legacy_binary,
    ],
)
def test_legacy_errors(deserialize):
    with pytest.raises(ValueError, match="UuidOld"):
        deserialize(serialize_uuid_as_binary(SAMPLE_UUID))
    with pytest.raises(ValueError, match="expecting 16 bytes"):
        deserialize(Binary(BinarySubtype(BinarySubtypeKind.UUID_OLD), b"\x00" * 15))


def test_u32_as_timestamp():
    ts = serialize_u32_as_timestamp(12345)
    assert ts == Timestamp(12345, 0)
    assert deserialize_u32_from_timestamp(ts) == 12345


def test_timestamp_as_u32():
    assert serialize_timestamp_as_u32(Timestamp(99, 0)) == 99
    assert deserialize_timestamp_from_u32(99) == Timestamp(99, 0)


def test_timestamp_with_increment_fails():
    with pytest.raises(
        SerializationError, match="Cannot convert Timestamp with a non-zero increment to u32"
    ):
        serialize_timestamp_as_u32(Timestamp(1, 1))


def test_timestamp_from_u32_out_of_range():
    with pytest.raises(ValueError):
        deserialize_timestamp_from_u32(U32_MAX + 1)