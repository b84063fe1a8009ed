import struct
from enum import Enum

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bsonkit.errors import InvalidDocumentKeyError, SerializationError
from bsonkit.oid import ObjectId
from bsonkit.spec import BinarySubtype, BinarySubtypeKind, ElementType
from bsonkit.values import (
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
)
from bsonkit.wire import (
    MAX_BSON_SIZE,
    encode_document,
    encode_key,
    serialize_array,
    serialize_bson,
    write_binary,
    write_cstring,
    write_f64,
    write_i32,
    write_i64,
    write_string,
)

GENERIC = BinarySubtype(BinarySubtypeKind.GENERIC)
OLD = BinarySubtype(BinarySubtypeKind.BINARY_OLD)


class Color(Enum):
    RED = 1


def _i32(data, offset=0):
    return struct.unpack_from("<i", data, offset)[0]


@given(st.integers(min_value=-(2**31), max_value=2**31 - 1))
def test_write_i32_round_trip(value):
    out = write_i32(value)
    assert len(out) == 4
    assert struct.unpack("<i", out)[0] == value


@given(st.integers(min_value=-(2**63), max_value=2**63 - 1))
def test_write_i64_round_trip(value):
    assert struct.unpack("<q", write_i64(value))[0] == value


@given(st.floats(allow_nan=False))
def test_write_f64_round_trip(value):
    assert struct.unpack("<d", write_f64(value))[0] == value


def test_write_i32_out_of_range():
    with pytest.raises(SerializationError):
        write_i32(2**31)


def test_write_cstring():
    assert write_cstring("abc") == b"abc\x00"


@given(st.text())
def test_write_string_layout(s):
    out = write_string(s)
    raw = s.encode("utf-8")
    assert _i32(out) == len(raw) + 1
    assert out[4:] == raw + b"\x00"


def test_write_binary_generic():
    out = write_binary(b"abc", GENERIC)
    assert _i32(out) == 3
    assert out[4] == 0
    assert out[5:] == b"abc"


def test_write_binary_old_has_inner_length():
    out = write_binary(b"abcd", OLD)
    assert _i32(out) == 8
    assert out[4] == 2
    assert _i32(out, 5) == 4
    assert out[9:] == b"abcd"


def test_write_binary_too_large():
    with pytest.raises(SerializationError):
        write_binary(b"\x00" * (MAX_BSON_SIZE + 1), GENERIC)


def test_encode_key_string_and_enum():
    assert encode_key("name") == b"name\x00"
    assert encode_key(Color.RED) == b"RED\x00"


def test_encode_key_rejects_int():
    with pytest.raises(InvalidDocumentKeyError) as info:
        encode_key(5)
    assert info.value.key == 5


def test_encode_key_rejects_none():
    with pytest.raises(InvalidDocumentKeyError) as info:
        encode_key(None)
    assert info.value.key is None


def test_hello_world_document():
    assert encode_document({"hello": "world"}) == (
        b"\x16\x00\x00\x00\x02hello\x00\x06\x00\x00\x00world\x00\x00"
    )


def test_empty_document():
    assert encode_document({}) == b"\x05\x00\x00\x00\x00"


@given(st.dictionaries(st.text(alphabet="abcxyz", max_size=5), st.integers(-100, 100)))
def test_document_length_prefix_matches(mapping):
    out = encode_document(mapping)
    assert _i32(out) == len(out)
    assert out[-1] == 0


def test_document_invalid_key():
    with pytest.raises(InvalidDocumentKeyError):
        encode_document({1: "x"})


def test_null_and_keys_have_no_payload():
    assert serialize_bson("k", None) == bytes([ElementType.NULL]) + b"k\x00"
    assert serialize_bson("k", MinKey()) == bytes([ElementType.MIN_KEY]) + b"k\x00"
    assert serialize_bson("k", MaxKey()) == bytes([ElementType.MAX_KEY]) + b"k\x00"
    assert serialize_bson("k", Undefined()) == bytes([ElementType.UNDEFINED]) + b"k\x00"


def test_boolean():
    assert serialize_bson("b", True) == bytes([ElementType.BOOLEAN]) + b"b\x00\x01"
    assert serialize_bson("b", False) == bytes([ElementType.BOOLEAN]) + b"b\x00\x00"


def test_int_widths():
    small = serialize_bson("n", 7)
    assert small[0] == ElementType.INT32
    assert small[3:] == write_i32(7)
    big = serialize_bson("n", 2**40)
    assert big[0] == ElementType.INT64
    assert big[3:] == write_i64(2**40)
    forced = serialize_bson("n", Int64(7))
    assert forced[0] == ElementType.INT64


def test_regex_options_sorted():
    out = serialize_bson("r", Regex("a", "xmi"))
    assert out == bytes([ElementType.REGULAR_EXPRESSION]) + b"r\x00a\x00imx\x00"


def test_timestamp_increment_first():
    out = serialize_bson("t", Timestamp(time=1, increment=2))
    assert out[0] == ElementType.TIMESTAMP
    assert struct.unpack("<II", out[3:]) == (2, 1)


def test_datetime_and_objectid():
    dt = serialize_bson("d", DateTime.from_millis(-5))
    assert dt[0] == ElementType.DATE_TIME
    assert struct.unpack("<q", dt[3:])[0] == -5
    oid = ObjectId.parse_str("53e37d08776f724e42000000")
    out = serialize_bson("o", oid)
    assert out[0] == ElementType.OBJECT_ID
    assert out[3:] == bytes(oid)


def test_strings_code_symbol():
    assert serialize_bson("s", "hi")[3:] == write_string("hi")
    assert serialize_bson("c", Code("f()"))[0] == ElementType.JAVASCRIPT_CODE
    assert serialize_bson("c", Code("f()"))[3:] == write_string("f()")
    assert serialize_bson("y", Symbol("sym"))[3:] == write_string("sym")


def test_code_with_scope_length():
    out = serialize_bson("c", CodeWithScope("x", {"a": 1}))
    payload = out[3:]
    assert out[0] == ElementType.JAVASCRIPT_CODE_WITH_SCOPE
    assert _i32(payload) == len(payload)
    assert payload[4:] == write_string("x") + encode_document({"a": 1})


def test_binary_and_bytes():
    out = serialize_bson("b", Binary(BinarySubtype(BinarySubtypeKind.UUID), b"\x01" * 16))
    assert out[0] == ElementType.BINARY
    assert out[3:] == write_binary(b"\x01" * 16, BinarySubtype(BinarySubtypeKind.UUID))
    raw = serialize_bson("b", b"xyz")
    assert raw[3:] == write_binary(b"xyz", GENERIC)


def test_decimal_and_dbpointer():
    raw = bytes(range(16))
    assert serialize_bson("d", Decimal128(raw))[3:] == raw
    oid = ObjectId.parse_str("000000000000000000000000")
    out = serialize_bson("p", DbPointer("db.coll", oid))
    assert out[0] == ElementType.DB_POINTER
    assert out[3:] == write_string("db.coll") + bytes(oid)


def test_array_uses_index_keys():
    out = serialize_array(["a", "b"])
    assert _i32(out) == len(out)
    assert out[4:-1] == serialize_bson("0", "a") + serialize_bson("1", "b")


def test_nested_document_and_array():
    out = encode_document({"x": {"y": [1]}})
    inner = encode_document({"y": [1]})
    assert out[4:-1] == bytes([ElementType.EMBEDDED_DOCUMENT]) + b"x\x00" + inner
    assert serialize_bson("l", [1])[3:] == serialize_array([1])


def test_unsupported_value_raises():
    with pytest.raises(TypeError):
        serialize_bson("k", object())