# bsonkit

A small library with no dependencies that turns Python values into BSON bytes.

## Modules

- `bsonkit.oid`: the 12-byte `ObjectId`.
  - `ObjectId.generate()` creates a new id from the clock, a per-process random value and a shared counter.
  - `set_counter(value)` sets that counter.
  - `ObjectId.parse_str(...)` reads an id from a 24-character hex string.
  - `.timestamp()` returns the creation time as an aware UTC `datetime`.
  - `.to_hex()` and `bytes(oid)` give the id as hex and as raw bytes.
- `bsonkit.values`: BSON value types that Python has no built-in type for.
  - The types are `Int64`, `DateTime`, `Binary`, `Regex`, `Timestamp`, `DbPointer`, `Code`, `CodeWithScope`, `Symbol`, `Decimal128`, `MinKey`, `MaxKey` and `Undefined`.
  - Each of these types except `Int64` has a `to_extended()` method that returns its `$`-keyed dictionary form.
  - `to_bson(value)` normalises plain Python data into BSON values. `to_document(value)` does the same but fails unless the result is a document.
  - `element_type_of(value)` reports the element type of a value.
- `bsonkit.encoder`: `to_vec(value)` encodes one document as bytes. `Encoder` appends several documents to one buffer; call `encode()` for each and `getvalue()` for the bytes.
- `bsonkit.wire`: the low-level writers.
  - Scalars: `write_i32`, `write_i64`, `write_f64`, `write_string`, `write_cstring` and `write_binary`.
  - Structure: `encode_key`, `serialize_bson`, `serialize_array` and `encode_document`.
- `bsonkit.extended`: `encode_extended(value_type, body)` writes the raw payload of a value given in its `$`-keyed form, such as `{"$oid": "..."}`. `value_type_for(name)` maps a marker name to its `ValueType`.
- `bsonkit.helpers`: conversions between plain values and the BSON values used to store them.
  - Unsigned integers as 32-bit integers, 64-bit integers or doubles, and back.
  - RFC 3339 strings and `DateTime`.
  - Hex strings and `ObjectId`.
  - `u32` seconds and `Timestamp`.
  - UUIDs as binary, in the standard layout or the legacy Java, Python and C# layouts.
- `bsonkit.spec`: `ElementType`, `BinarySubtype`, `BinarySubtypeKind` and `element_type(tag)`.

## Example

```python
from bsonkit.encoder import to_vec
from bsonkit.oid import ObjectId
from bsonkit.values import DateTime, Int64

doc = {
    "_id": ObjectId.parse_str("53e37d08776f724e42000000"),
    "code": 200,
    "views": Int64(12),
    "success": True,
    "created": DateTime.from_millis(0),
    "payload": {"some": ["pay", "loads"]},
}
data = to_vec(doc)
```

## Encoding rules

- **Top level.** Only a mapping, or an instance of a dataclass, can be encoded. Any other value raises `bsonkit.errors.SerializationError`.
- **Keys.** Document keys must be strings. An enum member is also accepted and is written by its name. Any other key raises `InvalidDocumentKeyError`.
- **Integers.**
  - An integer that fits in 32 bits is written as a 32-bit integer.
  - A wider integer that fits in 64 bits is written as a 64-bit integer.
  - Wrap a value in `Int64` to force the 64-bit form.
  - An integer above the signed 64-bit range but within 64 unsigned bits raises `UnsupportedUnsignedIntegerError`.
  - Anything larger raises `SerializationError`.
- **Other Python values.**
  - `bytes` are written as generic binary.
  - Lists, tuples and sets are written as arrays.
  - Enum members are written as their name.
  - Dataclass instances are written as embedded documents.

## Errors

Every encoding failure derives from `bsonkit.errors.SerializerError`.

A malformed ObjectId hex string raises `InvalidHexStringCharacter` or `InvalidHexStringLength`. Both are subclasses of `bsonkit.oid.ObjectIdError`, which is a `ValueError`.

## What it does not do

The package only encodes. It does not read BSON bytes back into Python values, and it does not parse or print extended JSON text.

## Installation

```
pip install bsonkit
```

## Running the tests

```
pip install -e ".[test]"
pytest
```