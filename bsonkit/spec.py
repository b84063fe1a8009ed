"""Constants of the BSON specification: element types and binary subtypes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

__all__ = ["ElementType", "BinarySubtypeKind", "BinarySubtype", "element_type"]


class ElementType(IntEnum):
    """All BSON element types, valued by their tag byte."""

    DOUBLE = 0x01
    STRING = 0x02
    EMBEDDED_DOCUMENT = 0x03
    ARRAY = 0x04
    BINARY = 0x05
    UNDEFINED = 0x06  # deprecated
    OBJECT_ID = 0x07
    BOOLEAN = 0x08
    DATE_TIME = 0x09
    NULL = 0x0A
    REGULAR_EXPRESSION = 0x0B
    DB_POINTER = 0x0C  # deprecated
    JAVASCRIPT_CODE = 0x0D
    SYMBOL = 0x0E  # deprecated
    JAVASCRIPT_CODE_WITH_SCOPE = 0x0F
    INT32 = 0x10
    TIMESTAMP = 0x11
    INT64 = 0x12
    DECIMAL128 = 0x13
    MAX_KEY = 0x7F
    MIN_KEY = 0xFF


def element_type(tag: int) -> ElementType | None:
    """Return the element type for a tag byte, or None if the tag is unknown."""
    try:
        return ElementType(tag)
    except ValueError:
        return None


class BinarySubtypeKind(Enum):
    """The kinds of binary subtype: the named ones plus user-defined and reserved slots."""

    GENERIC = 0x00
    FUNCTION = 0x01
    BINARY_OLD = 0x02
    UUID_OLD = 0x03
    UUID = 0x04
    MD5 = 0x05
    ENCRYPTED = 0x06
    USER_DEFINED = "user_defined"
    RESERVED = "reserved"


_USER_DEFINED_START = 0x80
_CODED_KINDS = (BinarySubtypeKind.USER_DEFINED, BinarySubtypeKind.RESERVED)


@dataclass(frozen=True)
class BinarySubtype:
    """A binary subtype; ``code`` carries the byte for user-defined and reserved subtypes."""

    kind: BinarySubtypeKind
    code: int | None = None

    def __post_init__(self) -> None:
        if self.kind in _CODED_KINDS:
            if self.code is None or not 0 <= self.code <= 0xFF:
                raise ValueError(f"{self.kind.name} subtype needs a code byte, got {self.code!r}")
        elif self.code is not None:
            raise ValueError(f"{self.kind.name} subtype takes no code byte")

    @classmethod
    def from_byte(cls, value: int) -> BinarySubtype:
        """Classify a subtype byte."""
        if not 0 <= value <= 0xFF:
            raise ValueError(f"subtype byte out of range: {value}")
        for kind in BinarySubtypeKind:
            if kind.value == value:
                return cls(kind)
        if value < _USER_DEFINED_START:
            return cls(BinarySubtypeKind.RESERVED, value)
        return cls(BinarySubtypeKind.USER_DEFINED, value)

    def __int__(self) -> int:
        if self.kind in _CODED_KINDS:
            return int(self.code)  # type: ignore[arg-type]
        return int(self.kind.value)