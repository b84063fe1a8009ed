"""The 12-byte ObjectId: generation, parsing and formatting."""

from __future__ import annotations

import random
import threading
import time
from datetime import datetime, timedelta, timezone

__all__ = [
    "ObjectIdError",
    "InvalidHexStringCharacter",
    "InvalidHexStringLength",
    "ObjectId",
    "set_counter",
]

_TIMESTAMP_SIZE = 4
_PROCESS_ID_SIZE = 5
_COUNTER_SIZE = 3
_MAX_U24 = 0xFF_FFFF
_COUNTER_MASK = (1 << 64) - 1
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_rng = random.SystemRandom()
_counter_lock = threading.Lock()
_counter = _rng.randint(0, _MAX_U24)
_PROCESS_ID = _rng.randrange(_MAX_U24).to_bytes(4, "big") + b"\x00"


class ObjectIdError(ValueError):
    """Raised when an ObjectId cannot be built from the given input."""


class InvalidHexStringCharacter(ObjectIdError):
    """A character outside 0-9, a-f, A-F was found in the hex string."""

    def __init__(self, c: str, index: int, hex: str) -> None:
        self.c = c
        self.index = index
        self.hex = hex
        super().__init__(
            f"invalid character '{c}' was found at index {index} in the provided hex string: "
            f'"{hex}"'
        )


class InvalidHexStringLength(ObjectIdError):
    """The hex string is not exactly 24 characters (12 bytes)."""

    def __init__(self, length: int, hex: str) -> None:
        self.length = length
        self.hex = hex
        super().__init__(
            "provided hex string representation must be exactly 12 bytes, instead got: "
            f'"{hex}", length {length}'
        )


def set_counter(value: int) -> None:
    """Set the shared counter used by ObjectId.generate."""
    global _counter
    if not 0 <= value <= _COUNTER_MASK:
        raise ValueError(f"counter out of range: {value}")
    with _counter_lock:
        _counter = value


def _next_count() -> bytes:
    global _counter
    with _counter_lock:
        current = _counter
        _counter = (_counter + 1) & _COUNTER_MASK
    return (current % (_MAX_U24 + 1)).to_bytes(_COUNTER_SIZE, "big")


class ObjectId:
    """An immutable wrapper around a raw 12-byte ObjectId."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        raw = bytes(raw)
        if len(raw) != 12:
            raise ValueError(f"ObjectId needs exactly 12 bytes, got {len(raw)}")
        self._raw = raw

    @classmethod
    def generate(cls) -> ObjectId:
        """Create a new ObjectId from the clock, the process id and the counter."""
        timestamp = int(time.time()).to_bytes(_TIMESTAMP_SIZE, "big")
        return cls(timestamp + _PROCESS_ID[:_PROCESS_ID_SIZE] + _next_count())

    @classmethod
    def parse_str(cls, s: str) -> ObjectId:
        """Parse a 24-character hexadecimal string."""
        raw = s.encode("utf-8")
        if len(raw) % 2:
            raise InvalidHexStringLength(len(raw), s)
        for index, byte in enumerate(raw):
            if byte not in _HEX_DIGITS:
                raise InvalidHexStringCharacter(chr(byte), index, s)
        if len(raw) != 24:
            raise InvalidHexStringLength(len(raw), s)
        return cls(bytes.fromhex(s))

    def timestamp(self) -> datetime:
        """The creation time stored in the first four bytes, as an aware UTC datetime."""
        seconds = int.from_bytes(self._raw[:_TIMESTAMP_SIZE], "big")
        return _EPOCH + timedelta(seconds=seconds)

    def to_hex(self) -> str:
        return self._raw.hex()

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f'ObjectId("{self.to_hex()}")'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._raw == other._raw

    def __lt__(self, other: ObjectId) -> bool:
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._raw < other._raw

    def __le__(self, other: ObjectId) -> bool:
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._raw <= other._raw

    def __gt__(self, other: ObjectId) -> bool:
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._raw > other._raw

    def __ge__(self, other: ObjectId) -> bool:
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._raw >= other._raw

    def __hash__(self) -> int:
        return hash(self._raw)