"""Errors raised while encoding values to BSON."""

from __future__ import annotations

from typing import Any

__all__ = [
    "SerializerError",
    "SerializationError",
    "InvalidDocumentKeyError",
    "UnsupportedUnsignedIntegerError",
]


class SerializerError(Exception):
    """Base class for every encoding error."""


class SerializationError(SerializerError):
    """A general error that occurred during encoding."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidDocumentKeyError(SerializerError):
    """A key could not be encoded as a BSON string."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"Invalid map key type: {key}")


class UnsupportedUnsignedIntegerError(SerializerError):
    """An unsigned integer was given where BSON only has signed integers."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(
            "BSON does not support unsigned integers, cannot serialize value: "
            f"{value}. To serialize unsigned integers to BSON, use an appropriate serde helper "
            "or enable the u2i feature."
        )