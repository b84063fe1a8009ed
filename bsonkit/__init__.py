"""Encode Python values as BSON documents, with ObjectIds and conversion helpers."""

__version__ = "0.1.0"
__all__ = ["encoder", "errors", "extended", "helpers", "oid", "spec", "values", "wire"]