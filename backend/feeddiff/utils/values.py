"""Helpers for JSON-like tree values."""
import math
from collections.abc import Mapping, Sequence
from typing import Any


class _Absent:
    """Marker for a value that is not present (distinct from a present null)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<ABSENT>"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_primitive(value: Any) -> bool:
    return not is_array(value) and not is_object(value)


def value_kind(value: Any) -> str:
    """
    Return the JSON kind of a value.

    Booleans are not numbers here, even though bool subclasses int.
    """
    if value is ABSENT:
        return "absent"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if is_array(value):
        return "array"
    if is_object(value):
        return "object"
    return type(value).__name__


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def primitives_equal(a: Any, b: Any) -> bool:
    """Equality for two primitives of the same kind; NaN equals NaN."""
    if is_nan(a) or is_nan(b):
        return is_nan(a) and is_nan(b)
    return a == b
