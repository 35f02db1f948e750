"""
Common utilities: classification of values and conversion to raw data.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from .exceptions import CyclicStructure

__all__ = [
    "is_container",
    "dump_value",
    "values_equal",
]


def is_container(value: Any) -> bool:
    """
    Check whether a value is a container, i.e. eligible to be wrapped and
    recursed into. Everything else is a leaf and is stored as-is.
    """
    if isinstance(value, Mapping):
        return True
    return isinstance(value, Sequence) and not isinstance(
        value, (str, bytes, bytearray)
    )


def dump_value(value: Any) -> Any:
    """
    Return a deep copy of value with all containers (wrapped or not)
    converted to plain `dict` and `list`.

    :raises CyclicStructure: If value references itself
    """
    return _dump(value, set())


def values_equal(a: Any, b: Any) -> bool:
    """
    Structural comparison of two raw values. Mappings compare regardless
    of key order; sequences compare element-wise.
    """
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(
            values_equal(a[k], b[k]) for k in a
        )

    if is_container(a) and is_container(b):
        if isinstance(a, Mapping) or isinstance(b, Mapping):
            return False
        return len(a) == len(b) and all(
            values_equal(x, y) for x, y in zip(a, b)
        )

    if is_container(a) or is_container(b):
        return False

    # bool is a subclass of int; don't conflate True with 1
    if isinstance(a, bool) is not isinstance(b, bool):
        return False

    return a == b


def _dump(value: Any, active: set[int]) -> Any:
    if not is_container(value):
        return value

    if id(value) in active:
        raise CyclicStructure(
            f"Value of type {type(value).__name__} contains a reference to itself"
        )

    active.add(id(value))
    try:
        if isinstance(value, Mapping):
            return {k: _dump(v, active) for k, v in value.items()}
        return [_dump(v, active) for v in value]
    finally:
        active.remove(id(value))
