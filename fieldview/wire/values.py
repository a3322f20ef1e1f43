"""Generic value model for decoded payloads.

Whatever the msgpack decoder produces is folded into a closed set of shapes::

    None | bool | int | float | str | bytes | list[Value] | dict[str, Value]

and every tensor container found anywhere in the tree is replaced by the numbers it
carries. The rest of the codec only ever sees values of this shape.
"""

import collections.abc as cabc
import math
from typing import Any, TypeAlias

import msgpack
import numpy as np

from .tensor import decode_tensor, is_tensor_container

Value: TypeAlias = None | bool | int | float | str | bytes | list['Value'] | dict[str, 'Value']

# Deeper containers are dropped rather than walked
MAX_NESTING = 64


def key_text(key: Any) -> str:
    """Mapping keys are always text; binary keys are read as UTF-8."""
    if isinstance(key, str):
        return key
    if isinstance(key, bytes | bytearray | memoryview):
        return bytes(key).decode('utf-8', errors='replace')
    if isinstance(key, bool):
        return 'true' if key else 'false'
    if isinstance(key, float):
        if math.isnan(key):
            return 'NaN'
        if math.isinf(key):
            return 'Infinity' if key > 0 else '-Infinity'
        if key.is_integer():
            return str(int(key))
    return str(key)


def is_pair_list(items: cabc.Sequence) -> bool:
    """True for a non-empty list of ``[key, value]`` pairs with text or numeric keys."""
    if not items:
        return False
    return all(
        isinstance(entry, list)
        and len(entry) == 2
        and isinstance(entry[0], str | int | float)
        and not isinstance(entry[0], bool)
        for entry in items
    )


def _normalize_mapping(items: cabc.Iterable[tuple[Any, Any]], level: int) -> Value:
    result = {key_text(key): normalize(nested, level + 1) for key, nested in items}
    if is_tensor_container(result):
        return normalize(decode_tensor(result), level)
    return result


def normalize(value: Any, _level: int = 0) -> Value:
    """Canonicalise a decoded tree into the generic value model.

    Children are normalised before their parent is inspected, so normalising an
    already normalised value returns an equal value. Containers nested
    ``MAX_NESTING`` levels deep or more are replaced by None.
    """
    match value:
        case None | bool() | int() | float() | str() | bytes():
            return value
        case bytearray() | memoryview():
            return bytes(value)
        case msgpack.ExtType():
            return bytes(value.data)
        case msgpack.Timestamp():
            return value.to_unix()
        case np.generic():
            return value.item()
        case np.ndarray() | cabc.Mapping() | list() | tuple() if _level >= MAX_NESTING:
            return None
        case np.ndarray():
            return normalize(value.tolist(), _level)
        case cabc.Mapping():
            return _normalize_mapping(value.items(), _level)
        case list() | tuple():
            items = [normalize(nested, _level + 1) for nested in value]
            if is_pair_list(items):
                return _normalize_mapping(((key, nested) for key, nested in items), _level)
            return items
        case _:
            return str(value)
