"""msgpack framing for the AI module link.

The decoder is built once and passed around; nothing here patches msgpack globally.
Legacy producers emit map keys as binary, so the decoder turns binary keys into
UTF-8 text before any dict is built.
"""

import collections.abc as cabc
import functools
from collections.abc import Callable
from typing import Any

import msgpack
import numpy as np

from .tensor import encode_tensor

_UNPACK_OPTIONS = {'raw': False, 'strict_map_key': False, 'unicode_errors': 'replace'}


def coerce_map_keys(pairs: list[tuple[Any, Any]]) -> dict[Any, Any]:
    result = {}
    for key, value in pairs:
        if isinstance(key, bytes):
            key = key.decode('utf-8', errors='replace')
        elif isinstance(key, list | dict):
            key = str(key)
        result[key] = value
    return result


def pack_value(obj):
    # Frozen views and other Mapping types go out as plain dicts
    if isinstance(obj, cabc.Mapping):
        return dict(obj)
    if isinstance(obj, np.ndarray):
        return encode_tensor(obj)
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f'Cannot serialise {type(obj).__name__}')


def make_deserialiser() -> Callable[[bytes], Any]:
    """Build a msgpack decoder that coerces binary map keys to text."""
    return functools.partial(msgpack.unpackb, object_pairs_hook=coerce_map_keys, **_UNPACK_OPTIONS)


def new_unpacker() -> msgpack.Unpacker:
    """Streaming counterpart of :func:`make_deserialiser` for byte streams."""
    return msgpack.Unpacker(object_pairs_hook=coerce_map_keys, **_UNPACK_OPTIONS)


serialise = functools.partial(msgpack.packb, default=pack_value)
deserialise = make_deserialiser()
