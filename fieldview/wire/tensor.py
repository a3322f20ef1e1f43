"""Tensor containers: typed numeric arrays packed as dtype tag + shape + raw bytes.

A container on the wire looks like::

    {'nd': True, 'type': '<f4', 'kind': '', 'shape': [2, 3], 'data': b'...'}

``nd`` tells whether the payload is an array (True) or a single scalar (False).
``type`` is a dtype tag (either the numpy short form such as ``'<f4'`` or the long
name such as ``'float32'``), optionally wrapped in a list. Elements are always
little-endian.
"""

import collections.abc as cabc
import logging
import math
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

ND_KEY = 'nd'
TYPE_KEY = 'type'
DATA_KEY = 'data'
SHAPE_KEY = 'shape'
KIND_KEY = 'kind'

# Shapes with more dimensions than this are read as flat data
MAX_RANK = 32

FLOAT32 = '<f4'

_DTYPE_TAGS = {
    '<f4': ('<f4', 'float32'),
    '<f8': ('<f8', 'float64'),
    '<i4': ('<i4', 'int32'),
    '<i2': ('<i2', 'int16'),
    'i1': ('<i1', '|i1', 'int8'),
    '<u4': ('<u4', 'uint32'),
    '<u2': ('<u2', 'uint16'),
    'u1': ('<u1', '|u1', 'uint8'),
}
_DTYPES = {tag: np.dtype(dtype) for dtype, tags in _DTYPE_TAGS.items() for tag in tags}


def resolve_dtype(tag: Any) -> np.dtype | None:
    """Map a wire dtype tag to a little-endian numpy dtype, None if unrecognised."""
    if isinstance(tag, list | tuple):
        tag = tag[0] if tag else None
    if isinstance(tag, bytes | bytearray):
        tag = bytes(tag).decode('ascii', errors='replace')
    if not isinstance(tag, str):
        return None
    return _DTYPES.get(tag.strip().lower())


def is_tensor_container(value: Any) -> bool:
    return isinstance(value, cabc.Mapping) and ND_KEY in value and TYPE_KEY in value and DATA_KEY in value


def _as_buffer(data: Any) -> bytes:
    if isinstance(data, bytes | bytearray | memoryview):
        return bytes(data)
    if isinstance(data, np.ndarray):
        return data.tobytes()
    if isinstance(data, list | tuple):
        # Plain number lists are taken as one byte per entry
        return bytes(int(v) & 0xFF if isinstance(v, int | float) and math.isfinite(v) else 0 for v in data)
    return b''


def _as_shape(shape: Any) -> list[int] | None:
    if not isinstance(shape, list | tuple) or not shape or len(shape) > MAX_RANK:
        return None
    dims = []
    for dim in shape:
        if isinstance(dim, bool) or not isinstance(dim, int | float) or not math.isfinite(dim):
            return None
        dims.append(max(int(dim), 0))
    return dims


def _reshape(flat: np.ndarray, shape: list[int], offset: int = 0) -> Any:
    if len(shape) == 1:
        return flat[offset : offset + shape[0]].tolist()

    size, rest = shape[0], shape[1:]
    step = math.prod(rest)
    # Rows that would start past the end of the data are dropped
    rows = min(size, -(-max(len(flat) - offset, 0) // step))
    return [_reshape(flat, rest, offset + i * step) for i in range(rows)]


def decode_tensor(container: cabc.Mapping) -> Any:
    """Materialise a tensor container into a scalar or a (nested) list of numbers.

    Unknown dtypes fall back to the raw bytes as a list of unsigned 8-bit integers.
    Trailing bytes that do not fill a whole element are ignored.
    """
    dtype = resolve_dtype(container.get(TYPE_KEY))
    buffer = _as_buffer(container.get(DATA_KEY))

    if dtype is None:
        logger.debug(f'Unknown tensor dtype {container.get(TYPE_KEY)!r}, falling back to raw bytes')
        if not container.get(ND_KEY):
            return buffer[0] if buffer else None
        return list(buffer)

    usable = len(buffer) - len(buffer) % dtype.itemsize
    flat = np.frombuffer(buffer[:usable], dtype=dtype)

    if not container.get(ND_KEY):
        return flat[0].item() if flat.size > 0 else None

    shape = _as_shape(container.get(SHAPE_KEY))
    if shape is None:
        return flat.tolist()
    count = math.prod(shape)
    if count == 0:
        # A zero-sized dimension leaves nothing to lay out
        return []
    if count == flat.size:
        return flat.reshape(shape).tolist()
    return _reshape(flat, shape)


def encode_tensor(array: np.ndarray) -> dict[str, Any]:
    """Pack a numpy array into a tensor container.

    Raises:
        ValueError: if the array dtype has no wire tag.
    """
    array = np.asarray(array)
    dtype = array.dtype.newbyteorder('<') if array.dtype.byteorder == '>' else array.dtype
    if _DTYPES.get(dtype.str) is None:
        raise ValueError(f'Unsupported dtype: {array.dtype}')
    return {
        ND_KEY: True,
        TYPE_KEY: dtype.str,
        KIND_KEY: '',
        SHAPE_KEY: list(array.shape),
        DATA_KEY: array.astype(dtype, copy=False).tobytes(),
    }


def encode_numeric_array(values: cabc.Sequence[float] | None) -> dict[str, Any]:
    """Pack a flat sequence of numbers as a 1-D float32 tensor container."""
    return encode_tensor(np.asarray(list(values or []), dtype=FLOAT32).reshape(-1))
