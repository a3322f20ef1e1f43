"""Lenient scalar coercion shared by every record decoder.

Every helper returns None instead of raising when the input cannot be read, and no
helper ever returns a NaN or infinite number.
"""

import base64
import binascii
import math
from typing import Any

import numpy as np


def _finite(number: int | float) -> int | float | None:
    if isinstance(number, float) and not math.isfinite(number):
        return None
    return number


def _parse_number(text: str) -> int | float | None:
    text = text.strip()
    if not text:
        return None
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return _finite(float(text))
    except ValueError:
        return None


def as_number(value: Any) -> int | float | None:
    """Read a finite number from a number, numeric text or the first element of a sequence."""
    match value:
        case bool() | np.bool_():
            return None
        case int() | float():
            return _finite(value)
        case np.integer() | np.floating():
            return _finite(value.item())
        case str():
            return _parse_number(value)
        case np.ndarray():
            return as_number(value.reshape(-1)[0].item()) if value.size > 0 else None
        case list() | tuple() | bytes() | bytearray() if len(value) > 0:
            return as_number(value[0])
        case _:
            return None


def as_boolean(value: Any) -> bool | None:
    """Read a flag from a boolean, a number (non-zero is True) or ``'true'``/``'false'``/``'1'``/``'0'``."""
    match value:
        case bool() | np.bool_():
            return bool(value)
        case int() | float() | np.integer() | np.floating():
            return None if math.isnan(value) else bool(value != 0)
        case str():
            text = value.strip().lower()
            if text in ('true', '1'):
                return True
            if text in ('false', '0'):
                return False
    return None


def as_string(value: Any) -> str | None:
    match value:
        case str():
            return value
        case bool():
            return 'true' if value else 'false'
        case int() | float():
            return str(value)
    return None


def to_numeric_array(value: Any) -> list[int | float]:
    """Read a list of finite numbers, dropping entries that are not."""
    if isinstance(value, np.ndarray):
        value = value.reshape(-1).tolist()
    if isinstance(value, list | tuple | bytes | bytearray):
        return [number for number in map(as_number, value) if number is not None]
    number = as_number(value)
    return [] if number is None else [number]


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def base64_to_bytes(text: str) -> bytes:
    """Decode base64 text; malformed input decodes to empty bytes."""
    if not text:
        return b''
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return b''
