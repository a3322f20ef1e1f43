from typing import Any

from .codecs import UnsupportedRecordKind, decode_record, encode_record
from .envelope import unwrap_message_payload, wrap_message_payload
from .merge import build_snapshot
from .records import (
    STATUS_CONNECTED,
    AIRecord,
    Color,
    ColorCorrection,
    DataResponse,
    Detection,
    Image,
    MapLocation,
    Offset,
    Position,
    RecordKind,
    ScreenLocation,
    Statistics,
)
from .serialisation import deserialise, make_deserialiser, new_unpacker, serialise
from .values import Value, normalize


def deserialize_data_response(payload: Any) -> DataResponse | None:
    """Turn one decoded frame into a snapshot, None when there is nothing to read.

    Never raises on malformed input: unreadable parts are simply left out.
    """
    if payload is None:
        return None
    return build_snapshot(normalize(unwrap_message_payload(payload)))


__all__ = [
    'STATUS_CONNECTED',
    'AIRecord',
    'Color',
    'ColorCorrection',
    'DataResponse',
    'Detection',
    'Image',
    'MapLocation',
    'Offset',
    'Position',
    'RecordKind',
    'ScreenLocation',
    'Statistics',
    'UnsupportedRecordKind',
    'Value',
    'build_snapshot',
    'decode_record',
    'deserialise',
    'deserialize_data_response',
    'encode_record',
    'make_deserialiser',
    'new_unpacker',
    'normalize',
    'serialise',
    'unwrap_message_payload',
    'wrap_message_payload',
]
