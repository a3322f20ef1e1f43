"""Fold a normalised payload into a single :class:`DataResponse`.

Producers send one of three shapes, sometimes nested inside each other:

- a flat mapping keyed by field name (``{'position': {...}, 'stats': {...}}``),
- a single named record (``{'name': 'Position', 'x': 1.0, ...}``),
- a list of named records and/or flat mappings.

Keys that are not recognised field names are descended into, and the key is kept as
an origin hint: it tells a camera offset from a GPS one and a color frame from a
depth frame.
"""

import collections.abc as cabc
import logging
from dataclasses import fields
from typing import Any

from .codecs import (
    NAME_KEY,
    decode_ai_record,
    decode_color,
    decode_color_correction,
    decode_detection,
    decode_detections,
    decode_image,
    decode_offset,
    decode_position,
    decode_stats,
)
from .coerce import as_boolean, as_string
from .records import Color, DataResponse, Offset, RecordKind
from .values import MAX_NESTING

logger = logging.getLogger(__name__)


def build_snapshot(value: Any) -> DataResponse | None:
    """Build a snapshot from a normalised value; None for anything but a list or a mapping."""
    if isinstance(value, list):
        target = DataResponse()
        for entry in value:
            if isinstance(entry, cabc.Mapping) and NAME_KEY in entry:
                merge_record(target, entry)
            else:
                merge_value(target, entry)
        return target

    if isinstance(value, cabc.Mapping):
        target = DataResponse()
        if NAME_KEY in value:
            merge_record(target, value)
        else:
            for key, nested in value.items():
                merge_key_value(target, key, nested)
        return target

    return None


def merge_value(target: DataResponse, value: Any, origin: str | None = None, _level: int = 0) -> None:
    if _level >= MAX_NESTING:
        return
    if isinstance(value, list):
        items = ((str(index), nested) for index, nested in enumerate(value))
    elif isinstance(value, cabc.Mapping):
        if NAME_KEY in value:
            merge_record(target, value, origin)
            return
        items = value.items()
    else:
        return

    for key, nested in items:
        merge_key_value(target, key, nested, _level + 1)


def merge_key_value(target: DataResponse, key: str, value: Any, _level: int = 0) -> None:
    match key:
        case 'Command' | 'command' | 'Message' | 'message':
            if (command := as_string(value)) is not None:
                target.command = command
        case 'Valid' | 'valid':
            target.valid = as_boolean(value)
        case 'CameraOffset' | 'cameraOffset' | 'camera_offset':
            target.camera_offset = decode_offset(value)
        case 'GpsOffset' | 'gpsOffset' | 'gps_offset':
            target.gps_offset = decode_offset(value)
        case 'ColorCorrection' | 'colorCorrection' | 'color_correction':
            target.color_correction = decode_color_correction(value)
        case 'Color' | 'color':
            target.color = decode_color(value)
        case 'Depth' | 'depth':
            target.depth = decode_color(value)
        case 'Detections' | 'detections':
            target.detections = decode_detections(value)
        case 'Position' | 'position':
            target.position = decode_position(value)
        case 'Stats' | 'stats':
            target.stats = decode_stats(value)
        case _:
            merge_value(target, value, key, _level)


def _is_depth(origin: str | None) -> bool:
    return bool(origin) and 'depth' in origin.lower()


def merge_record(target: DataResponse, record: cabc.Mapping, origin: str | None = None) -> None:
    """Apply one named record to the snapshot according to its kind's merge policy."""
    kind = RecordKind.parse(record.get(NAME_KEY))
    match kind:
        case RecordKind.AI_RECORD:
            partial = decode_ai_record(record)
            if partial is not None:
                for field in fields(partial):
                    nested = getattr(partial, field.name)
                    if nested is not None:
                        setattr(target, field.name, nested)
        case RecordKind.POSITION:
            if (position := decode_position(record)) is not None:
                target.position = position
        case RecordKind.OFFSET:
            if (offset := decode_offset(record)) is not None:
                _assign_offset(target, offset, origin)
        case RecordKind.STATISTICS:
            if (stats := decode_stats(record)) is not None:
                target.stats = stats
        case RecordKind.COLOR_CORRECTION:
            if (correction := decode_color_correction(record)) is not None:
                target.color_correction = correction
        case RecordKind.DETECTION:
            if (detection := decode_detection(record)) is not None:
                if target.detections is None:
                    target.detections = []
                target.detections.append(detection)
        case RecordKind.COLOR:
            if (color := decode_color(record)) is not None:
                _assign_color(target, color, origin)
        case RecordKind.IMAGE:
            if (image := decode_image(record)) is not None:
                _assign_color(target, Color(image=image), origin)
        case RecordKind.IMAGE_DETECTION | RecordKind.MAP_DETECTION:
            # Only meaningful as part of a Detection
            pass
        case None:
            logger.debug(f'Skipping record with unknown name {record.get(NAME_KEY)!r}')


def _assign_offset(target: DataResponse, offset: Offset, origin: str | None) -> None:
    if origin:
        hint = origin.lower()
        if 'gps' in hint:
            target.gps_offset = offset
            return
        if 'camera' in hint:
            target.camera_offset = offset
            return

    # No usable hint: the first offset goes to the camera, the second to the GPS
    if target.camera_offset is None:
        target.camera_offset = offset
    elif target.gps_offset is None:
        target.gps_offset = offset


def _assign_color(target: DataResponse, color: Color, origin: str | None) -> None:
    if _is_depth(origin):
        target.depth = color
    else:
        target.color = color
