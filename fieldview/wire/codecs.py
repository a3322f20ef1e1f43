"""Per-kind record decoders and encoders.

Decoders accept any value and never raise: anything that is not a mapping decodes
to None, and fields are looked up through the spellings used by the various
producer generations (first alias present wins). Encoders always emit every field
under its canonical name, substituting zero values for missing ones.
"""

import collections.abc as cabc
import logging
from collections.abc import Callable
from typing import Any

from .coerce import as_boolean, as_number, as_string, base64_to_bytes, bytes_to_base64, to_numeric_array
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
from .tensor import encode_numeric_array
from .values import normalize

logger = logging.getLogger(__name__)

NAME_KEY = 'name'


class UnsupportedRecordKind(ValueError):
    def __init__(self, kind: Any):
        super().__init__(f'Unsupported record kind: {kind!r}')
        self.kind = kind


def resolve_record(value: Any) -> dict[str, Any] | None:
    """Return the record's fields without the discriminator, None for non-mappings."""
    if not isinstance(value, cabc.Mapping):
        return None
    return {key: nested for key, nested in value.items() if key != NAME_KEY}


def read_field(data: cabc.Mapping, *aliases: str) -> Any:
    for alias in aliases:
        if alias in data:
            return data[alias]
    return None


# Decoders


def decode_position(value: Any) -> Position | None:
    data = resolve_record(value)
    if data is None:
        return None

    status = as_number(read_field(data, 'status', 'Status'))
    position = Position(
        status=None if status is None else int(status),
        x=as_number(read_field(data, 'x', 'X')),
        y=as_number(read_field(data, 'y', 'Y')),
        z=as_number(read_field(data, 'z', 'Z')),
        azimuth=as_number(read_field(data, 'azimuth', 'Azimuth')),
        elevation=as_number(read_field(data, 'elevation', 'Elevation')),
        rotation=as_number(read_field(data, 'rotation', 'Rotation')),
    )
    if position.status is not None:
        position.connected = (position.status & STATUS_CONNECTED) == STATUS_CONNECTED
    else:
        position.connected = as_boolean(read_field(data, 'connected', 'Connected'))
    return position


def decode_offset(value: Any) -> Offset | None:
    data = resolve_record(value)
    if data is None:
        return None

    return Offset(
        off_x=as_number(read_field(data, 'x', 'X', 'off_x', 'offX')),
        off_y=as_number(read_field(data, 'y', 'Y', 'off_y', 'offY')),
        off_z=as_number(read_field(data, 'z', 'Z', 'off_z', 'offZ')),
        unit=as_string(read_field(data, 'unit')),
        heading_offset=as_number(read_field(data, 'heading_offset', 'headingOffset')),
        elevation_offset=as_number(read_field(data, 'elevation_offset', 'elevationOffset')),
    )


def decode_stats(value: Any) -> Statistics | None:
    data = resolve_record(value)
    if data is None:
        return None

    return Statistics(
        fps=as_number(read_field(data, 'fps', 'FPS')),
        invoke_time=as_number(read_field(data, 'infer_time', 'inferTime', 'InferTime')),
        video_width=as_number(read_field(data, 'video_width', 'videoWidth', 'VideoWidth')),
        video_height=as_number(read_field(data, 'video_height', 'videoHeight', 'VideoHeight')),
        run_time=as_number(read_field(data, 'run_time', 'runTime', 'RunTime')),
        gps_connected=as_boolean(read_field(data, 'gps_connected', 'gpsConnected', 'GPSConnected')),
        cpu_temp=as_number(read_field(data, 'cpu_temp', 'cpuTemp', 'cpuTempurature', 'CPUTempurature')),
    )


def decode_color_correction(value: Any) -> ColorCorrection | None:
    data = resolve_record(value)
    if data is None:
        return None

    correction = ColorCorrection(
        h=as_number(read_field(data, 'h', 'H')),
        s=as_number(read_field(data, 's', 'S')),
        v=as_number(read_field(data, 'v', 'V')),
    )
    if correction.h is None and correction.s is None and correction.v is None:
        return None
    return correction


def decode_screen_location(value: Any) -> ScreenLocation | None:
    data = resolve_record(value)
    if data is None:
        return None

    return ScreenLocation(
        x=as_number(read_field(data, 'x', 'X')),
        y=as_number(read_field(data, 'y', 'Y')),
        width=as_number(read_field(data, 'width', 'Width')),
        height=as_number(read_field(data, 'height', 'Height')),
    )


def decode_map_location(value: Any) -> MapLocation | None:
    data = resolve_record(value)
    if data is None:
        return None

    return MapLocation(
        x=to_numeric_array(read_field(data, 'x', 'X')),
        y=to_numeric_array(read_field(data, 'y', 'Y')),
        z=to_numeric_array(read_field(data, 'z', 'Z')),
    )


def decode_detection(value: Any) -> Detection | None:
    data = resolve_record(value)
    if data is None:
        return None

    class_id = as_number(read_field(data, 'class', 'class_id', 'classId'))
    return Detection(
        class_id=None if class_id is None else int(class_id),
        prob=as_number(read_field(data, 'prob', 'probability')),
        depth=as_number(read_field(data, 'depth')),
        screen_location=decode_screen_location(read_field(data, 'screenLocation', 'screen_location')),
        map_location=decode_map_location(read_field(data, 'mapLocation', 'map_location')),
    )


def decode_detections(value: Any) -> list[Detection]:
    """Read a detection list from a sequence, a ``{'detections': [...]}`` holder or a single record."""
    if isinstance(value, list | tuple):
        return [detection for detection in map(decode_detection, value) if detection is not None]
    if isinstance(value, cabc.Mapping):
        if isinstance(value.get('detections'), list | tuple):
            return decode_detections(value['detections'])
        if NAME_KEY in value:
            detection = decode_detection(value)
            return [] if detection is None else [detection]
    return []


def _image_payload(raw: Any) -> str | None:
    # The first element decides how a sequence payload is read
    match raw:
        case None | str():
            return raw
        case bytes() | bytearray() | memoryview():
            return bytes_to_base64(bytes(raw))
        case list() | tuple() if raw and isinstance(raw[0], int | float) and not isinstance(raw[0], bool):
            return bytes_to_base64(bytes(0 if (n := as_number(v)) is None else int(n) & 0xFF for v in raw))
        case _:
            return str(raw)


def decode_image(value: Any) -> Image | None:
    data = resolve_record(value)
    if data is None:
        return None

    width = as_number(read_field(data, 'width', 'Width'))
    height = as_number(read_field(data, 'height', 'Height'))
    return Image(
        valid=as_boolean(read_field(data, 'valid', 'Valid')),
        width=None if width is None else int(width),
        height=None if height is None else int(height),
        data=_image_payload(read_field(data, 'data', 'Data')),
    )


def decode_color(value: Any) -> Color | None:
    data = resolve_record(value)
    if data is None:
        return None

    image = decode_image(read_field(data, 'image', 'Image'))
    if image is None:
        return None
    return Color(image=image)


def decode_ai_record(value: Any) -> DataResponse | None:
    """Decode an aggregate record into a partial snapshot, None if nothing in it decodes."""
    data = resolve_record(value)
    if data is None:
        return None

    partial = DataResponse()
    if 'position' in data:
        partial.position = decode_position(data['position'])
    if 'detections' in data:
        partial.detections = decode_detections(data['detections']) or None
    if 'stats' in data:
        partial.stats = decode_stats(data['stats'])
    if 'color' in data:
        partial.color = decode_color(data['color'])
    if 'depth' in data:
        partial.depth = decode_color(data['depth'])

    if partial == DataResponse():
        return None
    return partial


# Encoders


def _or(value: Any, default: Any) -> Any:
    return default if value is None else value


def encode_position(position: Position) -> dict[str, Any]:
    return {
        'frame_count': 0,
        'status': _or(position.status, 0),
        'x': _or(position.x, 0),
        'y': _or(position.y, 0),
        'z': _or(position.z, 0),
        'azimuth': _or(position.azimuth, 0),
        'elevation': _or(position.elevation, 0),
        'rotation': _or(position.rotation, 0),
    }


def encode_offset(offset: Offset) -> dict[str, Any]:
    return {
        'off_x': _or(offset.off_x, 0),
        'off_y': _or(offset.off_y, 0),
        'off_z': _or(offset.off_z, 0),
        'unit': _or(offset.unit, ''),
        'heading_offset': _or(offset.heading_offset, 0),
        'elevation_offset': _or(offset.elevation_offset, 0),
    }


def encode_stats(stats: Statistics) -> dict[str, Any]:
    return {
        'fps': _or(stats.fps, 0),
        'infer_time': _or(stats.invoke_time, 0),
        'video_width': _or(stats.video_width, 0),
        'video_height': _or(stats.video_height, 0),
        'run_time': _or(stats.run_time, 0),
        'gps_connected': _or(stats.gps_connected, False),
        'cpu_temp': _or(stats.cpu_temp, 0),
    }


def encode_color_correction(correction: ColorCorrection) -> dict[str, Any]:
    return {'h': _or(correction.h, 0), 's': _or(correction.s, 0), 'v': _or(correction.v, 0)}


def encode_screen_location(location: ScreenLocation) -> dict[str, Any]:
    return {
        'x': _or(location.x, 0),
        'y': _or(location.y, 0),
        'width': _or(location.width, 0),
        'height': _or(location.height, 0),
    }


def encode_map_location(location: MapLocation) -> dict[str, Any]:
    return {
        'x': encode_numeric_array(location.x),
        'y': encode_numeric_array(location.y),
        'z': encode_numeric_array(location.z),
    }


def encode_detection(detection: Detection) -> dict[str, Any]:
    screen = _or(detection.screen_location, ScreenLocation(x=0, y=0, width=0, height=0))
    world = _or(detection.map_location, MapLocation(x=[], y=[], z=[]))
    return {
        'class_id': _or(detection.class_id, 0),
        'probability': _or(detection.prob, 0),
        'depth': _or(detection.depth, 0),
        'screen_location': encode_record(RecordKind.IMAGE_DETECTION, screen),
        'map_location': encode_record(RecordKind.MAP_DETECTION, world),
    }


def encode_image(image: Image) -> dict[str, Any]:
    return {
        'valid': bool(image.valid),
        'width': _or(image.width, 0),
        'height': _or(image.height, 0),
        'data': base64_to_bytes(image.data) if isinstance(image.data, str) else b'',
    }


def encode_color(color: Color) -> dict[str, Any]:
    return {'image': None if color.image is None else encode_record(RecordKind.IMAGE, color.image)}


def encode_ai_record(record: AIRecord) -> dict[str, Any]:
    return {
        'position': encode_record(RecordKind.POSITION, _or(record.position, Position())),
        'detections': [encode_record(RecordKind.DETECTION, d) for d in record.detections or []],
        'stats': None if record.stats is None else encode_record(RecordKind.STATISTICS, record.stats),
        'color': None if record.color is None else encode_record(RecordKind.COLOR, record.color),
        'depth': None if record.depth is None else encode_record(RecordKind.COLOR, record.depth),
    }


DECODERS: dict[RecordKind, Callable[[Any], Any]] = {
    RecordKind.POSITION: decode_position,
    RecordKind.OFFSET: decode_offset,
    RecordKind.STATISTICS: decode_stats,
    RecordKind.COLOR_CORRECTION: decode_color_correction,
    RecordKind.DETECTION: decode_detection,
    RecordKind.IMAGE_DETECTION: decode_screen_location,
    RecordKind.MAP_DETECTION: decode_map_location,
    RecordKind.COLOR: decode_color,
    RecordKind.IMAGE: decode_image,
    RecordKind.AI_RECORD: decode_ai_record,
}

ENCODERS: dict[RecordKind, Callable[[Any], dict[str, Any]]] = {
    RecordKind.POSITION: encode_position,
    RecordKind.OFFSET: encode_offset,
    RecordKind.STATISTICS: encode_stats,
    RecordKind.COLOR_CORRECTION: encode_color_correction,
    RecordKind.DETECTION: encode_detection,
    RecordKind.IMAGE_DETECTION: encode_screen_location,
    RecordKind.MAP_DETECTION: encode_map_location,
    RecordKind.COLOR: encode_color,
    RecordKind.IMAGE: encode_image,
    RecordKind.AI_RECORD: encode_ai_record,
}

assert set(DECODERS) == set(RecordKind), 'every record kind needs a decoder'
assert set(ENCODERS) == set(RecordKind), 'every record kind needs an encoder'


def decode_record(envelope: Any) -> Any:
    """Decode a named record envelope with the decoder its discriminator selects.

    Returns None for non-mappings, unknown discriminators and records that carry nothing.
    """
    envelope = normalize(envelope)
    if not isinstance(envelope, dict):
        return None
    kind = RecordKind.parse(envelope.get(NAME_KEY))
    if kind is None:
        logger.debug(f'Skipping record with unknown name {envelope.get(NAME_KEY)!r}')
        return None
    return DECODERS[kind](envelope)


def encode_record(kind: RecordKind | str, value: Any) -> dict[str, Any]:
    """Encode ``value`` as a named record envelope ready for msgpack.

    Raises:
        UnsupportedRecordKind: if ``kind`` is not one of the known discriminators.
    """
    record_kind = RecordKind.parse(kind)
    if record_kind is None:
        raise UnsupportedRecordKind(kind)

    payload = {key: nested for key, nested in ENCODERS[record_kind](value).items() if nested is not None}
    return {NAME_KEY: record_kind.value, **payload}
