"""Typed records exchanged with the AI module.

Every field is optional: producers omit whatever they do not know, and decoders
leave such fields as None.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

STATUS_CONNECTED = 0x00000001

# Detection depth reported when the module could not measure it
UNKNOWN_DEPTH = -1


class RecordKind(str, Enum):
    """Discriminators carried in the ``name`` field of a record envelope."""

    POSITION = 'Position'
    OFFSET = 'Offset'
    STATISTICS = 'Statistics'
    COLOR_CORRECTION = 'ColorCorrection'
    DETECTION = 'Detection'
    IMAGE_DETECTION = 'ImageDetection'
    MAP_DETECTION = 'MapDetection'
    COLOR = 'Color'
    IMAGE = 'Image'
    AI_RECORD = 'AIRecord'

    @classmethod
    def parse(cls, name: Any) -> 'RecordKind | None':
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass
class Offset:
    """Mounting offset of the camera or the GPS antenna."""

    off_x: float | None = None
    off_y: float | None = None
    off_z: float | None = None
    unit: str | None = None
    heading_offset: float | None = None
    elevation_offset: float | None = None


@dataclass
class Position:
    status: int | None = None
    x: float | None = None
    y: float | None = None
    z: float | None = None
    azimuth: float | None = None
    elevation: float | None = None
    rotation: float | None = None
    connected: bool | None = None


@dataclass
class Statistics:
    fps: float | None = None
    invoke_time: float | None = None
    video_width: int | None = None
    video_height: int | None = None
    run_time: float | None = None
    gps_connected: bool | None = None
    cpu_temp: float | None = None


@dataclass
class ColorCorrection:
    h: float | None = None
    s: float | None = None
    v: float | None = None


@dataclass
class ScreenLocation:
    """Bounding box in pixels."""

    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None


@dataclass
class MapLocation:
    """World coordinates of a detection; the three lists need not have equal length."""

    x: list[float] | None = None
    y: list[float] | None = None
    z: list[float] | None = None


@dataclass
class Detection:
    class_id: int | None = None
    prob: float | None = None
    depth: float | None = None
    screen_location: ScreenLocation | None = None
    map_location: MapLocation | None = None


@dataclass
class Image:
    """Frame metadata plus the pixel payload as base64 text."""

    valid: bool | None = None
    width: int | None = None
    height: int | None = None
    data: str | None = None


@dataclass
class Color:
    image: Image | None = None


@dataclass
class AIRecord:
    """Aggregate record as sent by the module in one go."""

    position: Position | None = None
    detections: list[Detection] | None = None
    stats: Statistics | None = None
    color: Color | None = None
    depth: Color | None = None


@dataclass
class DataResponse:
    """One decoded frame from the AI module."""

    command: str | None = None
    valid: bool | None = None
    camera_offset: Offset | None = None
    gps_offset: Offset | None = None
    color: Color | None = None
    depth: Color | None = None
    detections: list[Detection] | None = None
    position: Position | None = None
    stats: Statistics | None = None
    color_correction: ColorCorrection | None = None

    def as_dict(self) -> dict[str, Any]:
        return _drop_none(asdict(self))


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value
