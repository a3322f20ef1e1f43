"""Command strings understood by the AI module.

Set commands carry their argument after a comma: ``'set_camera_offset,0.1,0.0,0.2,m'``.
"""

GET_DATA = 'get_data'
GET_CAMERA_OFFSET = 'get_camera_offset'
SET_CAMERA_OFFSET = 'set_camera_offset'
GET_GPS_OFFSET = 'get_gps_offset'
SET_GPS_OFFSET = 'set_gps_offset'
GET_COLOR_CORRECTION = 'get_color_correction'
SET_COLOR_CORRECTION = 'set_color_correction'


def with_argument(command: str, argument: str) -> str:
    return f'{command},{argument}'
