import struct

import pytest

from fieldview.wire import (
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
    UnsupportedRecordKind,
    decode_record,
    encode_record,
)
from fieldview.wire.codecs import (
    decode_color,
    decode_color_correction,
    decode_detection,
    decode_detections,
    decode_image,
    decode_map_location,
    decode_offset,
    decode_position,
    decode_stats,
)


def test_position_connected_from_status_bit():
    position = decode_position({'status': 3, 'x': 1, 'y': '2', 'Z': 3.5})
    assert position == Position(status=3, x=1, y=2, z=3.5, connected=True)
    assert decode_position({'Status': 2}).connected is False


def test_position_connected_falls_back_to_explicit_field():
    assert decode_position({'connected': 'true'}).connected is True
    assert decode_position({'Connected': 0}).connected is False
    assert decode_position({'x': 1}).connected is None


def test_status_wins_over_explicit_connected():
    assert decode_position({'status': 0, 'connected': True}).connected is False


def test_first_alias_wins():
    assert decode_position({'X': 2, 'x': 1}).x == 1
    assert decode_offset({'off_x': 5, 'X': 4}).off_x == 4


@pytest.mark.parametrize('alias', ['x', 'X', 'off_x', 'offX'])
def test_offset_x_aliases(alias):
    assert decode_offset({alias: 0.25}).off_x == 0.25


def test_offset_fields():
    offset = decode_offset({'offY': 1, 'off_z': 2, 'unit': 'cm', 'headingOffset': 90, 'elevation_offset': -3})
    assert offset == Offset(off_y=1, off_z=2, unit='cm', heading_offset=90, elevation_offset=-3)


@pytest.mark.parametrize(
    'raw',
    [
        {'fps': 30, 'infer_time': 12.5, 'video_width': 640, 'video_height': 480, 'run_time': 100,
         'gps_connected': True, 'cpu_temp': 55},
        {'FPS': 30, 'inferTime': 12.5, 'videoWidth': 640, 'videoHeight': 480, 'runTime': 100,
         'gpsConnected': 1, 'cpuTemp': 55},
        {'fps': '30', 'InferTime': 12.5, 'VideoWidth': 640, 'VideoHeight': 480, 'RunTime': 100,
         'GPSConnected': 'true', 'CPUTempurature': 55},
    ],
)
def test_stats_naming_conventions(raw):
    assert decode_stats(raw) == Statistics(
        fps=30, invoke_time=12.5, video_width=640, video_height=480, run_time=100, gps_connected=True, cpu_temp=55
    )


def test_color_correction_all_absent_is_none():
    assert decode_color_correction({'unrelated': 1}) is None
    assert decode_color_correction({'H': 10}) == ColorCorrection(h=10)
    assert decode_color_correction({'h': 0, 's': 0, 'v': 0}) == ColorCorrection(h=0, s=0, v=0)


def test_non_mappings_decode_to_none():
    for decoder in (decode_position, decode_offset, decode_stats, decode_detection, decode_image, decode_color):
        assert decoder(None) is None
        assert decoder([1, 2]) is None
        assert decoder('text') is None


def test_empty_mapping_decodes_to_empty_record():
    assert decode_position({}) == Position()
    assert decode_stats({}) == Statistics()


def test_non_finite_numbers_are_omitted():
    position = decode_position({'x': float('nan'), 'y': float('inf'), 'z': 'abc'})
    assert position.x is None and position.y is None and position.z is None


def test_detection_with_nested_locations():
    raw = {
        'name': 'Detection',
        'classId': 2,
        'probability': 0.75,
        'depth': -1,
        'screenLocation': {'name': 'ImageDetection', 'X': 10, 'y': 20, 'Width': 30, 'height': 40},
        'map_location': {'x': [1, float('nan'), 2], 'y': [3], 'Z': []},
    }
    assert decode_detection(raw) == Detection(
        class_id=2,
        prob=0.75,
        depth=-1,
        screen_location=ScreenLocation(x=10, y=20, width=30, height=40),
        map_location=MapLocation(x=[1, 2], y=[3], z=[]),
    )


def test_detection_class_alias():
    assert decode_detection({'class': 5}).class_id == 5


def test_map_location_sequences_may_differ_in_length():
    assert decode_map_location({'x': [1, 2, 3], 'y': 4}) == MapLocation(x=[1, 2, 3], y=[4], z=[])


def test_decode_detections_shapes():
    assert len(decode_detections([{'prob': 0.1}, None, {'prob': 0.2}])) == 2
    assert len(decode_detections({'detections': [{'prob': 0.1}]})) == 1
    assert len(decode_detections({'name': 'Detection', 'prob': 0.3})) == 1
    assert decode_detections({'prob': 0.3}) == []
    assert decode_detections(None) == []


def test_image_payload_from_bytes():
    image = decode_image({'Valid': 1, 'width': 2, 'height': 1, 'data': b'\x01\x02'})
    assert image == Image(valid=True, width=2, height=1, data='AQI=')


def test_image_payload_from_number_list():
    assert decode_image({'data': [1, 2, 258]}).data == 'AQIC'
    assert decode_image({'data': [1, float('nan')]}).data == 'AQA='


def test_image_payload_text_and_fallback():
    assert decode_image({'Data': 'AQI='}).data == 'AQI='
    assert decode_image({'data': {'a': 1}}).data == "{'a': 1}"
    assert decode_image({'data': ['a', 1]}).data == "['a', 1]"
    assert decode_image({}).data is None


def test_color_needs_an_image():
    assert decode_color({'image': {'width': 4}}) == Color(image=Image(width=4))
    assert decode_color({'Image': None}) is None
    assert decode_color({}) is None


def test_decode_record_dispatches_on_name():
    assert decode_record({'name': 'Position', 'x': 1}) == Position(x=1)
    assert decode_record({'name': 'ImageDetection', 'x': 1}) == ScreenLocation(x=1)
    assert decode_record({'name': 'Nope', 'x': 1}) is None
    assert decode_record({'x': 1}) is None
    assert decode_record([1]) is None


def test_decode_record_materialises_tensors():
    raw = {'name': 'MapDetection', 'x': {'nd': True, 'type': '<f4', 'shape': [2], 'data': struct.pack('<2f', 1, 2)}}
    assert decode_record(raw) == MapLocation(x=[1.0, 2.0], y=[], z=[])


def test_decode_ai_record():
    raw = {
        'name': 'AIRecord',
        'position': {'status': 1, 'x': 5},
        'detections': [{'prob': 0.5}],
        'stats': {'fps': 15},
        'depth': {'image': {'width': 8}},
    }
    assert decode_record(raw) == DataResponse(
        position=Position(status=1, x=5, connected=True),
        detections=[Detection(prob=0.5)],
        stats=Statistics(fps=15),
        depth=Color(image=Image(width=8)),
    )


def test_decode_ai_record_with_nothing_is_none():
    assert decode_record({'name': 'AIRecord', 'detections': [], 'color': 1}) is None


def test_encode_record_prefixes_name_and_fills_defaults():
    assert encode_record(RecordKind.OFFSET, Offset(off_x=1.5)) == {
        'name': 'Offset',
        'off_x': 1.5,
        'off_y': 0,
        'off_z': 0,
        'unit': '',
        'heading_offset': 0,
        'elevation_offset': 0,
    }


def test_encode_position_adds_frame_count():
    envelope = encode_record('Position', Position(x=1, y=2))
    assert envelope['frame_count'] == 0
    assert envelope['status'] == 0
    assert 'connected' not in envelope


def test_encode_stats_uses_wire_names():
    envelope = encode_record(RecordKind.STATISTICS, Statistics(invoke_time=3))
    assert envelope['infer_time'] == 3
    assert envelope['gps_connected'] is False


def test_encode_detection_embeds_default_locations():
    envelope = encode_record(RecordKind.DETECTION, Detection(class_id=1))
    assert envelope['probability'] == 0
    assert envelope['screen_location'] == {'name': 'ImageDetection', 'x': 0, 'y': 0, 'width': 0, 'height': 0}
    assert envelope['map_location']['name'] == 'MapDetection'
    for axis in 'xyz':
        assert envelope['map_location'][axis] == {'nd': True, 'type': '<f4', 'kind': '', 'shape': [0], 'data': b''}


def test_encode_image_payload_bytes():
    assert encode_record(RecordKind.IMAGE, Image(data='AQI='))['data'] == b'\x01\x02'
    assert encode_record(RecordKind.IMAGE, Image())['data'] == b''
    assert encode_record(RecordKind.IMAGE, Image())['valid'] is False


def test_encode_strips_absent_fields():
    assert encode_record(RecordKind.COLOR, Color()) == {'name': 'Color'}
    envelope = encode_record(RecordKind.AI_RECORD, AIRecord(position=Position(x=1)))
    assert set(envelope) == {'name', 'position', 'detections'}
    assert envelope['detections'] == []


def test_encode_unknown_kind_raises():
    with pytest.raises(UnsupportedRecordKind, match='Bogus'):
        encode_record('Bogus', Position())


@pytest.mark.parametrize(
    'kind,value,expected',
    [
        (RecordKind.POSITION, Position(status=1, x=1.5), Position(status=1, x=1.5, y=0, z=0, azimuth=0, elevation=0,
                                                                  rotation=0, connected=True)),
        (RecordKind.OFFSET, Offset(unit='m', off_z=2), Offset(off_x=0, off_y=0, off_z=2, unit='m', heading_offset=0,
                                                             elevation_offset=0)),
        (RecordKind.STATISTICS, Statistics(fps=30, gps_connected=True), Statistics(
            fps=30, invoke_time=0, video_width=0, video_height=0, run_time=0, gps_connected=True, cpu_temp=0)),
        (RecordKind.COLOR_CORRECTION, ColorCorrection(h=10), ColorCorrection(h=10, s=0, v=0)),
        (RecordKind.IMAGE_DETECTION, ScreenLocation(x=4), ScreenLocation(x=4, y=0, width=0, height=0)),
        (RecordKind.MAP_DETECTION, MapLocation(x=[1.5, -2.0]), MapLocation(x=[1.5, -2.0], y=[], z=[])),
        (RecordKind.IMAGE, Image(valid=True, data='AQI='), Image(valid=True, width=0, height=0, data='AQI=')),
        (RecordKind.COLOR, Color(image=Image(width=3)), Color(image=Image(valid=False, width=3, height=0, data=''))),
        (
            RecordKind.DETECTION,
            Detection(class_id=3, prob=0.5, screen_location=ScreenLocation(x=1, y=2, width=3, height=4)),
            Detection(
                class_id=3,
                prob=0.5,
                depth=0,
                screen_location=ScreenLocation(x=1, y=2, width=3, height=4),
                map_location=MapLocation(x=[], y=[], z=[]),
            ),
        ),
    ],
)
def test_round_trip_with_defaults(kind, value, expected):
    assert decode_record(encode_record(kind, value)) == expected


def test_ai_record_round_trip():
    record = AIRecord(
        position=Position(x=1),
        detections=[Detection(prob=0.25)],
        stats=Statistics(fps=10),
        color=Color(image=Image(data='AQI=')),
    )
    decoded = decode_record(encode_record(RecordKind.AI_RECORD, record))
    assert decoded.position.x == 1
    assert decoded.detections[0].prob == 0.25
    assert decoded.stats.fps == 10
    assert decoded.color.image.data == 'AQI='
    assert decoded.depth is None
