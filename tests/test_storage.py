"""
Storage tests against an in-memory SQLite database
"""

import pytest

from vocable_gaze.calibration import encode_calibration, record_keys
from vocable_gaze.models import CalibrationData, CalibrationMode
from vocable_gaze.platform import FrameClock, SqlStorage


def _data(mode=CalibrationMode.AFFINE):
    n = mode.coefficient_count
    return CalibrationData(
        transform_x=tuple(0.1 * (i + 1) for i in range(n)),
        transform_y=tuple(-0.3 * (i + 1) for i in range(n)),
        screen_width=1280,
        screen_height=800,
        calibration_error=12.5,
        mode=mode,
    )


# ----------------------------------------------------------------------
# Calibration records
# ----------------------------------------------------------------------

def test_calibration_round_trip(storage):
    data = _data()
    assert storage.save_calibration_data(data, 'AFFINE')
    assert storage.load_calibration_data('AFFINE') == data


def test_modes_are_stored_independently(storage):
    affine, poly = _data(), _data(CalibrationMode.POLYNOMIAL)
    storage.save_calibration_data(affine, 'AFFINE')
    storage.save_calibration_data(poly, 'POLYNOMIAL')
    assert storage.load_calibration_data('AFFINE') == affine
    assert storage.load_calibration_data('POLYNOMIAL') == poly


def test_save_overwrites_previous_record(storage):
    storage.save_calibration_data(_data(), 'AFFINE')
    newer = CalibrationData((1.0, 2.0, 3.0), (4.0, 5.0, 6.0), 1920, 1080, 1.0, CalibrationMode.AFFINE)
    storage.save_calibration_data(newer, 'AFFINE')
    assert storage.load_calibration_data('AFFINE') == newer


def test_missing_record_loads_as_none(storage):
    assert storage.load_calibration_data('AFFINE') is None


def test_partial_record_is_rejected(storage):
    values = encode_calibration(_data(), 'AFFINE')
    del values[record_keys('AFFINE')['_screen_height']]
    assert storage.put_many(values)
    assert storage.load_calibration_data('AFFINE') is None


def test_coefficient_count_mismatch_is_rejected(storage):
    values = encode_calibration(_data(), 'AFFINE')
    values[record_keys('AFFINE')['_mode']] = 'POLYNOMIAL'
    storage.put_many(values)
    assert storage.load_calibration_data('AFFINE') is None


def test_unknown_mode_is_rejected(storage):
    values = encode_calibration(_data(), 'AFFINE')
    values[record_keys('AFFINE')['_mode']] = 'SPLINE'
    storage.put_many(values)
    assert storage.load_calibration_data('AFFINE') is None


def test_delete_calibration(storage):
    storage.save_calibration_data(_data(), 'AFFINE')
    storage.save_calibration_data(_data(CalibrationMode.POLYNOMIAL), 'POLYNOMIAL')
    assert storage.delete_calibration_data('AFFINE')
    assert storage.load_calibration_data('AFFINE') is None
    assert storage.load_calibration_data('POLYNOMIAL') is not None
    for key in record_keys('AFFINE').values():
        assert storage.load_string(key, None) is None


def test_file_database_persists_across_connections(tmp_path):
    url = f"sqlite:///{tmp_path / 'gaze.db'}"
    first = SqlStorage(url)
    first.save_calibration_data(_data(), 'AFFINE')
    first.save_string('settings_smoothing_mode', 'COMBINED')
    first.close()

    second = SqlStorage(url)
    assert second.load_calibration_data('AFFINE') == _data()
    assert second.load_string('settings_smoothing_mode', 'NONE') == 'COMBINED'
    second.close()


# ----------------------------------------------------------------------
# Primitives
# ----------------------------------------------------------------------

def test_primitive_defaults(storage):
    assert storage.load_string('missing', 'fallback') == 'fallback'
    assert storage.load_float('missing', 1.5) == 1.5
    assert storage.load_bool('missing', True) is True
    assert storage.load_int('missing', 7) == 7


def test_primitive_round_trip(storage):
    assert storage.save_string('name', 'gaze')
    assert storage.save_float('gain', 0.1 + 0.2)
    assert storage.save_bool('flag', False)
    assert storage.save_int('count', -42)
    assert storage.load_string('name', '') == 'gaze'
    assert storage.load_float('gain', 0.0) == 0.1 + 0.2
    assert storage.load_bool('flag', True) is False
    assert storage.load_int('count', 0) == -42


def test_malformed_primitives_fall_back(storage):
    storage.save_string('gain', 'fast')
    storage.save_string('flag', 'yes')
    storage.save_string('count', '1.5')
    assert storage.load_float('gain', 2.0) == 2.0
    assert storage.load_bool('flag', True) is True
    assert storage.load_int('count', 3) == 3


# ----------------------------------------------------------------------
# FrameClock
# ----------------------------------------------------------------------

def test_frame_clock_is_strictly_increasing():
    clock = FrameClock()
    stamps = [clock.now_ms() for _ in range(1000)]
    assert all(b > a for a, b in zip(stamps, stamps[1:]))
    assert stamps[0] >= 0.0
    assert clock.get_stats()['total_calls'] == 1000


def test_frame_clock_reset():
    clock = FrameClock()
    clock.now_ms()
    clock.reset()
    assert clock.get_stats() == {'total_calls': 0, 'last_timestamp_ms': None}


@pytest.mark.parametrize('url', ['sqlite://', 'sqlite:///:memory:'])
def test_in_memory_urls(url):
    store = SqlStorage(url)
    store.save_string('k', 'v')
    assert store.load_string('k', None) == 'v'
    store.close()


def test_record_under_wrong_mode_key_is_rejected(storage):
    assert storage.save_calibration_data(_data(CalibrationMode.AFFINE), 'POLYNOMIAL')
    assert storage.load_calibration_data('POLYNOMIAL') is None
