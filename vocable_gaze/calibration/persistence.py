"""
Calibration Persistence Format
Text encoding of CalibrationData as six key/value fields per mode key.
Locale-independent: floats use repr(), integers use str().
"""

import logging
import math
from typing import Dict, Mapping, Optional

from ..models import CalibrationData, CalibrationMode

logger = logging.getLogger(__name__)

KEY_CALIBRATION_PREFIX = 'calibration_data_'
KEY_TRANSFORM_X = '_transform_x'
KEY_TRANSFORM_Y = '_transform_y'
KEY_SCREEN_WIDTH = '_screen_width'
KEY_SCREEN_HEIGHT = '_screen_height'
KEY_ERROR = '_error'
KEY_MODE = '_mode'

FIELD_SUFFIXES = (
    KEY_TRANSFORM_X,
    KEY_TRANSFORM_Y,
    KEY_SCREEN_WIDTH,
    KEY_SCREEN_HEIGHT,
    KEY_ERROR,
    KEY_MODE,
)


class CorruptCalibrationRecord(ValueError):
    """A stored calibration record is missing a field or fails to parse"""


def record_keys(mode_key: str) -> Dict[str, str]:
    """Map each field suffix to its full storage key"""
    prefix = KEY_CALIBRATION_PREFIX + mode_key
    return {suffix: prefix + suffix for suffix in FIELD_SUFFIXES}


def _format_float(value: float) -> str:
    return repr(float(value))


def _parse_float(text: str) -> float:
    value = float(text.strip())
    if not math.isfinite(value):
        raise CorruptCalibrationRecord(f"Non-finite value {text!r}")
    return value


def _parse_coefficients(text: str):
    if not text or not text.strip():
        raise CorruptCalibrationRecord("Empty coefficient list")
    return tuple(_parse_float(part) for part in text.split(','))


def encode_calibration(data: CalibrationData, mode_key: str) -> Dict[str, str]:
    """
    Serialize a calibration record

    Args:
        data: Calibration to store
        mode_key: Storage key for the mode (normally the mode name)

    Returns:
        Dict of full storage key -> text value
    """
    keys = record_keys(mode_key)
    return {
        keys[KEY_TRANSFORM_X]: ','.join(_format_float(c) for c in data.transform_x),
        keys[KEY_TRANSFORM_Y]: ','.join(_format_float(c) for c in data.transform_y),
        keys[KEY_SCREEN_WIDTH]: str(int(data.screen_width)),
        keys[KEY_SCREEN_HEIGHT]: str(int(data.screen_height)),
        keys[KEY_ERROR]: _format_float(data.calibration_error),
        keys[KEY_MODE]: data.mode.name,
    }


def decode_calibration(values: Mapping[str, Optional[str]], mode_key: str) -> CalibrationData:
    """
    Parse a calibration record

    Args:
        values: Full storage key -> text value (missing keys absent or None)
        mode_key: Storage key for the mode; must match the stored mode name

    Returns:
        CalibrationData

    Raises:
        CorruptCalibrationRecord: if any field is missing, malformed or inconsistent
    """
    keys = record_keys(mode_key)
    raw = {}
    for suffix, key in keys.items():
        text = values.get(key)
        if text is None:
            raise CorruptCalibrationRecord(f"Missing field {key}")
        raw[suffix] = text

    try:
        mode = CalibrationMode[raw[KEY_MODE].strip()]
    except KeyError:
        raise CorruptCalibrationRecord(f"Unknown calibration mode {raw[KEY_MODE]!r}")
    if mode.name != mode_key:
        raise CorruptCalibrationRecord(f"Record stored under {mode_key} holds a {mode.name} transform")

    try:
        data = CalibrationData(
            transform_x=_parse_coefficients(raw[KEY_TRANSFORM_X]),
            transform_y=_parse_coefficients(raw[KEY_TRANSFORM_Y]),
            screen_width=int(raw[KEY_SCREEN_WIDTH].strip()),
            screen_height=int(raw[KEY_SCREEN_HEIGHT].strip()),
            calibration_error=_parse_float(raw[KEY_ERROR]),
            mode=mode,
        )
    except ValueError as e:
        raise CorruptCalibrationRecord(str(e)) from e

    if not data.is_consistent():
        raise CorruptCalibrationRecord(
            f"Inconsistent record: mode {mode.name} with "
            f"{len(data.transform_x)}/{len(data.transform_y)} coefficients, "
            f"screen {data.screen_width}x{data.screen_height}"
        )
    return data
