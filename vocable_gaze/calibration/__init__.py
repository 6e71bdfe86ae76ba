"""
Gaze Calibration

- CalibrationEngine: 9-point collection, IQR outlier rejection, affine/polynomial fit
- solver:            Gaussian elimination with partial pivoting
- persistence:       Text wire format for CalibrationData

Usage:
    engine = CalibrationEngine(1920, 1080, mode=CalibrationMode.POLYNOMIAL)
    targets = engine.generate_calibration_points(10.0)
    engine.start_calibration()
    engine.add_calibration_sample(0, raw_x, raw_y)
    ...
    if engine.compute_calibration():
        screen_x, screen_y = engine.map_to_screen(raw_x, raw_y)
"""

from .calibrator import CalibrationEngine, NUM_CALIBRATION_POINTS
from .solver import SingularMatrixError, gaussian_elimination, make_basis, solve_least_squares
from .persistence import CorruptCalibrationRecord, decode_calibration, encode_calibration, record_keys

__all__ = [
    'CalibrationEngine',
    'NUM_CALIBRATION_POINTS',
    'SingularMatrixError',
    'gaussian_elimination',
    'make_basis',
    'solve_least_squares',
    'CorruptCalibrationRecord',
    'decode_calibration',
    'encode_calibration',
    'record_keys',
]
