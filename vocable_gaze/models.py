"""
Gaze Tracking Data Models
Immutable value types and closed enumerations shared by every pipeline stage
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class SmoothingMode(Enum):
    """Filter applied to the fused raw gaze point"""
    NONE = 'NONE'
    SIMPLE_LERP = 'SIMPLE_LERP'
    KALMAN_FILTER = 'KALMAN_FILTER'
    ADAPTIVE_KALMAN = 'ADAPTIVE_KALMAN'
    COMBINED = 'COMBINED'


class EyeSelection(Enum):
    """Which eye(s) contribute to the fused gaze point"""
    LEFT_EYE_ONLY = 'LEFT_EYE_ONLY'
    RIGHT_EYE_ONLY = 'RIGHT_EYE_ONLY'
    BOTH_EYES = 'BOTH_EYES'


class TrackingMethod(Enum):
    """Per-eye gaze geometry"""
    IRIS_2D = 'IRIS_2D'
    EYEBALL_3D = 'EYEBALL_3D'


class CalibrationMode(Enum):
    """Least-squares transform family fitted during calibration"""
    AFFINE = 'AFFINE'
    POLYNOMIAL = 'POLYNOMIAL'

    @property
    def coefficient_count(self) -> int:
        """Number of coefficients per output axis"""
        return 3 if self is CalibrationMode.AFFINE else 6

    @property
    def degree(self) -> int:
        return 1 if self is CalibrationMode.AFFINE else 2


class CalibrationState(Enum):
    IDLE = 'IDLE'
    COLLECTING = 'COLLECTING'
    COMPUTED = 'COMPUTED'


@dataclass(frozen=True)
class LandmarkPoint:
    """Single landmark, normalised to the detector frame (x, y nominally 0-1)"""
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class FaceLandmarkResult:
    """One successful detection: the full mesh plus frame metadata"""
    landmarks: Tuple[LandmarkPoint, ...]
    frame_width: int
    frame_height: int
    timestamp: float  # milliseconds

    @property
    def aspect_ratio(self) -> float:
        if self.frame_height <= 0:
            return 1.0
        return self.frame_width / self.frame_height


@dataclass(frozen=True)
class HeadPose:
    """Head rotation in degrees (yaw: right positive, pitch: up positive)"""
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0


@dataclass(frozen=True)
class GazeResult:
    """Per-frame gaze geometry in raw, pre-calibration units"""
    gaze_x: float
    gaze_y: float
    left_iris_center: Tuple[float, float]
    right_iris_center: Tuple[float, float]
    left_blink_confidence: float
    right_blink_confidence: float
    head_yaw: float
    head_pitch: float
    head_roll: float
    timestamp: float

    @property
    def head_pose(self) -> HeadPose:
        return HeadPose(self.head_yaw, self.head_pitch, self.head_roll)


@dataclass(frozen=True)
class GazePoint:
    """
    Tracker output for one frame

    Screen pixels when is_calibrated, otherwise the smoothed raw gaze.
    is_held marks a previous point repeated while no face was visible.
    """
    x: float
    y: float
    is_calibrated: bool
    is_held: bool = False
    gaze: Optional[GazeResult] = None


@dataclass(frozen=True)
class SettingsSnapshot:
    """Run-time settings as read once at the start of a frame"""
    smoothing_mode: SmoothingMode = SmoothingMode.KALMAN_FILTER
    eye_selection: EyeSelection = EyeSelection.BOTH_EYES
    tracking_method: TrackingMethod = TrackingMethod.IRIS_2D
    calibration_mode: CalibrationMode = CalibrationMode.AFFINE
    sensitivity_x: float = 1.0
    sensitivity_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    head_pose_compensation: bool = True
    hold_last_on_no_face: bool = True


@dataclass(frozen=True)
class CalibrationSample:
    point_index: int
    raw_gaze_x: float
    raw_gaze_y: float


@dataclass(frozen=True)
class CalibrationData:
    """Fitted calibration transform, as persisted through Storage"""
    transform_x: Tuple[float, ...]
    transform_y: Tuple[float, ...]
    screen_width: int
    screen_height: int
    calibration_error: float
    mode: CalibrationMode

    def is_consistent(self) -> bool:
        """
        Check the coefficient count matches the mode and all values are usable

        Returns:
            True if the record can be loaded as a calibration
        """
        expected = self.mode.coefficient_count
        if len(self.transform_x) != expected or len(self.transform_y) != expected:
            return False
        if self.screen_width <= 0 or self.screen_height <= 0:
            return False
        values = list(self.transform_x) + list(self.transform_y) + [self.calibration_error]
        return all(math.isfinite(v) for v in values)
