"""
Vocable Gaze
Webcam eye-gaze pointing for AAC interfaces

Architecture:
- models:      Immutable value types and enumerations
- config:      Dataclass tuning parameters
- filters:     Kalman, adaptive Kalman and per-mode smoothing
- calibration: 9-point calibration engine and persistence format
- gaze:        Head pose, iris position, blink detection, two-eye fusion
- platform:    MediaPipe detector and SQLAlchemy storage collaborators
- tracker:     EyeGazeTracker per-frame pipeline

Usage:
    detector = MediaPipeFaceLandmarkDetector()
    storage = SqlStorage('sqlite:///vocable_gaze.db')
    tracker = EyeGazeTracker(detector, storage, 1920, 1080)
    tracker.initialize()
    detector.set_frame(bgr_frame)
    point = tracker.process_frame()
"""

from .config import (
    AdaptiveKalmanConfig,
    CalibrationConfig,
    GazeConfig,
    KalmanConfig,
    TrackerConfig,
)
from .models import (
    CalibrationData,
    CalibrationMode,
    CalibrationSample,
    CalibrationState,
    EyeSelection,
    FaceLandmarkResult,
    GazePoint,
    GazeResult,
    HeadPose,
    LandmarkPoint,
    SettingsSnapshot,
    SmoothingMode,
    TrackingMethod,
)
from .filters import AdaptiveKalmanFilter, GazeSmoother, KalmanFilter2D
from .calibration import CalibrationEngine
from .gaze import GazeCalculator
from .platform import FaceLandmarkDetector, MediaPipeFaceLandmarkDetector, SqlStorage, Storage
from .tracker import EyeGazeTracker, TrackerSettings

__all__ = [
    'AdaptiveKalmanConfig',
    'CalibrationConfig',
    'GazeConfig',
    'KalmanConfig',
    'TrackerConfig',
    'CalibrationData',
    'CalibrationMode',
    'CalibrationSample',
    'CalibrationState',
    'EyeSelection',
    'FaceLandmarkResult',
    'GazePoint',
    'GazeResult',
    'HeadPose',
    'LandmarkPoint',
    'SettingsSnapshot',
    'SmoothingMode',
    'TrackingMethod',
    'AdaptiveKalmanFilter',
    'GazeSmoother',
    'KalmanFilter2D',
    'CalibrationEngine',
    'GazeCalculator',
    'FaceLandmarkDetector',
    'MediaPipeFaceLandmarkDetector',
    'SqlStorage',
    'Storage',
    'EyeGazeTracker',
    'TrackerSettings',
]

__version__ = '1.0.0'
