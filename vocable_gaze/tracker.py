"""
Eye Gaze Tracker
Per-frame pipeline: landmarks -> gaze geometry -> smoothing -> calibration,
plus run-time settings and calibration lifecycle

Usage:
    tracker = EyeGazeTracker(detector, storage, 1920, 1080)
    if tracker.initialize(use_gpu=False):
        point = tracker.process_frame()
        if point and point.is_calibrated:
            move_pointer(point.x, point.y)
    tracker.close()
"""

import dataclasses
import logging
import math
import threading
from typing import List, Optional, Tuple

from .calibration import CalibrationEngine
from .config import TrackerConfig
from .filters import GazeSmoother
from .gaze import GazeCalculator
from .models import (
    CalibrationMode,
    CalibrationState,
    EyeSelection,
    FaceLandmarkResult,
    GazePoint,
    SettingsSnapshot,
    SmoothingMode,
    TrackingMethod,
)
from .platform.detector import FaceLandmarkDetector
from .platform.storage import Storage

logger = logging.getLogger(__name__)

KEY_SETTINGS_PREFIX = 'settings_'

_ENUM_FIELDS = {
    'smoothing_mode': SmoothingMode,
    'eye_selection': EyeSelection,
    'tracking_method': TrackingMethod,
    'calibration_mode': CalibrationMode,
}
_FLOAT_FIELDS = ('sensitivity_x', 'sensitivity_y', 'offset_x', 'offset_y')
_BOOL_FIELDS = ('head_pose_compensation', 'hold_last_on_no_face')


def _setting(name: str):
    """Lock-protected property backed by one SettingsSnapshot field"""

    def getter(self):
        return getattr(self.snapshot(), name)

    def setter(self, value):
        self.update(**{name: value})

    return property(getter, setter, doc=f"Run-time setting '{name}'")


class TrackerSettings:
    """
    Mutable run-time settings

    Writes are validated and serialized by a lock; the tracker reads one
    immutable snapshot at the start of each frame.
    """

    smoothing_mode = _setting('smoothing_mode')
    eye_selection = _setting('eye_selection')
    tracking_method = _setting('tracking_method')
    calibration_mode = _setting('calibration_mode')
    sensitivity_x = _setting('sensitivity_x')
    sensitivity_y = _setting('sensitivity_y')
    offset_x = _setting('offset_x')
    offset_y = _setting('offset_y')
    head_pose_compensation = _setting('head_pose_compensation')
    hold_last_on_no_face = _setting('hold_last_on_no_face')

    def __init__(self, **values):
        self._lock = threading.Lock()
        self._values = SettingsSnapshot()
        if values:
            self.update(**values)

    def snapshot(self) -> SettingsSnapshot:
        with self._lock:
            return self._values

    def update(self, **changes):
        """
        Apply several setting changes atomically

        Raises:
            ValueError: on an unknown field or invalid value
        """
        for name, value in changes.items():
            self._validate(name, value)
        with self._lock:
            self._values = dataclasses.replace(self._values, **changes)

    @staticmethod
    def _validate(name: str, value):
        if name in _ENUM_FIELDS:
            if not isinstance(value, _ENUM_FIELDS[name]):
                raise ValueError(f"{name} must be a {_ENUM_FIELDS[name].__name__}, got {value!r}")
        elif name in ('sensitivity_x', 'sensitivity_y'):
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be positive and finite, got {value}")
        elif name in ('offset_x', 'offset_y'):
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        elif name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError(f"{name} must be a bool, got {value!r}")
        else:
            raise ValueError(f"Unknown setting: {name}")

    def save(self, storage: Storage) -> bool:
        """Persist every setting through the storage primitives"""
        snap = self.snapshot()
        ok = True
        for name in _ENUM_FIELDS:
            ok &= storage.save_string(KEY_SETTINGS_PREFIX + name, getattr(snap, name).name)
        for name in _FLOAT_FIELDS:
            ok &= storage.save_float(KEY_SETTINGS_PREFIX + name, getattr(snap, name))
        for name in _BOOL_FIELDS:
            ok &= storage.save_bool(KEY_SETTINGS_PREFIX + name, getattr(snap, name))
        return bool(ok)

    def load(self, storage: Storage):
        """Load persisted settings, keeping current values for missing or invalid ones"""
        snap = self.snapshot()
        changes = {}
        for name, enum_cls in _ENUM_FIELDS.items():
            current = getattr(snap, name)
            text = storage.load_string(KEY_SETTINGS_PREFIX + name, current.name)
            try:
                changes[name] = enum_cls[text]
            except KeyError:
                logger.warning(f"Ignoring stored {name}={text!r}")
        for name in _FLOAT_FIELDS:
            changes[name] = storage.load_float(KEY_SETTINGS_PREFIX + name, getattr(snap, name))
        for name in _BOOL_FIELDS:
            changes[name] = storage.load_bool(KEY_SETTINGS_PREFIX + name, getattr(snap, name))

        for name in _FLOAT_FIELDS:
            try:
                self._validate(name, changes[name])
            except ValueError:
                logger.warning(f"Ignoring stored {name}={changes[name]}")
                changes[name] = getattr(snap, name)
        self.update(**changes)

    def __repr__(self):
        s = self.snapshot()
        return (f"<TrackerSettings(smoothing={s.smoothing_mode.name}, eyes={s.eye_selection.name}, "
                f"method={s.tracking_method.name}, calibration={s.calibration_mode.name})>")


class EyeGazeTracker:
    """
    Gaze pipeline orchestrator

    Owns the smoothing filters, the calibration engine and the settings.
    process_frame() must not be called again before it returns; a second
    concurrent call is refused. Calibration lifecycle methods may be called
    from another thread.
    """

    def __init__(
        self,
        detector: FaceLandmarkDetector,
        storage: Storage,
        screen_width: int,
        screen_height: int,
        settings: Optional[TrackerSettings] = None,
        config: Optional[TrackerConfig] = None,
    ):
        """
        Initialize the tracker

        Args:
            detector: Landmark source
            storage: Persistence for calibration and settings
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            settings: Run-time settings. Defaults to TrackerSettings()
            config: Tuning parameters. Defaults to TrackerConfig.for_session()
        """
        self.detector = detector
        self.storage = storage
        self.settings = settings or TrackerSettings()
        self.config = config or TrackerConfig.for_session()

        self.calculator = GazeCalculator(self.config.gaze)
        self.smoother = GazeSmoother(
            kalman_config=self.config.kalman,
            adaptive_config=self.config.adaptive,
            lerp_alpha=self.config.lerp_alpha,
            combined_weight=self.config.combined_weight,
        )
        self.calibration = CalibrationEngine(
            screen_width,
            screen_height,
            self.config.calibration,
            self.settings.calibration_mode,
        )

        self._lock = threading.RLock()
        self._busy = False
        self._busy_lock = threading.Lock()

        self._last_point: Optional[GazePoint] = None
        self._last_raw: Optional[Tuple[float, float]] = None

        self.frame_count = 0
        self.no_face_count = 0

        logger.info(f"EyeGazeTracker initialized for {screen_width}x{screen_height}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, use_gpu: bool = False) -> bool:
        """
        Initialize the detector, then restore settings and calibration

        Returns:
            False if the detector could not be initialized
        """
        try:
            ok = self.detector.initialize(use_gpu)
        except Exception as e:
            logger.error(f"✗ Detector initialization raised: {e}", exc_info=True)
            ok = False
        if not ok:
            logger.error("✗ Face landmark detector unavailable")
            return False

        self.load_settings()
        with self._lock:
            self.calibration.mode = self.settings.calibration_mode
            self.load_calibration()
        logger.info(f"✓ EyeGazeTracker ready (GPU: {self.detector.is_using_gpu()})")
        return True

    def close(self):
        try:
            self.detector.close()
        except Exception as e:
            logger.error(f"Error closing detector: {e}")
        logger.info(f"EyeGazeTracker closed after {self.frame_count} frames")

    # ------------------------------------------------------------------
    # Per-frame pipeline
    # ------------------------------------------------------------------

    def process_frame(self) -> Optional[GazePoint]:
        """
        Detect landmarks and run them through the pipeline

        Returns:
            GazePoint, or None when there is no estimate
        """
        with self._busy_lock:
            if self._busy:
                logger.warning("process_frame() called while a detection is in flight")
                return None
            self._busy = True

        try:
            if not self.detector.is_ready():
                logger.debug("Detector not ready")
                return None
            try:
                face = self.detector.detect_landmarks()
            except Exception as e:
                logger.error(f"Landmark detection failed: {e}", exc_info=True)
                face = None
            return self.process_landmarks(face)
        finally:
            with self._busy_lock:
                self._busy = False

    def process_landmarks(self, face: Optional[FaceLandmarkResult]) -> Optional[GazePoint]:
        """
        Run one landmark result through geometry, smoothing and calibration

        Args:
            face: Detection result, or None when no face was found

        Returns:
            GazePoint, a held previous point, or None
        """
        settings = self.settings.snapshot()

        with self._lock:
            self._sync_calibration_mode(settings.calibration_mode)
            self.frame_count += 1

            if face is None:
                self.no_face_count += 1
                logger.debug("No face detected")
                return self._hold(settings)

            gaze = self.calculator.calculate_gaze(face, settings)
            if gaze is None:
                logger.debug("No usable eye in frame")
                return self._hold(settings)

            sx, sy = self.smoother.smooth(settings.smoothing_mode, gaze.gaze_x, gaze.gaze_y)
            self._last_raw = (sx, sy)

            mapped = self.calibration.map_to_screen(sx, sy, clamp=self.config.clamp_to_screen)
            if mapped is not None:
                point = GazePoint(mapped[0], mapped[1], is_calibrated=True, gaze=gaze)
            else:
                point = GazePoint(sx, sy, is_calibrated=False, gaze=gaze)
            self._last_point = point
            return point

    def reset_smoothing(self):
        with self._lock:
            self.smoother.reset()
            self._last_point = None
            self._last_raw = None

    @property
    def last_raw_gaze(self) -> Optional[Tuple[float, float]]:
        """Most recent smoothed, uncalibrated gaze"""
        with self._lock:
            return self._last_raw

    # ------------------------------------------------------------------
    # Calibration lifecycle
    # ------------------------------------------------------------------

    @property
    def is_calibrated(self) -> bool:
        return self.calibration.is_calibrated

    @property
    def calibration_state(self) -> CalibrationState:
        return self.calibration.state

    def generate_calibration_points(self, margin_percent: Optional[float] = None) -> List[Tuple[float, float]]:
        with self._lock:
            return self.calibration.generate_calibration_points(margin_percent)

    def start_calibration(self, margin_percent: Optional[float] = None):
        with self._lock:
            self._sync_calibration_mode(self.settings.calibration_mode)
            self.calibration.start_calibration(margin_percent)

    def add_calibration_sample(self, point_index: int, raw_gaze_x: float, raw_gaze_y: float):
        with self._lock:
            self.calibration.add_calibration_sample(point_index, raw_gaze_x, raw_gaze_y)

    def capture_calibration_sample(self, point_index: int) -> bool:
        """
        Add the latest smoothed raw gaze as a sample for a target

        Returns:
            False if no gaze has been computed yet
        """
        with self._lock:
            if self._last_raw is None:
                return False
            self.calibration.add_calibration_sample(point_index, *self._last_raw)
            return True

    def compute_calibration(self) -> bool:
        with self._lock:
            return self.calibration.compute_calibration()

    def clear_calibration_samples(self):
        with self._lock:
            self.calibration.clear_calibration_samples()

    def save_calibration(self) -> bool:
        """Persist the current calibration under its mode name"""
        with self._lock:
            data = self.calibration.export_calibration_data()
        if data is None:
            logger.warning("Cannot save, no calibration computed")
            return False
        return self.storage.save_calibration_data(data, data.mode.name)

    def load_calibration(self) -> bool:
        """Load the stored calibration for the active mode"""
        with self._lock:
            mode = self.calibration.mode
            data = self.storage.load_calibration_data(mode.name)
            if data is None:
                logger.info(f"No stored calibration for {mode.name}, running uncalibrated")
                return False
            if data.mode is not mode:
                logger.warning(f"Stored {mode.name} calibration holds a {data.mode.name} transform, ignoring it")
                return False
            return self.calibration.import_calibration_data(data)

    def clear_calibration(self) -> bool:
        """Unload the calibration and delete it from storage"""
        with self._lock:
            mode = self.calibration.mode
            self.calibration.clear_calibration_data()
            self._last_point = None
            return self.storage.delete_calibration_data(mode.name)

    def set_calibration_mode(self, mode: CalibrationMode) -> bool:
        """
        Switch transform family and load its stored calibration

        Returns:
            True if a stored calibration for the mode was loaded
        """
        self.settings.calibration_mode = mode
        with self._lock:
            if self.calibration.mode is mode:
                return self.calibration.is_calibrated
            self.calibration.mode = mode
            return self.load_calibration()

    # ------------------------------------------------------------------
    # Settings persistence
    # ------------------------------------------------------------------

    def save_settings(self) -> bool:
        ok = self.settings.save(self.storage)
        if not ok:
            logger.warning("Some settings could not be saved")
        return ok

    def load_settings(self):
        self.settings.load(self.storage)
        logger.debug(f"Settings loaded: {self.settings!r}")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        settings = self.settings.snapshot()
        return {
            'detector_ready': self.detector.is_ready(),
            'using_gpu': self.detector.is_using_gpu(),
            'is_calibrated': self.calibration.is_calibrated,
            'calibration_state': self.calibration.state.name,
            'calibration_mode': self.calibration.mode.name,
            'calibration_error': self.calibration.calibration_error,
            'calibration_samples': self.calibration.sample_counts(),
            'smoothing_mode': settings.smoothing_mode.name,
            'eye_selection': settings.eye_selection.name,
            'tracking_method': settings.tracking_method.name,
            'frames_processed': self.frame_count,
            'frames_without_face': self.no_face_count,
        }

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _hold(self, settings: SettingsSnapshot) -> Optional[GazePoint]:
        if settings.hold_last_on_no_face and self._last_point is not None:
            return dataclasses.replace(self._last_point, is_held=True, gaze=None)
        return None

    def _sync_calibration_mode(self, mode: CalibrationMode):
        if self.calibration.mode is not mode:
            logger.info(f"Calibration mode {self.calibration.mode.name} -> {mode.name}")
            self.calibration.mode = mode
            self.load_calibration()

    def __repr__(self):
        status = "calibrated" if self.calibration.is_calibrated else "uncalibrated"
        return f"<EyeGazeTracker({status}, frames={self.frame_count})>"
