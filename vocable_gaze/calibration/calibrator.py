"""
Gaze Calibration Engine
9-point sample collection, IQR outlier rejection and least-squares fitting
of an affine or polynomial raw-gaze to screen transform
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

from ..config import CalibrationConfig
from ..models import CalibrationData, CalibrationMode, CalibrationState
from .solver import SingularMatrixError, make_basis, solve_least_squares

logger = logging.getLogger(__name__)

NUM_CALIBRATION_POINTS = 9


class CalibrationEngine:
    """
    Calibration state machine: IDLE -> COLLECTING -> COMPUTED -> IDLE

    Samples are bucketed per target. compute_calibration() fits one
    coefficient vector per screen axis from the mean accepted raw gaze of
    each bucket. Failed computes never touch the current calibration.
    """

    def __init__(
        self,
        screen_width: int,
        screen_height: int,
        config: Optional[CalibrationConfig] = None,
        mode: CalibrationMode = CalibrationMode.AFFINE,
    ):
        """
        Initialize calibration engine

        Args:
            screen_width: Target screen width in pixels
            screen_height: Target screen height in pixels
            config: Calibration parameters
            mode: Transform family to fit
        """
        if screen_width <= 0 or screen_height <= 0:
            raise ValueError(f"Invalid screen size {screen_width}x{screen_height}")

        self.screen_width = screen_width
        self.screen_height = screen_height
        self.config = config if config else CalibrationConfig()
        self._mode = mode

        self._buckets: Dict[int, Deque[Tuple[float, float]]] = self._new_buckets()
        self._targets = self.generate_calibration_points()
        self._state = CalibrationState.IDLE

        self._data: Optional[CalibrationData] = None
        self._basis = None
        self._coeff_x: Optional[np.ndarray] = None
        self._coeff_y: Optional[np.ndarray] = None

        logger.info(f"CalibrationEngine initialized: {screen_width}x{screen_height}, mode {mode.name}")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def mode(self) -> CalibrationMode:
        return self._mode

    @mode.setter
    def mode(self, mode: CalibrationMode):
        """Changing mode drops collected samples; loaded data of another mode is unloaded"""
        if mode is self._mode:
            return
        self._mode = mode
        self.clear_calibration_samples()
        if self._data is not None and self._data.mode is not mode:
            self.clear_calibration_data()
        self._state = CalibrationState.IDLE

    @property
    def is_calibrated(self) -> bool:
        return self._data is not None

    @property
    def calibration_error(self) -> Optional[float]:
        return self._data.calibration_error if self._data else None

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def generate_calibration_points(self, margin_percent: Optional[float] = None) -> List[Tuple[float, float]]:
        """
        Lay out the 9 calibration targets on a 3x3 grid, row-major

        The most recent layout is the one compute_calibration() fits against.

        Args:
            margin_percent: Edge margin as percent of each screen dimension

        Returns:
            List of (x, y) screen coordinates, top-left to bottom-right
        """
        if margin_percent is None:
            margin_percent = self.config.margin_percent
        if not 0.0 <= margin_percent < 50.0:
            raise ValueError(f"margin_percent must be in [0, 50), got {margin_percent}")

        m = margin_percent / 100.0
        xs = [m * self.screen_width, 0.5 * self.screen_width, (1.0 - m) * self.screen_width]
        ys = [m * self.screen_height, 0.5 * self.screen_height, (1.0 - m) * self.screen_height]
        self._targets = [(x, y) for y in ys for x in xs]
        return list(self._targets)

    def start_calibration(self, margin_percent: Optional[float] = None):
        """Begin a new session, discarding samples from any previous one

        Args:
            margin_percent: Lay out the targets with this margin first
        """
        if margin_percent is not None:
            self.generate_calibration_points(margin_percent)
        self._buckets = self._new_buckets()
        self._state = CalibrationState.COLLECTING
        logger.info(f"Calibration started ({self._mode.name})")

    def add_calibration_sample(self, point_index: int, raw_gaze_x: float, raw_gaze_y: float):
        """
        Append a raw gaze sample to a target's bucket

        Args:
            point_index: Target index 0-8
            raw_gaze_x: Raw gaze x
            raw_gaze_y: Raw gaze y
        """
        if not 0 <= point_index < NUM_CALIBRATION_POINTS:
            raise ValueError(f"point_index must be 0-{NUM_CALIBRATION_POINTS - 1}, got {point_index}")
        if not (np.isfinite(raw_gaze_x) and np.isfinite(raw_gaze_y)):
            logger.debug(f"Dropping non-finite calibration sample for point {point_index}")
            return

        if self._state is not CalibrationState.COLLECTING:
            self._state = CalibrationState.COLLECTING
        self._buckets[point_index].append((float(raw_gaze_x), float(raw_gaze_y)))

    def sample_counts(self) -> List[int]:
        return [len(self._buckets[i]) for i in range(NUM_CALIBRATION_POINTS)]

    def clear_calibration_samples(self):
        """Drop collected samples; a computed calibration is kept"""
        self._buckets = self._new_buckets()
        if self._state is CalibrationState.COLLECTING:
            self._state = CalibrationState.COMPUTED if self._data else CalibrationState.IDLE

    def reset(self):
        """Return to IDLE, keeping any computed calibration"""
        self._buckets = self._new_buckets()
        self._state = CalibrationState.IDLE

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def reject_outliers(self, samples: np.ndarray) -> np.ndarray:
        """
        Keep samples inside the IQR fence on both axes

        Args:
            samples: (N, 2) raw gaze samples

        Returns:
            (M, 2) accepted samples
        """
        if len(samples) == 0:
            return samples
        q1, q3 = np.percentile(samples, [25, 75], axis=0)
        iqr = q3 - q1
        k = self.config.iqr_multiplier
        lower = q1 - k * iqr
        upper = q3 + k * iqr
        mask = np.all((samples >= lower) & (samples <= upper), axis=1)
        return samples[mask]

    def compute_calibration(self) -> bool:
        """
        Fit the transform from the collected samples

        Returns:
            True on success; False leaves the current calibration untouched
        """
        means = []
        for i in range(NUM_CALIBRATION_POINTS):
            samples = np.array(self._buckets[i], dtype=np.float64).reshape(-1, 2)
            accepted = self.reject_outliers(samples)
            if len(accepted) < self.config.min_samples_per_point:
                logger.warning(
                    f"✗ Calibration point {i}: {len(accepted)}/{len(samples)} samples accepted, "
                    f"{self.config.min_samples_per_point} required"
                )
                return False
            rejected = len(samples) - len(accepted)
            if rejected:
                logger.debug(f"Point {i}: rejected {rejected} outlier samples")
            means.append(accepted.mean(axis=0))

        raw = np.array(means)
        targets = np.array(self._targets, dtype=np.float64)

        basis = make_basis(self._mode)
        design = basis.transform(raw)
        try:
            coeff_x = solve_least_squares(design, targets[:, 0], self.config.singular_tolerance)
            coeff_y = solve_least_squares(design, targets[:, 1], self.config.singular_tolerance)
        except SingularMatrixError as e:
            logger.warning(f"✗ Calibration system is singular: {e}")
            return False

        predicted = np.column_stack([design @ coeff_x, design @ coeff_y])
        error = float(np.mean(np.linalg.norm(predicted - targets, axis=1)))

        self._basis = basis
        self._coeff_x = coeff_x
        self._coeff_y = coeff_y
        self._data = CalibrationData(
            transform_x=tuple(float(c) for c in coeff_x),
            transform_y=tuple(float(c) for c in coeff_y),
            screen_width=self.screen_width,
            screen_height=self.screen_height,
            calibration_error=error,
            mode=self._mode,
        )
        self._state = CalibrationState.COMPUTED
        logger.info(f"✓ Calibration computed ({self._mode.name}), mean error {error:.1f} px")
        return True

    def map_to_screen(self, raw_gaze_x: float, raw_gaze_y: float,
                      clamp: bool = False) -> Optional[Tuple[float, float]]:
        """
        Apply the fitted transform

        Args:
            raw_gaze_x: Raw gaze x
            raw_gaze_y: Raw gaze y
            clamp: Clip the result to the screen

        Returns:
            Screen (x, y) in pixels, or None if uncalibrated
        """
        if self._basis is None:
            return None
        features = self._basis.transform(np.array([[raw_gaze_x, raw_gaze_y]], dtype=np.float64))[0]
        x = float(features @ self._coeff_x)
        y = float(features @ self._coeff_y)
        if clamp:
            x = float(np.clip(x, 0, self.screen_width - 1))
            y = float(np.clip(y, 0, self.screen_height - 1))
        return x, y

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_calibration_data(self) -> Optional[CalibrationData]:
        return self._data

    def import_calibration_data(self, data: CalibrationData) -> bool:
        """
        Load a persisted calibration

        Args:
            data: Calibration record

        Returns:
            True if loaded; False if the record is inconsistent
        """
        if data is None or not data.is_consistent():
            logger.warning(f"Rejecting inconsistent calibration data: {data!r}")
            return False

        if data.screen_width != self.screen_width or data.screen_height != self.screen_height:
            logger.warning(
                f"Calibration was made for {data.screen_width}x{data.screen_height}, "
                f"screen is {self.screen_width}x{self.screen_height}"
            )

        self._mode = data.mode
        self._basis = make_basis(data.mode)
        self._coeff_x = np.array(data.transform_x, dtype=np.float64)
        self._coeff_y = np.array(data.transform_y, dtype=np.float64)
        self._data = data
        if self._state is not CalibrationState.COLLECTING:
            self._state = CalibrationState.COMPUTED
        logger.info(f"✓ Calibration imported ({data.mode.name}, error {data.calibration_error:.1f} px)")
        return True

    def clear_calibration_data(self):
        self._data = None
        self._basis = None
        self._coeff_x = None
        self._coeff_y = None
        if self._state is CalibrationState.COMPUTED:
            self._state = CalibrationState.IDLE

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _new_buckets(self) -> Dict[int, Deque[Tuple[float, float]]]:
        cap = self.config.max_samples_per_point
        return {i: deque(maxlen=cap) for i in range(NUM_CALIBRATION_POINTS)}

    def __repr__(self):
        return f"<CalibrationEngine(state={self._state.name}, mode={self._mode.name}, samples={sum(self.sample_counts())})>"
