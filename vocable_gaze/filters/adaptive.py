"""
Adaptive Kalman Filter
Scales measurement noise from estimated gaze velocity so fixations stay
steady while saccades are tracked with low lag
"""

import logging
import math
import numpy as np
from typing import Optional, Tuple

from ..config import AdaptiveKalmanConfig
from .kalman import KalmanFilter2D

logger = logging.getLogger(__name__)


def _smoothstep(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return t * t * (3.0 - 2.0 * t)


class AdaptiveKalmanFilter:
    """
    Velocity-adaptive wrapper around KalmanFilter2D

    Velocity is an exponentially-weighted moving average of the
    frame-to-frame measurement displacement. The noise multiplier sits at
    min_multiplier below the dwell threshold, at max_multiplier above the
    saccade threshold and follows a smoothstep in between. The effective
    measurement noise is R_base / multiplier.
    """

    def __init__(self, config: Optional[AdaptiveKalmanConfig] = None):
        self.config = config if config else AdaptiveKalmanConfig()

        if self.config.min_multiplier <= 0 or self.config.max_multiplier < self.config.min_multiplier:
            raise ValueError(
                f"Invalid multiplier range [{self.config.min_multiplier}, {self.config.max_multiplier}]"
            )
        if self.config.saccade_threshold <= self.config.dwell_threshold:
            raise ValueError("saccade_threshold must be greater than dwell_threshold")

        self.kalman = KalmanFilter2D(self.config.kalman)
        self.velocity = 0.0
        self.multiplier = self.config.min_multiplier
        self._last_measurement: Optional[Tuple[float, float]] = None

    def noise_multiplier(self, velocity: float) -> float:
        """
        Map a velocity magnitude to a measurement-noise multiplier

        Args:
            velocity: Gaze speed in raw units per frame

        Returns:
            Multiplier in [min_multiplier, max_multiplier]
        """
        lo, hi = self.config.min_multiplier, self.config.max_multiplier
        if not math.isfinite(velocity):
            return hi if velocity > 0 else lo
        span = self.config.saccade_threshold - self.config.dwell_threshold
        t = (velocity - self.config.dwell_threshold) / span
        return lo + (hi - lo) * _smoothstep(t)

    def reset(self, x: Optional[float] = None, y: Optional[float] = None):
        self.kalman.reset(x, y)
        self.velocity = 0.0
        self.multiplier = self.config.min_multiplier
        self._last_measurement = (x, y) if x is not None and y is not None else None

    def initialize(self, x: float, y: float):
        self.kalman.initialize(x, y)
        self._last_measurement = (x, y)

    @property
    def is_initialized(self) -> bool:
        return self.kalman.is_initialized

    @property
    def is_fixating(self) -> bool:
        return self.velocity <= self.config.dwell_threshold

    def predict(self) -> Tuple[float, float]:
        return self.kalman.predict()

    def update(self, meas_x: float, meas_y: float) -> Tuple[float, float]:
        """
        Update the velocity estimate, rescale R and fuse the measurement

        Returns:
            Corrected (x, y)
        """
        if self._last_measurement is not None:
            dx = meas_x - self._last_measurement[0]
            dy = meas_y - self._last_measurement[1]
            a = self.config.velocity_alpha
            self.velocity = a * math.hypot(dx, dy) + (1 - a) * self.velocity
        self._last_measurement = (meas_x, meas_y)

        self.multiplier = self.noise_multiplier(self.velocity)
        R = self.kalman.R / self.multiplier
        return self.kalman.update(meas_x, meas_y, measurement_noise=R)

    def step(self, meas_x: float, meas_y: float) -> Tuple[float, float]:
        """predict() then update(), seeding the state on the first call"""
        if not self.is_initialized:
            self.initialize(meas_x, meas_y)
        self.predict()
        return self.update(meas_x, meas_y)

    def get_state(self) -> Tuple[float, float]:
        return self.kalman.get_state()

    def get_uncertainty(self) -> float:
        return self.kalman.get_uncertainty()

    def get_effective_noise(self) -> np.ndarray:
        """Measurement noise covariance used by the latest update"""
        return self.kalman.R / self.multiplier

    def __repr__(self):
        return (f"<AdaptiveKalmanFilter(velocity={self.velocity:.4f}, "
                f"multiplier={self.multiplier:.2f})>")
