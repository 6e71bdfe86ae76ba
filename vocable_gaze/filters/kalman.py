"""
Constant-Velocity Kalman Filter
2D gaze smoothing with state [x, y, vx, vy]
"""

import logging
import numpy as np
from typing import Optional, Tuple

from ..config import KalmanConfig

logger = logging.getLogger(__name__)


class KalmanFilter2D:
    """
    Constant-velocity Kalman filter for gaze points

    predict() grows the covariance by the process noise, update() fuses a
    2D measurement with the standard gain and a Joseph-form covariance
    update. Uncertainty is reported as the covariance determinant, which a
    predict never decreases and an update never increases.
    """

    def __init__(self, config: Optional[KalmanConfig] = None):
        """
        Initialize Kalman filter

        Args:
            config: Noise and time-step parameters
        """
        self.config = config if config else KalmanConfig()

        dt = self.config.dt
        self.F = np.array([
            [1, 0, dt, 0],
            [0, 1, 0, dt],
            [0, 0, 1, 0],
            [0, 0, 0, 1],
        ], dtype=float)
        self.H = np.array([
            [1, 0, 0, 0],
            [0, 1, 0, 0],
        ], dtype=float)

        # Discrete white-noise acceleration model
        G = np.array([
            [0.5 * dt ** 2, 0],
            [0, 0.5 * dt ** 2],
            [dt, 0],
            [0, dt],
        ], dtype=float)
        self.Q = self.config.process_noise * (G @ G.T)
        self.R = self.config.measurement_noise * np.eye(2)

        self.x = np.zeros(4)
        self.P = np.eye(4) * self.config.initial_covariance
        self.is_initialized = False

    def reset(self, x: Optional[float] = None, y: Optional[float] = None):
        """Reinitialize state and covariance, optionally seeding the position"""
        self.x = np.zeros(4)
        self.P = np.eye(4) * self.config.initial_covariance
        self.is_initialized = False
        if x is not None and y is not None:
            self.initialize(x, y)

    def initialize(self, x: float, y: float):
        """Seed the position estimate with the first measurement"""
        self.x = np.array([x, y, 0.0, 0.0], dtype=float)
        self.is_initialized = True

    def predict(self) -> Tuple[float, float]:
        """
        Advance the state by one time step

        Returns:
            Predicted (x, y)
        """
        self.x = self.F @ self.x
        self.P = self.F @ self.P @ self.F.T + self.Q
        self.P = 0.5 * (self.P + self.P.T)
        return self.get_state()

    def update(self, meas_x: float, meas_y: float,
               measurement_noise: Optional[np.ndarray] = None) -> Tuple[float, float]:
        """
        Fuse one noisy measurement

        Args:
            meas_x: Measured x
            meas_y: Measured y
            measurement_noise: Optional 2x2 R overriding the configured one

        Returns:
            Corrected (x, y)
        """
        R = self.R if measurement_noise is None else measurement_noise
        z = np.array([meas_x, meas_y], dtype=float)

        S = self.H @ self.P @ self.H.T + R
        K = self.P @ self.H.T @ np.linalg.inv(S)
        innovation = z - self.H @ self.x
        self.x = self.x + K @ innovation

        I_KH = np.eye(4) - K @ self.H
        self.P = I_KH @ self.P @ I_KH.T + K @ R @ K.T
        self.P = 0.5 * (self.P + self.P.T)
        return self.get_state()

    def step(self, meas_x: float, meas_y: float) -> Tuple[float, float]:
        """predict() then update(), seeding the state on the first call"""
        if not self.is_initialized:
            self.initialize(meas_x, meas_y)
        self.predict()
        return self.update(meas_x, meas_y)

    def get_state(self) -> Tuple[float, float]:
        return float(self.x[0]), float(self.x[1])

    def get_velocity(self) -> Tuple[float, float]:
        return float(self.x[2]), float(self.x[3])

    def get_uncertainty(self) -> float:
        """Determinant of the state covariance"""
        return float(np.linalg.det(self.P))

    def get_covariance(self) -> np.ndarray:
        return self.P.copy()

    def __repr__(self):
        x, y = self.get_state()
        return f"<KalmanFilter2D(x={x:.4f}, y={y:.4f}, det={self.get_uncertainty():.3e})>"
