"""
Gaze Smoothing Filters

- KalmanFilter2D:       Constant-velocity Kalman filter, state [x, y, vx, vy]
- AdaptiveKalmanFilter: Measurement noise scaled by estimated gaze velocity
- GazeSmoother:         Per-SmoothingMode routing (none, lerp, Kalman, adaptive, combined)
"""

from .kalman import KalmanFilter2D
from .adaptive import AdaptiveKalmanFilter
from .smoothing import GazeSmoother

__all__ = [
    'KalmanFilter2D',
    'AdaptiveKalmanFilter',
    'GazeSmoother',
]
