"""
Gaze Geometry
Per-frame head pose, iris position, blink detection and two-eye fusion
from MediaPipe FaceMesh landmarks
"""

from .calculator import GazeCalculator, BLINK_CLOSED

__all__ = [
    'GazeCalculator',
    'BLINK_CLOSED',
]
