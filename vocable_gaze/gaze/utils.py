"""
Gaze Geometry Utility Functions
Rotation matrices, normalization and landmark conversions
"""

import math
import numpy as np
from typing import Iterable, Tuple

from ..models import LandmarkPoint


def rot_x(a: float) -> np.ndarray:
    """
    Rotation matrix around X-axis

    Args:
        a: Angle in radians

    Returns:
        3x3 rotation matrix
    """
    ca, sa = math.cos(a), math.sin(a)
    return np.array([
        [1, 0, 0],
        [0, ca, -sa],
        [0, sa, ca]
    ], dtype=float)


def rot_y(a: float) -> np.ndarray:
    """
    Rotation matrix around Y-axis

    Args:
        a: Angle in radians

    Returns:
        3x3 rotation matrix
    """
    ca, sa = math.cos(a), math.sin(a)
    return np.array([
        [ca, 0, sa],
        [0, 1, 0],
        [-sa, 0, ca]
    ], dtype=float)


def normalize(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector (or original if norm too small)
    """
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v)
    return v / n if n > 1e-9 else v


def to_pixels(point: LandmarkPoint, width: float, height: float) -> np.ndarray:
    """
    Convert a normalized landmark to pixel space

    MediaPipe z shares the x scale, so it is multiplied by the frame width.
    """
    return np.array([point.x * width, point.y * height, point.z * width], dtype=float)


def centroid(points: Iterable[LandmarkPoint]) -> Tuple[float, float, float]:
    """Mean position of a set of landmarks"""
    pts = list(points)
    if not pts:
        raise ValueError("centroid of an empty landmark set")
    n = len(pts)
    return (
        sum(p.x for p in pts) / n,
        sum(p.y for p in pts) / n,
        sum(p.z for p in pts) / n,
    )
