"""
Shared fixtures: synthetic FaceMesh results, in-memory storage and a
scripted landmark detector
"""

import math
from typing import List, Optional, Tuple

import pytest

from vocable_gaze.gaze import landmarks as idx
from vocable_gaze.models import FaceLandmarkResult, LandmarkPoint
from vocable_gaze.platform.detector import FaceLandmarkDetector
from vocable_gaze.platform.storage import SqlStorage

EYE_HALF_WIDTH = 0.05
EYE_LINE_Y = 0.40
MOUTH_Y = 0.60
LEFT_EYE_CENTER = (0.40, EYE_LINE_Y)
RIGHT_EYE_CENTER = (0.60, EYE_LINE_Y)
OPEN_EYE = 0.015     # lid half-opening, EAR = 20 * opening = 0.30
CLOSED_EYE = 0.002   # EAR = 0.04


def _place_eye(points, center, opening, iris, contour, ear, iris_ids, outer, inner, outer_sign):
    cx, cy = center
    for k, i in enumerate(contour):
        angle = 2 * math.pi * k / len(contour)
        points[i] = LandmarkPoint(cx + EYE_HALF_WIDTH * math.cos(angle), cy + opening * math.sin(angle), 0.0)

    points[outer] = LandmarkPoint(cx + outer_sign * EYE_HALF_WIDTH, cy, 0.0)
    points[inner] = LandmarkPoint(cx - outer_sign * EYE_HALF_WIDTH, cy, 0.0)

    # EAR order p1..p6: corner, upper, upper, corner, lower, lower
    _, p2, p3, _, p5, p6 = ear
    points[p2] = LandmarkPoint(cx - 0.02, cy - opening, 0.0)
    points[p3] = LandmarkPoint(cx + 0.02, cy - opening, 0.0)
    points[p5] = LandmarkPoint(cx + 0.02, cy + opening, 0.0)
    points[p6] = LandmarkPoint(cx - 0.02, cy + opening, 0.0)

    ix = cx + iris[0] * EYE_HALF_WIDTH
    iy = cy + iris[1] * opening
    r = 0.005
    center_id, *ring = iris_ids
    points[center_id] = LandmarkPoint(ix, iy, 0.0)
    for (ox, oy), i in zip([(r, 0), (0, -r), (-r, 0), (0, r)], ring):
        points[i] = LandmarkPoint(ix + ox, iy + oy, 0.0)


def make_face(
    left_iris: Tuple[float, float] = (0.0, 0.0),
    right_iris: Tuple[float, float] = (0.0, 0.0),
    left_opening: float = OPEN_EYE,
    right_opening: float = OPEN_EYE,
    nose_dx: float = 0.0,
    nose_dy: float = 0.0,
    size: int = 640,
    timestamp: float = 0.0,
    count: int = idx.NUM_FACE_LANDMARKS,
) -> FaceLandmarkResult:
    """
    Build a frontal synthetic face

    Iris offsets are in [-1, 1] of the eye half-width / half-opening, so the
    raw per-eye gaze equals the offset at unit sensitivity. The frame is
    square and the pose is neutral unless the nose is shifted.
    """
    points = [LandmarkPoint(0.5, 0.5, 0.0)] * idx.NUM_FACE_LANDMARKS

    _place_eye(points, LEFT_EYE_CENTER, left_opening, left_iris, idx.LEFT_EYE_CONTOUR,
               idx.LEFT_EYE_EAR, idx.LEFT_IRIS, idx.LEFT_EYE_OUTER, idx.LEFT_EYE_INNER, -1)
    _place_eye(points, RIGHT_EYE_CENTER, right_opening, right_iris, idx.RIGHT_EYE_CONTOUR,
               idx.RIGHT_EYE_EAR, idx.RIGHT_IRIS, idx.RIGHT_EYE_OUTER, idx.RIGHT_EYE_INNER, 1)

    points[idx.NOSE_TIP] = LandmarkPoint(0.5 + nose_dx, (EYE_LINE_Y + MOUTH_Y) / 2 + nose_dy, -0.05)
    points[idx.MOUTH_LEFT] = LandmarkPoint(0.45, MOUTH_Y, 0.0)
    points[idx.MOUTH_RIGHT] = LandmarkPoint(0.55, MOUTH_Y, 0.0)

    return FaceLandmarkResult(
        landmarks=tuple(points[:count]),
        frame_width=size,
        frame_height=size,
        timestamp=timestamp,
    )


class ScriptedDetector(FaceLandmarkDetector):
    """Detector returning a fixed sequence of results"""

    def __init__(self, results: Optional[List[Optional[FaceLandmarkResult]]] = None, init_ok: bool = True):
        self.results = list(results or [])
        self.init_ok = init_ok
        self.ready = False
        self.closed = False
        self.on_detect = None

    def push(self, result: Optional[FaceLandmarkResult]):
        self.results.append(result)

    def initialize(self, use_gpu: bool = False) -> bool:
        self.ready = self.init_ok
        return self.init_ok

    def detect_landmarks(self) -> Optional[FaceLandmarkResult]:
        if self.on_detect is not None:
            self.on_detect()
        return self.results.pop(0) if self.results else None

    def is_ready(self) -> bool:
        return self.ready

    def is_using_gpu(self) -> bool:
        return False

    def close(self):
        self.ready = False
        self.closed = True


@pytest.fixture
def face_factory():
    return make_face


@pytest.fixture
def storage():
    store = SqlStorage('sqlite://')
    yield store
    store.close()


@pytest.fixture
def detector():
    return ScriptedDetector()
