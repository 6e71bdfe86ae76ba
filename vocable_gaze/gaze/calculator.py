"""
Gaze Geometry Calculator
Head pose, head-pose compensation, per-eye gaze, blink detection and
two-eye fusion from a single FaceMesh result
"""

import logging
import math
import numpy as np
from typing import Optional, Sequence, Tuple

from ..config import GazeConfig
from ..models import (
    EyeSelection,
    FaceLandmarkResult,
    GazeResult,
    HeadPose,
    LandmarkPoint,
    SettingsSnapshot,
    TrackingMethod,
)
from . import landmarks as idx
from .utils import centroid, normalize, rot_x, rot_y, to_pixels

logger = logging.getLogger(__name__)

Vector2 = Tuple[float, float]

# Blink confidence at or above this marks the eye as closed
BLINK_CLOSED = 0.5


def _clamp(value: float, limit: float) -> float:
    return max(-limit, min(limit, value))


class GazeCalculator:
    """
    Per-frame gaze geometry

    All outputs are in raw, pre-calibration units: each eye's gaze is the
    iris position normalised to [-1, 1] within the eye, scaled by the
    sensitivity and shifted by the offset.
    """

    def __init__(self, config: Optional[GazeConfig] = None):
        self.config = config if config else GazeConfig()

    # ------------------------------------------------------------------
    # Head pose
    # ------------------------------------------------------------------

    def estimate_head_pose(self, landmarks: Sequence[LandmarkPoint], aspect_ratio: float = 1.0) -> HeadPose:
        """
        Ratio-based head pose from nose, eye-corner and mouth-corner landmarks

        Args:
            landmarks: Full face mesh
            aspect_ratio: Frame width / height, to undo normalised-coordinate stretch

        Returns:
            HeadPose in degrees, each angle clamped to +-max_head_angle
        """
        cfg = self.config
        left = landmarks[idx.LEFT_EYE_OUTER]
        right = landmarks[idx.RIGHT_EYE_OUTER]
        nose = landmarks[idx.NOSE_TIP]
        mouth_l = landmarks[idx.MOUTH_LEFT]
        mouth_r = landmarks[idx.MOUTH_RIGHT]

        eye_mid_x = (left.x + right.x) / 2 * aspect_ratio
        eye_mid_y = (left.y + right.y) / 2
        dx = (right.x - left.x) * aspect_ratio
        dy = right.y - left.y
        iod = math.hypot(dx, dy)
        if iod < 1e-9:
            logger.debug("Degenerate eye corners, head pose unavailable")
            return HeadPose()

        yaw_ratio = (nose.x * aspect_ratio - eye_mid_x) / (iod * cfg.nose_depth_ratio)
        yaw = math.degrees(math.asin(max(-1.0, min(1.0, yaw_ratio))))

        mouth_mid_y = (mouth_l.y + mouth_r.y) / 2
        span = mouth_mid_y - eye_mid_y
        if abs(span) < 1e-9:
            pitch = 0.0
        else:
            r = (nose.y - eye_mid_y) / span
            pitch_ratio = (cfg.neutral_pitch_ratio - r) / cfg.pitch_ratio_span
            pitch = math.degrees(math.asin(max(-1.0, min(1.0, pitch_ratio))))

        roll = math.degrees(math.atan2(dy, dx))

        limit = cfg.max_head_angle
        return HeadPose(_clamp(yaw, limit), _clamp(pitch, limit), _clamp(roll, limit))

    def apply_head_pose_compensation(self, gaze: Vector2, head_pose: HeadPose) -> Vector2:
        """
        Offset a raw gaze vector for head rotation

        The correction is linear in yaw/pitch and never exceeds compensation_cap
        per axis.
        """
        cap = self.config.compensation_cap
        return (
            gaze[0] + _clamp(head_pose.yaw * self.config.yaw_gain, cap),
            gaze[1] + _clamp(head_pose.pitch * self.config.pitch_gain, cap),
        )

    # ------------------------------------------------------------------
    # Per-eye gaze
    # ------------------------------------------------------------------

    def calculate_iris_position(
        self,
        eye_landmarks: Sequence[LandmarkPoint],
        iris_landmarks: Sequence[LandmarkPoint],
        sensitivity_x: float = 1.0,
        sensitivity_y: float = 1.0,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
    ) -> Optional[Vector2]:
        """
        Iris centre within the eye bounding box

        Args:
            eye_landmarks: Eye contour landmarks
            iris_landmarks: Iris landmarks (centre and ring)
            sensitivity_x: Horizontal gain
            sensitivity_y: Vertical gain
            offset_x: Horizontal shift
            offset_y: Vertical shift

        Returns:
            Raw gaze (x, y), or None for a degenerate eye region
        """
        if not eye_landmarks or not iris_landmarks:
            return None

        xs = [p.x for p in eye_landmarks]
        ys = [p.y for p in eye_landmarks]
        min_x, max_x = min(xs), max(xs)
        min_y, max_y = min(ys), max(ys)
        if max_x - min_x < 1e-9 or max_y - min_y < 1e-9:
            return None

        cx, cy, _ = centroid(iris_landmarks)
        nx = 2.0 * (cx - min_x) / (max_x - min_x) - 1.0
        ny = 2.0 * (cy - min_y) / (max_y - min_y) - 1.0
        nx = max(-1.0, min(1.0, nx))
        ny = max(-1.0, min(1.0, ny))

        return nx * sensitivity_x + offset_x, ny * sensitivity_y + offset_y

    def calculate_eyeball_gaze(
        self,
        outer_corner: LandmarkPoint,
        inner_corner: LandmarkPoint,
        iris_center: LandmarkPoint,
        head_pose: HeadPose,
        frame_width: float,
        frame_height: float,
        sensitivity_x: float = 1.0,
        sensitivity_y: float = 1.0,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
    ) -> Optional[Vector2]:
        """
        Gaze from a 3D eyeball model

        The eyeball centre sits behind the eye-corner midpoint along the head's
        forward axis. The centre-to-iris direction is expressed in the head
        frame and its x/y components are scaled so max_eye_rotation maps to 1.

        Returns:
            Raw gaze (x, y), or None for a degenerate eye
        """
        c1 = to_pixels(outer_corner, frame_width, frame_height)
        c2 = to_pixels(inner_corner, frame_width, frame_height)
        iris = to_pixels(iris_center, frame_width, frame_height)

        eye_width = float(np.linalg.norm(c1 - c2))
        if eye_width < 1e-6:
            return None

        # MediaPipe z decreases toward the camera
        R = rot_y(math.radians(-head_pose.yaw)) @ rot_x(math.radians(-head_pose.pitch))
        forward = normalize(R @ np.array([0.0, 0.0, -1.0]))

        center = (c1 + c2) / 2 - forward * self.config.eyeball_radius_ratio * eye_width
        direction = normalize(iris - center)
        head_direction = R.T @ direction

        scale = math.sin(math.radians(self.config.max_eye_rotation))
        gx = max(-1.0, min(1.0, head_direction[0] / scale))
        gy = max(-1.0, min(1.0, head_direction[1] / scale))

        return gx * sensitivity_x + offset_x, gy * sensitivity_y + offset_y

    # ------------------------------------------------------------------
    # Blink
    # ------------------------------------------------------------------

    def eye_aspect_ratio(self, eye_landmarks: Sequence[LandmarkPoint], aspect_ratio: float = 1.0) -> float:
        """
        Six-point eye aspect ratio (p1..p6, corners p1/p4)

        Returns:
            EAR, or 0.0 for a degenerate eye
        """
        if len(eye_landmarks) != 6:
            raise ValueError(f"Expected 6 eye landmarks, got {len(eye_landmarks)}")

        def dist(a: LandmarkPoint, b: LandmarkPoint) -> float:
            return math.hypot((a.x - b.x) * aspect_ratio, a.y - b.y)

        p1, p2, p3, p4, p5, p6 = eye_landmarks
        horizontal = dist(p1, p4)
        if horizontal < 1e-9:
            return 0.0
        return (dist(p2, p6) + dist(p3, p5)) / (2.0 * horizontal)

    def detect_blink(self, eye_landmarks: Sequence[LandmarkPoint], aspect_ratio: float = 1.0) -> float:
        """
        Blink confidence from the eye aspect ratio

        Args:
            eye_landmarks: Six EAR landmarks, p1..p6
            aspect_ratio: Frame width / height

        Returns:
            Confidence in [0, 1]; >= 0.5 when EAR is at or below blink_threshold
        """
        ear = self.eye_aspect_ratio(eye_landmarks, aspect_ratio)
        exponent = (ear - self.config.blink_threshold) / self.config.blink_sharpness
        exponent = max(-60.0, min(60.0, exponent))
        return 1.0 / (1.0 + math.exp(exponent))

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------

    @staticmethod
    def combine_gaze(
        left_gaze: Optional[Vector2],
        left_valid: bool,
        right_gaze: Optional[Vector2],
        right_valid: bool,
        eye_selection: EyeSelection,
    ) -> Optional[Vector2]:
        """
        Fuse the per-eye gaze vectors

        Returns:
            Fused (x, y), or None if the selected eye(s) are not usable
        """
        left_ok = left_valid and left_gaze is not None
        right_ok = right_valid and right_gaze is not None

        if eye_selection is EyeSelection.BOTH_EYES:
            if left_ok and right_ok:
                return ((left_gaze[0] + right_gaze[0]) / 2.0,
                        (left_gaze[1] + right_gaze[1]) / 2.0)
            if left_ok:
                return left_gaze
            if right_ok:
                return right_gaze
            return None
        if eye_selection is EyeSelection.LEFT_EYE_ONLY:
            return left_gaze if left_ok else None
        if eye_selection is EyeSelection.RIGHT_EYE_ONLY:
            return right_gaze if right_ok else None
        raise ValueError(f"Unhandled eye selection: {eye_selection}")

    # ------------------------------------------------------------------
    # Full frame
    # ------------------------------------------------------------------

    def calculate_gaze(self, face: FaceLandmarkResult, settings: SettingsSnapshot) -> Optional[GazeResult]:
        """
        Compute the fused raw gaze for one detection

        Args:
            face: Landmark result with iris refinement
            settings: Settings snapshot for this frame

        Returns:
            GazeResult, or None if no selected eye is usable
        """
        lm = face.landmarks
        if len(lm) < idx.NUM_FACE_LANDMARKS:
            logger.debug(f"Face mesh has {len(lm)} landmarks, iris points missing")
            return None

        aspect = face.aspect_ratio
        head_pose = self.estimate_head_pose(lm, aspect)
        left_blink = self.detect_blink([lm[i] for i in idx.LEFT_EYE_EAR], aspect)
        right_blink = self.detect_blink([lm[i] for i in idx.RIGHT_EYE_EAR], aspect)

        gain = (settings.sensitivity_x, settings.sensitivity_y, settings.offset_x, settings.offset_y)
        method = settings.tracking_method
        if method is TrackingMethod.IRIS_2D:
            left = self.calculate_iris_position(
                [lm[i] for i in idx.LEFT_EYE_CONTOUR], [lm[i] for i in idx.LEFT_IRIS], *gain)
            right = self.calculate_iris_position(
                [lm[i] for i in idx.RIGHT_EYE_CONTOUR], [lm[i] for i in idx.RIGHT_IRIS], *gain)
        elif method is TrackingMethod.EYEBALL_3D:
            w, h = face.frame_width, face.frame_height
            left = self.calculate_eyeball_gaze(
                lm[idx.LEFT_EYE_OUTER], lm[idx.LEFT_EYE_INNER], lm[idx.LEFT_IRIS_CENTER],
                head_pose, w, h, *gain)
            right = self.calculate_eyeball_gaze(
                lm[idx.RIGHT_EYE_OUTER], lm[idx.RIGHT_EYE_INNER], lm[idx.RIGHT_IRIS_CENTER],
                head_pose, w, h, *gain)
        else:
            raise ValueError(f"Unhandled tracking method: {method}")

        if settings.head_pose_compensation:
            if left is not None:
                left = self.apply_head_pose_compensation(left, head_pose)
            if right is not None:
                right = self.apply_head_pose_compensation(right, head_pose)

        fused = self.combine_gaze(
            left, left_blink < BLINK_CLOSED,
            right, right_blink < BLINK_CLOSED,
            settings.eye_selection,
        )
        if fused is None:
            return None

        left_iris = lm[idx.LEFT_IRIS_CENTER]
        right_iris = lm[idx.RIGHT_IRIS_CENTER]
        return GazeResult(
            gaze_x=float(fused[0]),
            gaze_y=float(fused[1]),
            left_iris_center=(left_iris.x, left_iris.y),
            right_iris_center=(right_iris.x, right_iris.y),
            left_blink_confidence=left_blink,
            right_blink_confidence=right_blink,
            head_yaw=head_pose.yaw,
            head_pitch=head_pose.pitch,
            head_roll=head_pose.roll,
            timestamp=face.timestamp,
        )
