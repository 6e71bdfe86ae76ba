"""
Face Landmark Detector
Detector interface consumed by the tracker, and the MediaPipe FaceMesh
implementation fed with OpenCV BGR frames
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..models import FaceLandmarkResult, LandmarkPoint
from .clock import FrameClock

logger = logging.getLogger(__name__)


class FaceLandmarkDetector(ABC):
    """Source of one face mesh per call"""

    @abstractmethod
    def initialize(self, use_gpu: bool = False) -> bool:
        """Load the model; False if it is unavailable"""

    @abstractmethod
    def detect_landmarks(self) -> Optional[FaceLandmarkResult]:
        """Detect landmarks in the current frame; None when no face is found"""

    @abstractmethod
    def is_ready(self) -> bool:
        ...

    @abstractmethod
    def is_using_gpu(self) -> bool:
        ...

    @abstractmethod
    def close(self):
        ...


class MediaPipeFaceLandmarkDetector(FaceLandmarkDetector):
    """
    MediaPipe FaceMesh with iris refinement (478 landmarks)

    The host pushes camera frames with set_frame(); detect_landmarks()
    processes the most recent one. The FaceMesh solution runs on CPU, so a
    GPU request is logged and is_using_gpu() stays False.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        clock: Optional[FrameClock] = None,
    ):
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.clock = clock or FrameClock()

        self.face_mesh = None
        self._cv2 = None
        self._frame: Optional[np.ndarray] = None
        self._frame_lock = threading.Lock()
        self._is_initialized = False
        self._is_using_gpu = False

    def initialize(self, use_gpu: bool = False) -> bool:
        """
        Create the FaceMesh instance

        Args:
            use_gpu: Requested delegate; FaceMesh only supports CPU

        Returns:
            True if the model loaded
        """
        try:
            import cv2
            import mediapipe as mp

            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
            self._cv2 = cv2
            if use_gpu:
                logger.warning("FaceMesh has no GPU delegate, running on CPU")
            self._is_using_gpu = False
            self._is_initialized = True
            logger.info("✓ MediaPipe FaceLandmarkDetector initialized")
            return True

        except Exception as e:
            logger.error(f"✗ Failed to initialize FaceLandmarkDetector: {e}", exc_info=True)
            self.face_mesh = None
            self._is_initialized = False
            return False

    def set_frame(self, frame: np.ndarray):
        """Store the latest BGR camera frame for the next detection"""
        with self._frame_lock:
            self._frame = frame

    def detect_landmarks(self) -> Optional[FaceLandmarkResult]:
        """
        Run FaceMesh on the latest frame

        Returns:
            FaceLandmarkResult, or None if there is no frame, no face, or the
            model failed
        """
        if not self._is_initialized:
            logger.warning("FaceLandmarkDetector not initialized")
            return None

        with self._frame_lock:
            frame = self._frame
        if frame is None:
            logger.debug("No frame set, call set_frame() before detect_landmarks()")
            return None

        try:
            rgb = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)
            results = self.face_mesh.process(rgb)
        except Exception as e:
            logger.error(f"Error detecting landmarks: {e}", exc_info=True)
            return None

        if not results.multi_face_landmarks:
            return None

        h, w = frame.shape[:2]
        points = tuple(
            LandmarkPoint(float(lm.x), float(lm.y), float(lm.z))
            for lm in results.multi_face_landmarks[0].landmark
        )
        return FaceLandmarkResult(
            landmarks=points,
            frame_width=int(w),
            frame_height=int(h),
            timestamp=self.clock.now_ms(),
        )

    def is_ready(self) -> bool:
        return self._is_initialized

    def is_using_gpu(self) -> bool:
        return self._is_using_gpu

    def close(self):
        if self.face_mesh:
            try:
                self.face_mesh.close()
            except Exception as e:
                logger.error(f"Error closing FaceLandmarkDetector: {e}")
            self.face_mesh = None
        self._is_initialized = False
        logger.info("FaceLandmarkDetector closed")

    def __repr__(self):
        status = "ready" if self._is_initialized else "closed"
        return f"<MediaPipeFaceLandmarkDetector({status})>"


def create_face_landmark_detector(use_gpu: bool = False) -> MediaPipeFaceLandmarkDetector:
    """Build and initialize a MediaPipe detector"""
    detector = MediaPipeFaceLandmarkDetector()
    detector.initialize(use_gpu)
    return detector
