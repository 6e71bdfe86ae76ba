"""
Platform Collaborators
Detector and storage interfaces injected into the tracker, with their
MediaPipe and SQLAlchemy implementations
"""

from .clock import FrameClock
from .detector import FaceLandmarkDetector, MediaPipeFaceLandmarkDetector, create_face_landmark_detector
from .storage import SqlStorage, Storage

__all__ = [
    'FrameClock',
    'FaceLandmarkDetector',
    'MediaPipeFaceLandmarkDetector',
    'create_face_landmark_detector',
    'Storage',
    'SqlStorage',
]
