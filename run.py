"""
Vocable Gaze - Live Tracker
Runs the gaze pipeline on a local webcam and logs the estimated point.

Usage:
    python run.py                               # track with stored calibration
    python run.py --calibrate                   # 9-point calibration first
    python run.py --mode POLYNOMIAL --smoothing ADAPTIVE_KALMAN
    python run.py --screen 1920 1080 --db sqlite:///gaze.db

Calibration is console driven: look at the announced screen position and
press Enter, samples are then captured for that target.
"""

import sys
import time
import signal
import logging
import argparse

import cv2

from vocable_gaze import (
    CalibrationMode,
    EyeGazeTracker,
    MediaPipeFaceLandmarkDetector,
    SmoothingMode,
    SqlStorage,
    TrackerConfig,
)
from vocable_gaze.platform.storage import DEFAULT_DB_URL

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger('vocable_gaze.run')

SAMPLES_PER_POINT = 30
LOG_EVERY_N_FRAMES = 15


def _feed(capture, detector) -> bool:
    """Read one camera frame into the detector"""
    ok, frame = capture.read()
    if not ok:
        logger.warning("Camera frame grab failed")
        return False
    detector.set_frame(frame)
    return True


def run_calibration(tracker: EyeGazeTracker, capture, detector) -> bool:
    """Console-driven 9-point calibration. Returns True if computed and saved."""
    targets = tracker.generate_calibration_points()
    tracker.start_calibration()

    for point_index, (tx, ty) in enumerate(targets):
        input(f"Point {point_index + 1}/9: look at ({tx:.0f}, {ty:.0f}) and press Enter ")

        captured = 0
        while captured < SAMPLES_PER_POINT:
            if not _feed(capture, detector):
                continue
            tracker.process_frame()
            if tracker.capture_calibration_sample(point_index):
                captured += 1
        logger.info(f"  ✓ Point {point_index + 1}/9 captured")

    if not tracker.compute_calibration():
        logger.error("✗ Calibration failed, keep your head still and retry")
        return False

    logger.info(f"Calibration error: {tracker.calibration.calibration_error:.1f} px")
    return tracker.save_calibration()


def main():
    parser = argparse.ArgumentParser(description='Vocable webcam gaze tracker')
    parser.add_argument('--camera', type=int, default=0, help='OpenCV camera index')
    parser.add_argument('--screen', type=int, nargs=2, default=(1920, 1080),
                        metavar=('WIDTH', 'HEIGHT'), help='Screen size in pixels')
    parser.add_argument('--db', default=DEFAULT_DB_URL, help='SQLAlchemy database URL')
    parser.add_argument('--mode', choices=[m.name for m in CalibrationMode],
                        default=CalibrationMode.AFFINE.name, help='Calibration transform')
    parser.add_argument('--smoothing', choices=[m.name for m in SmoothingMode],
                        default=None, help='Override the stored smoothing mode')
    parser.add_argument('--calibrate', action='store_true', help='Run calibration before tracking')
    parser.add_argument('--gpu', action='store_true', help='Request the GPU delegate')
    args = parser.parse_args()

    storage = SqlStorage(args.db)
    detector = MediaPipeFaceLandmarkDetector()
    config = TrackerConfig.for_calibration() if args.calibrate else TrackerConfig.for_session()
    tracker = EyeGazeTracker(detector, storage, args.screen[0], args.screen[1], config=config)

    if not tracker.initialize(use_gpu=args.gpu):
        storage.close()
        sys.exit(1)

    tracker.set_calibration_mode(CalibrationMode[args.mode])
    if args.smoothing:
        tracker.settings.smoothing_mode = SmoothingMode[args.smoothing]

    capture = cv2.VideoCapture(args.camera)
    if not capture.isOpened():
        logger.error(f"✗ Could not open camera {args.camera}")
        tracker.close()
        storage.close()
        sys.exit(1)

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping tracker...")
        capture.release()
        tracker.close()
        storage.close()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    if args.calibrate:
        run_calibration(tracker, capture, detector)
        tracker.reset_smoothing()

    logger.info(f"Tracking ({'calibrated' if tracker.is_calibrated else 'uncalibrated'}), Ctrl+C to stop")
    start = time.time()
    while True:
        if not _feed(capture, detector):
            time.sleep(0.1)
            continue
        point = tracker.process_frame()
        if tracker.frame_count % LOG_EVERY_N_FRAMES == 0:
            fps = tracker.frame_count / max(time.time() - start, 1e-6)
            if point is None:
                logger.info(f"[{fps:4.1f} fps] no estimate")
            else:
                unit = 'px' if point.is_calibrated else 'raw'
                held = ' (held)' if point.is_held else ''
                logger.info(f"[{fps:4.1f} fps] gaze {point.x:8.2f}, {point.y:8.2f} {unit}{held}")


if __name__ == '__main__':
    main()
