"""
Gaze Tracking Configuration
Tuning parameters for smoothing, calibration, gaze geometry and the tracker
"""

from dataclasses import dataclass, field


@dataclass
class KalmanConfig:
    """Constant-velocity Kalman filter parameters (raw gaze units, one step per frame)"""

    dt: float = 1.0                    # Time step between predictions
    process_noise: float = 1e-3        # Acceleration noise spectral density
    measurement_noise: float = 1e-2    # Variance of one gaze measurement
    initial_covariance: float = 1.0    # Diagonal of P after reset

    @classmethod
    def responsive(cls) -> 'KalmanConfig':
        """Lower lag, more jitter"""
        return cls(process_noise=1e-2, measurement_noise=5e-3)

    @classmethod
    def stable(cls) -> 'KalmanConfig':
        """Heavier smoothing for dwell-based selection"""
        return cls(process_noise=2e-4, measurement_noise=2e-2)


@dataclass
class AdaptiveKalmanConfig:
    """Velocity-adaptive measurement noise on top of KalmanConfig"""

    kalman: KalmanConfig = field(default_factory=KalmanConfig)

    # Velocity thresholds (raw gaze units per frame)
    dwell_threshold: float = 0.01
    saccade_threshold: float = 0.08

    # Noise multiplier range; effective R = R_base / multiplier
    min_multiplier: float = 0.3
    max_multiplier: float = 3.0

    velocity_alpha: float = 0.5        # EWMA weight of the newest displacement


@dataclass
class CalibrationConfig:
    """9-point calibration parameters"""

    min_samples_per_point: int = 5     # Accepted samples required per target
    max_samples_per_point: int = 120   # Bucket cap, oldest samples dropped
    iqr_multiplier: float = 1.5        # Tukey fence width
    singular_tolerance: float = 1e-12  # Relative pivot threshold
    margin_percent: float = 10.0       # Grid margin as percent of screen size


@dataclass
class GazeConfig:
    """Gaze geometry parameters"""

    # Blink detection (eye aspect ratio)
    blink_threshold: float = 0.21
    blink_sharpness: float = 0.02

    # Head pose
    max_head_angle: float = 60.0       # degrees, clamp for all three angles
    nose_depth_ratio: float = 0.6      # nose tip depth / inter-ocular distance
    neutral_pitch_ratio: float = 0.5   # nose tip position between eye and mouth lines
    pitch_ratio_span: float = 0.5

    # Head pose compensation (raw gaze units per degree)
    yaw_gain: float = 0.02
    pitch_gain: float = 0.02
    compensation_cap: float = 0.5

    # 3D eyeball model
    eyeball_radius_ratio: float = 0.5  # eyeball radius / eye width
    max_eye_rotation: float = 30.0     # degrees mapped to +-1


@dataclass
class TrackerConfig:
    """Top-level tracker configuration"""

    kalman: KalmanConfig = field(default_factory=KalmanConfig)
    adaptive: AdaptiveKalmanConfig = field(default_factory=AdaptiveKalmanConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    gaze: GazeConfig = field(default_factory=GazeConfig)

    lerp_alpha: float = 0.3            # SIMPLE_LERP step toward the new point
    combined_weight: float = 0.5       # COMBINED: weight of the adaptive filter
    clamp_to_screen: bool = True       # Clip calibrated points to the screen

    @classmethod
    def for_calibration(cls) -> 'TrackerConfig':
        """Configuration while collecting calibration samples"""
        return cls(kalman=KalmanConfig.stable(), lerp_alpha=0.15)

    @classmethod
    def for_session(cls) -> 'TrackerConfig':
        """Configuration for live pointing"""
        return cls()
