"""
Gaze Smoothing
Routes the fused raw gaze point through the filter chosen by SmoothingMode
"""

import logging
from typing import Optional, Tuple

from ..config import AdaptiveKalmanConfig, KalmanConfig
from ..models import SmoothingMode
from .adaptive import AdaptiveKalmanFilter
from .kalman import KalmanFilter2D

logger = logging.getLogger(__name__)


class GazeSmoother:
    """
    Per-mode smoothing state

    Each mode keeps its own filter. Switching modes resets the filters so
    the new mode starts from the next measurement.
    """

    def __init__(
        self,
        kalman_config: Optional[KalmanConfig] = None,
        adaptive_config: Optional[AdaptiveKalmanConfig] = None,
        lerp_alpha: float = 0.3,
        combined_weight: float = 0.5,
    ):
        if not 0.0 < lerp_alpha <= 1.0:
            raise ValueError(f"lerp_alpha must be in (0, 1], got {lerp_alpha}")
        if not 0.0 <= combined_weight <= 1.0:
            raise ValueError(f"combined_weight must be in [0, 1], got {combined_weight}")

        self.kalman = KalmanFilter2D(kalman_config)
        self.adaptive = AdaptiveKalmanFilter(adaptive_config)
        self.lerp_alpha = lerp_alpha
        self.combined_weight = combined_weight

        self._mode: Optional[SmoothingMode] = None
        self._lerp_point: Optional[Tuple[float, float]] = None
        self._last_output: Optional[Tuple[float, float]] = None

    @property
    def last_output(self) -> Optional[Tuple[float, float]]:
        return self._last_output

    def reset(self):
        self.kalman.reset()
        self.adaptive.reset()
        self._lerp_point = None
        self._last_output = None

    def smooth(self, mode: SmoothingMode, x: float, y: float) -> Tuple[float, float]:
        """
        Smooth one raw gaze point

        Args:
            mode: Smoothing mode for this frame
            x: Raw gaze x
            y: Raw gaze y

        Returns:
            Smoothed (x, y)
        """
        if mode is not self._mode:
            if self._mode is not None:
                logger.debug(f"Smoothing mode {self._mode.name} -> {mode.name}, filters reset")
            self.reset()
            self._mode = mode

        if mode is SmoothingMode.NONE:
            out = (x, y)
        elif mode is SmoothingMode.SIMPLE_LERP:
            out = self._lerp(x, y)
        elif mode is SmoothingMode.KALMAN_FILTER:
            out = self.kalman.step(x, y)
        elif mode is SmoothingMode.ADAPTIVE_KALMAN:
            out = self.adaptive.step(x, y)
        elif mode is SmoothingMode.COMBINED:
            kx, ky = self.kalman.step(x, y)
            ax, ay = self.adaptive.step(x, y)
            w = self.combined_weight
            out = (w * ax + (1 - w) * kx, w * ay + (1 - w) * ky)
        else:
            raise ValueError(f"Unhandled smoothing mode: {mode}")

        self._last_output = out
        return out

    def _lerp(self, x: float, y: float) -> Tuple[float, float]:
        if self._lerp_point is None:
            self._lerp_point = (x, y)
        else:
            a = self.lerp_alpha
            px, py = self._lerp_point
            self._lerp_point = (px + a * (x - px), py + a * (y - py))
        return self._lerp_point
