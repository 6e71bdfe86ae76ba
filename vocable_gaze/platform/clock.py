"""
Frame Clock
Monotonic millisecond timestamps for detector results
"""

import threading
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class FrameClock:
    """
    Thread-safe frame clock

    Timestamps are milliseconds since the clock was created, strictly
    increasing even if two frames are stamped within the timer resolution.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._origin = time.monotonic()
        self._last_timestamp: Optional[float] = None
        self._call_count = 0

    def now_ms(self) -> float:
        """
        Get the current frame timestamp

        Returns:
            float: Milliseconds since clock creation
        """
        with self._lock:
            current = (time.monotonic() - self._origin) * 1000.0

            if self._last_timestamp is not None and current <= self._last_timestamp:
                current = self._last_timestamp + 0.001
                logger.debug("Adjusted timestamp to maintain monotonic sequence")

            self._last_timestamp = current
            self._call_count += 1
            return current

    def reset(self):
        with self._lock:
            self._origin = time.monotonic()
            self._last_timestamp = None
            self._call_count = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                'total_calls': self._call_count,
                'last_timestamp_ms': self._last_timestamp,
            }

    def __repr__(self):
        return f"<FrameClock(calls={self._call_count})>"
