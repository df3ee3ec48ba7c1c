"""
Timing utilities for monitoring the sensor point rate.
"""

import time
from collections import deque
from typing import Optional


class RateCounter:
    """
    Track events per second over a sliding window of intervals.

    Sensors deliver points at their own pace, so the rate is measured
    rather than assumed.
    """

    def __init__(self, window_size: int = 30):
        """
        Initialize rate counter.

        Args:
            window_size: Number of intervals to average over
        """
        self._intervals: deque[float] = deque(maxlen=window_size)
        self._last_time: Optional[float] = None

    def tick(self, timestamp: Optional[float] = None) -> float:
        """
        Register an event and return the current rate.

        Args:
            timestamp: Event time in seconds (defaults to a monotonic clock)

        Returns:
            Current rate (events per second)
        """
        current_time = time.perf_counter() if timestamp is None else timestamp

        if self._last_time is not None:
            interval = current_time - self._last_time
            # Ignore clock steps backwards
            if interval > 0:
                self._intervals.append(interval)

        self._last_time = current_time

        return self.rate

    @property
    def rate(self) -> float:
        """Get current rate, or 0.0 before two events were seen."""
        if not self._intervals:
            return 0.0

        mean_interval = sum(self._intervals) / len(self._intervals)
        return 1.0 / mean_interval

    def reset(self):
        self._intervals.clear()
        self._last_time = None
