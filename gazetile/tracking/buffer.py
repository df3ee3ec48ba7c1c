"""
Bounded history of recent raw points.
"""

from collections import deque
from typing import Iterator, List, Optional, Tuple

import numpy as np

from gazetile.tracking.sensor import RawPoint

DEFAULT_CAPACITY = 200


class RingBuffer:
    """
    Fixed-capacity FIFO of raw points, oldest first.

    Appending to a full buffer evicts the oldest point.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._points: deque[RawPoint] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._points.maxlen

    def append(self, point: RawPoint):
        self._points.append(point)

    def recent(self, count: int) -> List[RawPoint]:
        """
        Get the newest ``count`` points in chronological order.

        Returns fewer when the buffer holds fewer, and an empty list for
        ``count <= 0``.
        """
        if count <= 0:
            return []
        start = max(0, len(self._points) - count)
        return [self._points[i] for i in range(start, len(self._points))]

    def mean(self, count: int) -> Optional[Tuple[float, float]]:
        """
        Average position of the newest ``count`` points.

        Returns:
            (mean_x, mean_y), or None if there is nothing to average
        """
        points = self.recent(count)
        if not points:
            return None
        coords = np.array([(p.x, p.y) for p in points], dtype=np.float64)
        mean_x, mean_y = coords.mean(axis=0)
        return (float(mean_x), float(mean_y))

    def clear(self):
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[RawPoint]:
        return iter(self._points)
