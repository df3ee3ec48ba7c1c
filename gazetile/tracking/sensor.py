"""
Point-of-regard sensor boundary.

The tracking pipeline consumes raw screen-space estimates from any object
implementing ``Sensor``. Two implementations ship with the package: a
synthetic source for demos and a replay source for tests.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

import numpy as np

from gazetile.core.config import SensorConfig
from gazetile.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RawPoint:
    """Raw sensor estimate in screen pixels."""

    x: float
    y: float
    timestamp: float  # seconds, sensor clock

    def to_array(self) -> np.ndarray:
        """Convert to numpy array (x, y)."""
        return np.array([self.x, self.y], dtype=np.float64)


PointListener = Callable[[Optional[RawPoint]], None]


@runtime_checkable
class Sensor(Protocol):
    """
    Asynchronous point source.

    The listener receives ``None`` while the sensor has lost tracking.
    """

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    def set_listener(self, listener: Optional[PointListener]) -> None: ...


class SyntheticSensor:
    """
    Sensor simulating a noisy gaze sweeping a circle across the viewport.

    Runs as an asyncio task at a fixed rate until stopped. Useful for
    exercising the pipeline without any tracking hardware.
    """

    def __init__(
        self,
        config: SensorConfig,
        viewport_width: int,
        viewport_height: int,
        seed: Optional[int] = None,
    ):
        """
        Initialize synthetic sensor.

        Args:
            config: Sensor configuration
            viewport_width: Viewport width in pixels
            viewport_height: Viewport height in pixels
            seed: Random seed for the jitter
        """
        self._config = config
        self._width = viewport_width
        self._height = viewport_height
        self._rng = np.random.default_rng(seed)
        self._interval_s = 1.0 / config.frequency

        self._listener: Optional[PointListener] = None
        self._task: Optional[asyncio.Task] = None

        logger.info(f"SyntheticSensor initialized at {config.frequency:.0f} Hz")

    def set_listener(self, listener: Optional[PointListener]) -> None:
        self._listener = listener

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("SyntheticSensor stopped")

    def sample(self, elapsed: float) -> RawPoint:
        """Generate the point for ``elapsed`` seconds into the run."""
        angle = elapsed * self._config.speed * 2 * math.pi
        radius = self._config.radius * min(self._width, self._height)
        jitter_x, jitter_y = self._rng.normal(0.0, self._config.noise, size=2)

        x = self._width / 2 + radius * math.cos(angle) + jitter_x
        y = self._height / 2 + radius * math.sin(angle) + jitter_y
        return RawPoint(x=float(x), y=float(y), timestamp=time.monotonic())

    async def _run(self) -> None:
        start_time = time.monotonic()
        tick = 0

        while True:
            target_time = start_time + tick * self._interval_s
            point = self.sample(time.monotonic() - start_time)

            listener = self._listener
            if listener is not None:
                listener(point)

            sleep_duration = target_time + self._interval_s - time.monotonic()
            await asyncio.sleep(max(0.0, sleep_duration))
            tick += 1


class ReplaySensor:
    """
    Sensor that delivers a prepared sequence of points on demand.

    ``push`` and ``replay`` only deliver while started, like a real sensor
    that stays quiet until ``start`` completes.
    """

    def __init__(self, points: Iterable[Optional[RawPoint]] = ()):
        self._pending = list(points)
        self._listener: Optional[PointListener] = None
        self._running = False

    def set_listener(self, listener: Optional[PointListener]) -> None:
        self._listener = listener

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_listener(self) -> bool:
        return self._listener is not None

    def push(self, point: Optional[RawPoint]) -> bool:
        """
        Deliver one point to the listener.

        Returns:
            True if a listener received it
        """
        if not self._running or self._listener is None:
            return False
        self._listener(point)
        return True

    def replay(self) -> int:
        """
        Deliver every prepared point in order.

        Returns:
            Number of points delivered
        """
        delivered = 0
        pending, self._pending = self._pending, []
        for point in pending:
            if self.push(point):
                delivered += 1
        return delivered
