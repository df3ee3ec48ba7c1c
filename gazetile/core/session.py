"""
Tracking session orchestrating the gaze pipeline.

Per sensor point:
ring buffer -> affine correction -> smoothing -> hit-test -> consumer
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from gazetile.core.config import AppConfig, get_default_config
from gazetile.core.state import InvalidTransitionError
from gazetile.scene.hit_test import HitResult, HitTracker, SceneQuery
from gazetile.storage.calibration_store import CalibrationStore
from gazetile.storage.schema import CalibrationRecord
from gazetile.tracking.affine import AffineFit, AffineTransform
from gazetile.tracking.buffer import RingBuffer
from gazetile.tracking.calibration import CalibrationSample, CalibrationSession
from gazetile.tracking.sensor import RawPoint, Sensor
from gazetile.tracking.smoothing import EmaSmoother
from gazetile.utils.timing import RateCounter
from gazetile.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GazeUpdate:
    """Result of processing a single sensor point."""

    raw: RawPoint
    corrected: Tuple[float, float]
    smoothed: Tuple[float, float]
    hit: Optional[HitResult] = None
    tile_changed: bool = False
    rate: float = 0.0


class TrackingSession:
    """
    Owns the per-session pipeline state: ring buffer, smoother and the
    current affine correction.

    Buffer and smoother are created by ``start()`` and discarded by
    ``stop()``. Points are processed synchronously in the sensor callback;
    a point delivered while another is still being processed is dropped.
    """

    def __init__(
        self,
        sensor: Sensor,
        calibration_store: CalibrationStore,
        scene: Optional[SceneQuery[Any]] = None,
        config: Optional[AppConfig] = None,
        on_update: Optional[Callable[[GazeUpdate], None]] = None,
    ):
        """
        Initialize tracking session.

        Args:
            sensor: Raw point source
            calibration_store: Where the affine correction is loaded from and saved to
            scene: Scene to hit-test smoothed points against (optional)
            config: Application configuration
            on_update: Called with every processed point
        """
        self._config = config or get_default_config()
        self._sensor = sensor
        self._calibration_store = calibration_store
        self._hit_tracker: Optional[HitTracker[Any]] = (
            HitTracker(scene) if scene is not None else None
        )
        self._on_update = on_update

        self._buffer: Optional[RingBuffer] = None
        self._smoother: Optional[EmaSmoother] = None
        self._transform = AffineTransform.identity()

        self._rate_counter = RateCounter()
        self._last_update: Optional[GazeUpdate] = None

        self._calibration: Optional[CalibrationSession] = None

        self._running = False
        self._processing = False

    async def start(self) -> bool:
        """
        Start tracking.

        Loads the persisted correction, attaches to the sensor and waits
        for it to start.

        Returns:
            True if started, False if already running
        """
        if self._running:
            logger.warning("Tracking already running")
            return False

        self._buffer = RingBuffer(self._config.buffer.capacity)
        self._smoother = EmaSmoother(self._config.smoothing.alpha)
        self._transform = self._calibration_store.load_transform()
        self._rate_counter.reset()
        self._last_update = None
        if self._hit_tracker is not None:
            self._hit_tracker.reset()

        self._running = True
        self._sensor.set_listener(self.handle_point)

        try:
            await self._sensor.start()
        except Exception:
            logger.error("Sensor failed to start")
            self._detach()
            raise

        logger.info(
            "Tracking started"
            + ("" if self._transform.is_identity() else " with stored calibration")
        )
        return True

    async def stop(self) -> bool:
        """
        Stop tracking.

        The listener is detached before any state is discarded, so no
        point is processed after this returns.

        Returns:
            True if stopped, False if not running
        """
        if not self._running:
            return False

        self._detach()
        await self._sensor.stop()

        logger.info("Tracking stopped")
        return True

    def _detach(self):
        self._running = False
        self._sensor.set_listener(None)
        self._close_calibration()

        if self._buffer is not None:
            self._buffer.clear()
        self._buffer = None
        self._smoother = None

    def handle_point(self, point: Optional[RawPoint]):
        """
        Sensor listener: run one point through the pipeline.

        ``None`` (sensor lost tracking) skips the tick and keeps all state.
        """
        if not self._running:
            return

        if point is None:
            logger.debug("Sensor lost tracking; tick skipped")
            return

        if self._processing:
            logger.warning("Re-entrant sensor callback; point dropped")
            return

        self._processing = True
        try:
            update = self._process(point)
        finally:
            self._processing = False

        if self._on_update is not None:
            self._on_update(update)

    def _process(self, point: RawPoint) -> GazeUpdate:
        self._buffer.append(point)
        rate = self._rate_counter.tick(point.timestamp)

        corrected = self._transform.apply(point.x, point.y)
        smoothed = self._smoother.next(*corrected)

        hit = None
        changed = False
        if self._hit_tracker is not None:
            hit, changed = self._hit_tracker.update(*smoothed)

        update = GazeUpdate(
            raw=point,
            corrected=corrected,
            smoothed=smoothed,
            hit=hit,
            tile_changed=changed,
            rate=rate,
        )
        self._last_update = update
        return update

    def begin_calibration(self, viewport_width: int, viewport_height: int) -> CalibrationSession:
        """
        Create a calibration session reading this session's point history.

        Finishing it adopts and persists the fitted correction; a failed
        write surfaces from ``finish()`` as ``CalibrationStoreError`` after
        the correction has been adopted in memory.

        Only one calibration is open at a time: beginning another one or
        stopping tracking cancels it.

        Raises:
            InvalidTransitionError: If tracking is not running
        """
        if not self._running or self._buffer is None:
            raise InvalidTransitionError("Calibration requires a running tracking session")

        self._close_calibration()

        def on_fitted(fit: AffineFit, samples: List[CalibrationSample]):
            self._adopt_calibration(fit, samples, viewport_width, viewport_height)

        self._calibration = CalibrationSession(
            self._buffer,
            viewport_width,
            viewport_height,
            config=self._config.calibration,
            on_fitted=on_fitted,
        )
        return self._calibration

    def _close_calibration(self):
        calibration, self._calibration = self._calibration, None
        if calibration is not None and not calibration.is_finished:
            calibration.cancel()

    def _adopt_calibration(
        self,
        fit: AffineFit,
        samples: List[CalibrationSample],
        viewport_width: int,
        viewport_height: int,
    ):
        self.set_transform(fit.transform)

        record = CalibrationRecord(
            transform=fit.transform,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            sample_count=len(samples),
        )
        self._calibration_store.save(record)

    def set_transform(self, transform: AffineTransform):
        """Replace the current correction without persisting it."""
        self._transform = transform
        # Old smoothed position is in the previous correction's space
        if self._smoother is not None:
            self._smoother.reset()
        logger.debug(f"Correction updated: {transform}")

    def clear_calibration(self) -> bool:
        """
        Forget the stored correction and fall back to identity.

        Returns:
            True if a stored calibration was deleted
        """
        deleted = self._calibration_store.delete()
        self.set_transform(AffineTransform.identity())
        return deleted

    def set_scene(self, scene: Optional[SceneQuery[Any]]):
        """Swap the scene used for hit-testing."""
        self._hit_tracker = HitTracker(scene) if scene is not None else None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def transform(self) -> AffineTransform:
        """Get current affine correction."""
        return self._transform

    @property
    def buffer(self) -> Optional[RingBuffer]:
        return self._buffer

    @property
    def smoother(self) -> Optional[EmaSmoother]:
        return self._smoother

    @property
    def last_update(self) -> Optional[GazeUpdate]:
        return self._last_update

    @property
    def last_hit(self) -> Optional[HitResult]:
        if self._last_update is None:
            return None
        return self._last_update.hit

    @property
    def sample_rate(self) -> float:
        """Get measured sensor rate (points per second)."""
        return self._rate_counter.rate
