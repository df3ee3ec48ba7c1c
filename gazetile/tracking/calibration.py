"""
Calibration session: collects gaze/target correspondences and fits the
affine correction.

Procedure:
1. The user looks at one of 9 targets laid out on a 3x3 grid and selects it
2. The newest raw points in the ring buffer are averaged into one sample
3. Once at least 5 samples exist the session may be finished
4. Finishing fits an affine transform from averaged readings to target
   positions and hands it to the owner
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from gazetile.core.config import CalibrationConfig
from gazetile.core.state import CalibrationState, InvalidTransitionError, StateMachine
from gazetile.tracking.affine import AffineFit, AffineTransform, fit_affine_checked, rms_error
from gazetile.tracking.buffer import RingBuffer
from gazetile.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CalibrationTarget:
    """One calibration dot."""

    target_id: str  # e.g. "0.15-0.2"
    x: float  # viewport position (pixels)
    y: float


@dataclass(frozen=True)
class CalibrationSample:
    """Averaged sensor reading observed while looking at a target."""

    raw_average: Tuple[float, float]
    target: Tuple[float, float]
    target_id: str


def build_targets(
    viewport_width: int,
    viewport_height: int,
    x_fractions: Tuple[float, ...] = (0.15, 0.5, 0.85),
    y_fractions: Tuple[float, ...] = (0.2, 0.5, 0.8),
) -> List[CalibrationTarget]:
    """
    Lay out calibration targets row by row (top row first).

    Positions are rounded to whole pixels.
    """
    targets = []
    for fy in y_fractions:
        for fx in x_fractions:
            targets.append(
                CalibrationTarget(
                    target_id=f"{fx}-{fy}",
                    x=float(round(viewport_width * fx)),
                    y=float(round(viewport_height * fy)),
                )
            )
    return targets


class CalibrationSession:
    """
    Calibration state machine.

    States: IDLE (no samples) -> COLLECTING -> READY (enough samples) ->
    FITTED. ``cancel()`` discards the session from any non-terminal state.

    The session only reads the ring buffer; it never mutates it.
    """

    def __init__(
        self,
        buffer: RingBuffer,
        viewport_width: int,
        viewport_height: int,
        config: Optional[CalibrationConfig] = None,
        on_fitted: Optional[Callable[[AffineFit, List[CalibrationSample]], None]] = None,
    ):
        """
        Initialize calibration session.

        Args:
            buffer: Recent raw points, shared with the tracking session
            viewport_width: Viewport width in pixels
            viewport_height: Viewport height in pixels
            config: Calibration configuration
            on_fitted: Receives the fit and the samples when ``finish()`` succeeds
        """
        self._config = config or CalibrationConfig()
        self._config.validate()
        self._buffer = buffer
        self._viewport = (viewport_width, viewport_height)
        self._on_fitted = on_fitted

        self._targets: Dict[str, CalibrationTarget] = {
            t.target_id: t
            for t in build_targets(
                viewport_width,
                viewport_height,
                self._config.x_fractions,
                self._config.y_fractions,
            )
        }
        self._samples: List[CalibrationSample] = []
        self._state_machine = StateMachine(CalibrationState.IDLE)
        self._result: Optional[AffineFit] = None

        logger.info(
            f"Calibration session started: {len(self._targets)} targets "
            f"for {viewport_width}x{viewport_height}"
        )

    def record_sample(self, target_id: str) -> Optional[CalibrationSample]:
        """
        Record a sample for a target from the newest buffered points.

        Args:
            target_id: Identifier of the target being looked at

        Returns:
            The new sample, or None if the buffer was empty

        Raises:
            KeyError: If target_id is not one of this session's targets
            InvalidTransitionError: If the session is already finished or cancelled
        """
        if self._state_machine.is_terminal:
            raise InvalidTransitionError(
                f"Cannot record samples in state {self.state.name}"
            )

        target = self._targets.get(target_id)
        if target is None:
            raise KeyError(f"Unknown calibration target: {target_id}")

        average = self._buffer.mean(self._config.capture_count)
        if average is None:
            logger.debug(f"No buffered points; sample for {target_id} skipped")
            return None

        sample = CalibrationSample(
            raw_average=average,
            target=(target.x, target.y),
            target_id=target_id,
        )
        if self.state is CalibrationState.IDLE:
            self._state_machine.require(CalibrationState.COLLECTING)
        if len(self._samples) + 1 >= self._config.min_samples_to_finish:
            self._state_machine.require(CalibrationState.READY)
        self._samples.append(sample)

        logger.debug(
            f"Sample {len(self._samples)} for {target_id}: "
            f"raw=({average[0]:.1f}, {average[1]:.1f}) target=({target.x:.0f}, {target.y:.0f})"
        )
        return sample

    def finish(self) -> AffineFit:
        """
        Fit the correction from the collected samples.

        Returns:
            The fit result (identity with a non-OK status if degenerate)

        Raises:
            InvalidTransitionError: If the session is not READY
        """
        if self.state is not CalibrationState.READY:
            raise InvalidTransitionError(
                f"Cannot finish calibration in state {self.state.name} "
                f"({len(self._samples)}/{self._config.min_samples_to_finish} samples)"
            )

        source = [s.raw_average for s in self._samples]
        target = [s.target for s in self._samples]
        fit = fit_affine_checked(source, target, self._config.pivot_epsilon)

        if fit.ok:
            logger.info(
                f"Calibration fitted from {len(self._samples)} samples, "
                f"rms error {rms_error(fit.transform, source, target):.1f}px"
            )
        else:
            logger.warning(f"Calibration fit degraded to identity: {fit.status.value}")

        self._state_machine.require(CalibrationState.FITTED)
        self._result = fit

        if self._on_fitted is not None:
            self._on_fitted(fit, list(self._samples))

        return fit

    def cancel(self):
        """
        Discard the session without fitting.

        Raises:
            InvalidTransitionError: If the session already finished
        """
        self._state_machine.require(CalibrationState.CANCELLED)
        self._samples.clear()
        logger.info("Calibration cancelled")

    def is_target_sampled(self, target_id: str) -> bool:
        return any(s.target_id == target_id for s in self._samples)

    @property
    def state(self) -> CalibrationState:
        return self._state_machine.current_state

    @property
    def is_finished(self) -> bool:
        """True once FITTED or CANCELLED."""
        return self._state_machine.is_terminal

    @property
    def can_finish(self) -> bool:
        return self.state is CalibrationState.READY

    @property
    def targets(self) -> List[CalibrationTarget]:
        """Get targets in layout order."""
        return list(self._targets.values())

    @property
    def samples(self) -> List[CalibrationSample]:
        return list(self._samples)

    @property
    def result(self) -> Optional[AffineFit]:
        """Get the fit once FITTED."""
        return self._result

    @property
    def transform(self) -> AffineTransform:
        """Get the fitted transform, identity until FITTED."""
        if self._result is None:
            return AffineTransform.identity()
        return self._result.transform

    @property
    def viewport(self) -> Tuple[int, int]:
        return self._viewport

    @property
    def progress(self) -> Tuple[int, int]:
        """Get progress (samples recorded, samples needed to finish)."""
        return (len(self._samples), self._config.min_samples_to_finish)
