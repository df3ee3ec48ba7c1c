"""
Gaze smoothing.

Damps per-sample jitter with an exponential moving average.
"""

from typing import Optional, Tuple

from gazetile.utils.logger import get_logger

logger = get_logger(__name__)


class EmaSmoother:
    """
    Exponential moving average over 2D points.

    The first point after construction or ``reset()`` is passed through
    unchanged; later points are blended as
    ``s = alpha * new + (1 - alpha) * s_prev`` on each axis.

    Not safe for concurrent use: one writer per instance.
    """

    def __init__(self, alpha: float = 0.3):
        """
        Initialize smoother.

        Args:
            alpha: Weight of the newest sample, in (0, 1]

        Raises:
            ValueError: If alpha is outside (0, 1]
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")

        self._alpha = float(alpha)

        self._smoothed_x: Optional[float] = None
        self._smoothed_y: Optional[float] = None

        logger.debug(f"EmaSmoother initialized: alpha={self._alpha:.2f}")

    def next(self, x: float, y: float) -> Tuple[float, float]:
        """
        Feed one point and return the smoothed position.

        Args:
            x: Input x coordinate
            y: Input y coordinate

        Returns:
            (smoothed_x, smoothed_y)
        """
        if self._smoothed_x is None or self._smoothed_y is None:
            self._smoothed_x = float(x)
            self._smoothed_y = float(y)
        else:
            alpha = self._alpha
            self._smoothed_x = alpha * x + (1.0 - alpha) * self._smoothed_x
            self._smoothed_y = alpha * y + (1.0 - alpha) * self._smoothed_y

        return (self._smoothed_x, self._smoothed_y)

    def reset(self):
        """Forget the smoothed position; the next point re-seeds."""
        self._smoothed_x = None
        self._smoothed_y = None
        logger.debug("Smoother reset")

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def is_seeded(self) -> bool:
        return self._smoothed_x is not None

    @property
    def current_position(self) -> Optional[Tuple[float, float]]:
        """Get current smoothed position, or None before the first point."""
        if self._smoothed_x is None or self._smoothed_y is None:
            return None
        return (self._smoothed_x, self._smoothed_y)
