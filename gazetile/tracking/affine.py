"""
Affine calibration fitting.

Fits a 2D affine correction mapping averaged sensor readings onto known
screen targets by ordinary least squares:

    [x']   [a11 a12 b1]   [x]
    [y'] = [a21 a22 b2] * [y]
                          [1]

x' and y' are two independent regressions over the same predictors, so
they share one 3x3 normal matrix and differ only in the right-hand side.
Any degenerate input (too few pairs, mismatched lengths, collinear or
repeated points) yields the identity transform rather than an error;
``fit_affine_checked`` reports which case applied.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from gazetile.utils.logger import get_logger

logger = get_logger(__name__)

PointLike = Tuple[float, float]

MIN_POINTS = 3
DEFAULT_PIVOT_EPSILON = 1e-8


@dataclass(frozen=True)
class AffineTransform:
    """
    2D affine map ``(x, y) -> (a11*x + a12*y + b1, a21*x + a22*y + b2)``.
    """

    a11: float = 1.0
    a12: float = 0.0
    b1: float = 0.0
    a21: float = 0.0
    a22: float = 1.0
    b2: float = 0.0

    @classmethod
    def identity(cls) -> "AffineTransform":
        return cls()

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Map one point."""
        return (
            self.a11 * x + self.a12 * y + self.b1,
            self.a21 * x + self.a22 * y + self.b2,
        )

    def is_identity(self) -> bool:
        return self == AffineTransform.identity()

    def as_matrix(self) -> np.ndarray:
        """Get the 3x3 homogeneous matrix."""
        return np.array(
            [
                [self.a11, self.a12, self.b1],
                [self.a21, self.a22, self.b2],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AffineTransform":
        """
        Create from dictionary.

        Raises:
            ValueError: If a coefficient is missing or not a finite number
        """
        values = {}
        for name in ("a11", "a12", "b1", "a21", "a22", "b2"):
            if name not in data:
                raise ValueError(f"Missing coefficient: {name}")
            value = data[name]
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Coefficient {name} is not a number")
            if not np.isfinite(value):
                raise ValueError(f"Coefficient {name} is not finite")
            values[name] = float(value)
        return cls(**values)


class FitStatus(Enum):
    """Outcome of an affine fit."""

    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    SINGULAR = "singular"


@dataclass(frozen=True)
class AffineFit:
    """Fitted transform plus how it was obtained."""

    transform: AffineTransform
    status: FitStatus

    @property
    def ok(self) -> bool:
        return self.status is FitStatus.OK


def _solve_3x3(
    matrix: np.ndarray, rhs: np.ndarray, epsilon: float
) -> Optional[np.ndarray]:
    """
    Solve a 3x3 system by Gauss-Jordan elimination without pivoting.

    Returns:
        Solution vector, or None if a pivot magnitude drops below epsilon
    """
    m = matrix.astype(np.float64, copy=True)
    v = rhs.astype(np.float64, copy=True)

    for i in range(3):
        pivot = m[i, i]
        if abs(pivot) < epsilon:
            return None

        m[i, i:] /= pivot
        v[i] /= pivot

        for k in range(3):
            if k == i:
                continue
            factor = m[k, i]
            m[k, i:] -= factor * m[i, i:]
            v[k] -= factor * v[i]

    return v


def fit_affine_checked(
    source: Sequence[PointLike],
    target: Sequence[PointLike],
    pivot_epsilon: float = DEFAULT_PIVOT_EPSILON,
) -> AffineFit:
    """
    Fit the affine transform mapping ``source`` points onto ``target`` points.

    Args:
        source: Sensor-space points, (x, y) pairs
        target: Screen-space points, paired index-by-index with ``source``
        pivot_epsilon: Smallest pivot magnitude accepted during elimination

    Returns:
        AffineFit with the solved transform, or the identity transform and a
        non-OK status when the data cannot determine a fit
    """
    if len(source) != len(target) or len(source) < MIN_POINTS:
        logger.debug(
            f"Affine fit skipped: {len(source)} source / {len(target)} target points"
        )
        return AffineFit(AffineTransform.identity(), FitStatus.INSUFFICIENT_DATA)

    src = np.asarray(source, dtype=np.float64).reshape(-1, 2)
    dst = np.asarray(target, dtype=np.float64).reshape(-1, 2)

    x, y = src[:, 0], src[:, 1]
    xp, yp = dst[:, 0], dst[:, 1]
    n = float(len(src))

    sum_x, sum_y = x.sum(), y.sum()
    sum_xy = float(np.dot(x, y))

    # Normal matrix shared by both regressions
    moments = np.array(
        [
            [float(np.dot(x, x)), sum_xy, sum_x],
            [sum_xy, float(np.dot(y, y)), sum_y],
            [sum_x, sum_y, n],
        ]
    )
    rhs_x = np.array([np.dot(x, xp), np.dot(y, xp), xp.sum()])
    rhs_y = np.array([np.dot(x, yp), np.dot(y, yp), yp.sum()])

    sol_x = _solve_3x3(moments, rhs_x, pivot_epsilon)
    sol_y = _solve_3x3(moments, rhs_y, pivot_epsilon)

    # Never return a half-solved transform
    if sol_x is None or sol_y is None:
        logger.warning("Affine fit is singular (collinear or repeated points); using identity")
        return AffineFit(AffineTransform.identity(), FitStatus.SINGULAR)

    transform = AffineTransform(
        a11=float(sol_x[0]),
        a12=float(sol_x[1]),
        b1=float(sol_x[2]),
        a21=float(sol_y[0]),
        a22=float(sol_y[1]),
        b2=float(sol_y[2]),
    )
    return AffineFit(transform, FitStatus.OK)


def fit_affine(
    source: Sequence[PointLike],
    target: Sequence[PointLike],
    pivot_epsilon: float = DEFAULT_PIVOT_EPSILON,
) -> AffineTransform:
    """Fit an affine transform; identity when the fit is not possible."""
    return fit_affine_checked(source, target, pivot_epsilon).transform


def rms_error(
    transform: AffineTransform,
    source: Sequence[PointLike],
    target: Sequence[PointLike],
) -> float:
    """
    Root-mean-square distance between mapped source points and targets.

    Returns:
        RMS error in target units, or 0.0 for empty input
    """
    if len(source) == 0:
        return 0.0

    src = np.asarray(source, dtype=np.float64).reshape(-1, 2)
    dst = np.asarray(target, dtype=np.float64).reshape(-1, 2)

    homogeneous = np.column_stack([src, np.ones(len(src))])
    mapped = homogeneous @ transform.as_matrix()[:2].T
    residuals = np.linalg.norm(mapped - dst, axis=1)
    return float(np.sqrt(np.mean(residuals**2)))
