"""
Calibration session states.

Defines the calibration state machine with its allowed transitions.
"""

from enum import Enum, auto
from typing import Optional, Set


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is attempted in a state that forbids it."""

    pass


class CalibrationState(Enum):
    """
    Calibration session states.

    State transitions:
        IDLE -> COLLECTING -> READY -> FITTED
        IDLE / COLLECTING / READY -> CANCELLED

    COLLECTING and READY keep accepting samples (self-transition).
    """

    IDLE = auto()           # No samples recorded yet
    COLLECTING = auto()     # Some samples, not enough to fit
    READY = auto()          # Enough samples, finishing allowed
    FITTED = auto()         # Fit done and handed off (terminal)
    CANCELLED = auto()      # Discarded without a fit (terminal)


_VALID_TRANSITIONS: dict[CalibrationState, Set[CalibrationState]] = {
    CalibrationState.IDLE: {
        CalibrationState.COLLECTING,
        CalibrationState.CANCELLED,
    },
    CalibrationState.COLLECTING: {
        CalibrationState.READY,
        CalibrationState.CANCELLED,
    },
    CalibrationState.READY: {
        CalibrationState.FITTED,
        CalibrationState.CANCELLED,
    },
    CalibrationState.FITTED: set(),
    CalibrationState.CANCELLED: set(),
}

TERMINAL_STATES = frozenset({CalibrationState.FITTED, CalibrationState.CANCELLED})


def is_valid_transition(from_state: CalibrationState, to_state: CalibrationState) -> bool:
    """
    Check if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is allowed, False otherwise
    """
    # Same state is a no-op, except that terminal states stay closed
    if from_state == to_state:
        return from_state not in TERMINAL_STATES

    return to_state in _VALID_TRANSITIONS.get(from_state, set())


class StateMachine:
    """Tracks the current calibration state and validates transitions."""

    def __init__(self, initial_state: CalibrationState = CalibrationState.IDLE):
        self._current_state = initial_state
        self._previous_state: Optional[CalibrationState] = None

    @property
    def current_state(self) -> CalibrationState:
        """Get current state."""
        return self._current_state

    @property
    def previous_state(self) -> Optional[CalibrationState]:
        """Get previous state."""
        return self._previous_state

    @property
    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES

    def transition_to(self, new_state: CalibrationState) -> bool:
        """
        Transition to a new state.

        Args:
            new_state: Target state

        Returns:
            True if transition succeeded, False if invalid
        """
        if not is_valid_transition(self._current_state, new_state):
            return False

        if new_state != self._current_state:
            self._previous_state = self._current_state
            self._current_state = new_state

        return True

    def require(self, new_state: CalibrationState) -> None:
        """
        Transition to a new state or raise.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not self.transition_to(new_state):
            raise InvalidTransitionError(
                f"Invalid state transition: {self._current_state.name} -> {new_state.name}"
            )

    def can_transition_to(self, new_state: CalibrationState) -> bool:
        """Check a transition without performing it."""
        return is_valid_transition(self._current_state, new_state)
