"""
Configuration management for gazetile.

All tunables live in dataclasses with defaults matching the tracking
pipeline; each section validates itself on construction.
"""

from dataclasses import dataclass, field
from typing import Tuple
import os
from pathlib import Path


@dataclass
class SmoothingConfig:
    """Exponential smoothing configuration."""

    # Weight of the newest sample; 1.0 disables smoothing
    alpha: float = 0.3

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError("alpha must be in (0.0, 1.0]")


@dataclass
class BufferConfig:
    """Recent raw point history used for calibration sampling."""

    capacity: int = 200

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.capacity < 1:
            raise ValueError("buffer capacity must be at least 1")


@dataclass
class CalibrationConfig:
    """Calibration procedure configuration."""

    # Newest raw points averaged into one calibration sample
    capture_count: int = 20

    # Samples required before a fit may be requested
    min_samples_to_finish: int = 5

    # Target grid as viewport fractions (3x3)
    x_fractions: Tuple[float, ...] = (0.15, 0.5, 0.85)
    y_fractions: Tuple[float, ...] = (0.2, 0.5, 0.8)

    # Gaussian elimination aborts below this pivot magnitude
    pivot_epsilon: float = 1e-8

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Validate calibration parameters."""
        if self.capture_count < 1:
            raise ValueError("capture_count must be at least 1")

        # An affine fit has six unknowns; fewer than 3 points cannot fix them
        if self.min_samples_to_finish < 3:
            raise ValueError("min_samples_to_finish must be at least 3")

        for fraction in tuple(self.x_fractions) + tuple(self.y_fractions):
            if not 0.0 <= fraction <= 1.0:
                raise ValueError("calibration target fractions must be within [0, 1]")

        if self.pivot_epsilon <= 0.0:
            raise ValueError("pivot_epsilon must be positive")


@dataclass
class SensorConfig:
    """Synthetic sensor configuration (demo runs only)."""

    frequency: float = 30.0  # points per second
    radius: float = 0.3  # path radius as a viewport fraction
    speed: float = 0.1  # revolutions per second
    noise: float = 12.0  # jitter standard deviation (pixels)

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.frequency <= 0:
            raise ValueError("sensor frequency must be positive")


@dataclass
class StorageConfig:
    """Settings storage configuration."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".gazetile")

    settings_filename: str = "settings.json"

    # Key the current affine correction is stored under
    calibration_key: str = "eye-gaze-affine-v1"

    log_filename: str = "gazetile.log"

    enable_file_logging: bool = False

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @property
    def settings_path(self) -> Path:
        """Get full path to the settings file."""
        return self.data_dir / self.settings_filename

    @property
    def log_path(self) -> Path:
        """Get full path to log file."""
        return self.data_dir / self.log_filename


@dataclass
class AppConfig:
    """Main application configuration."""

    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    version: str = "0.1.0"

    # Log level from environment or default to WARNING
    log_level: str = field(
        default_factory=lambda: os.getenv("GAZETILE_LOG_LEVEL", "WARNING")
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration parameters.

        Sections validate themselves on construction; re-checking here catches
        sections mutated after the fact.
        """
        for section in (self.smoothing, self.buffer, self.calibration, self.sensor):
            section.validate()


def get_default_config() -> AppConfig:
    """
    Get default application configuration.

    Returns:
        AppConfig instance with default values
    """
    return AppConfig()
