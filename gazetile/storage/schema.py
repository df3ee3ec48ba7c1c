"""
Persisted calibration schema and validation.

Only the fitted coefficients and a little context are stored; no raw
gaze samples.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from gazetile.tracking.affine import AffineTransform

SCHEMA_VERSION = "1.0"


@dataclass
class CalibrationRecord:
    """Current affine correction with metadata."""

    transform: AffineTransform = field(default_factory=AffineTransform.identity)

    version: str = SCHEMA_VERSION

    # ISO timestamp of the calibration
    timestamp: str = ""

    # Viewport size the calibration was collected on (0 if unknown)
    viewport_width: int = 0
    viewport_height: int = 0

    sample_count: int = 0

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "sample_count": self.sample_count,
            "transform": self.transform.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationRecord":
        """
        Create from dictionary.

        A bare coefficient mapping (no ``transform`` key) is accepted as a
        record without metadata.

        Raises:
            ValueError: If the data is not a mapping or the transform is invalid
        """
        if not isinstance(data, dict):
            raise ValueError("Calibration record must be a JSON object")

        if "transform" not in data:
            return cls(transform=AffineTransform.from_dict(data))

        transform_data = data["transform"]
        if not isinstance(transform_data, dict):
            raise ValueError("transform must be a JSON object")

        return cls(
            transform=AffineTransform.from_dict(transform_data),
            version=str(data.get("version", SCHEMA_VERSION)),
            timestamp=str(data.get("timestamp", "")),
            viewport_width=int(data.get("viewport_width", 0)),
            viewport_height=int(data.get("viewport_height", 0)),
            sample_count=int(data.get("sample_count", 0)),
        )

    def validate(self) -> bool:
        """
        Validate the record.

        Returns:
            True if valid, raises ValueError if invalid
        """
        if not self.version:
            raise ValueError("Missing version")

        if self.viewport_width < 0 or self.viewport_height < 0:
            raise ValueError("Invalid viewport dimensions")

        if self.sample_count < 0:
            raise ValueError("Sample count must be non-negative")

        try:
            datetime.fromisoformat(self.timestamp)
        except ValueError:
            raise ValueError("Invalid timestamp format")

        return True

    def is_compatible_with_viewport(self, width: int, height: int) -> bool:
        """
        Check whether the record was collected on this viewport size.

        Records without a stored viewport are treated as compatible.
        """
        if self.viewport_width == 0 or self.viewport_height == 0:
            return True
        return self.viewport_width == width and self.viewport_height == height
