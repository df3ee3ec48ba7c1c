"""
Calibration persistence on top of a key-value store.

Loading never fails: an absent key or any malformed payload means "no
calibration" and yields the identity transform.
"""

import json
from typing import Optional

from gazetile.storage.schema import CalibrationRecord
from gazetile.storage.settings_store import KeyValueStore, SettingsStoreError
from gazetile.tracking.affine import AffineTransform
from gazetile.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_KEY = "eye-gaze-affine-v1"


class CalibrationStoreError(Exception):
    """Calibration storage errors."""

    pass


class CalibrationStore:
    """Reads and writes the current calibration record under one key."""

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_KEY):
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @staticmethod
    def encode(record: CalibrationRecord) -> bytes:
        return json.dumps(record.to_dict(), ensure_ascii=False).encode("utf-8")

    @staticmethod
    def decode(payload: bytes) -> CalibrationRecord:
        """
        Parse a stored payload.

        Raises:
            ValueError: If the payload is not a valid record
        """
        try:
            data = json.loads(payload.decode("utf-8"))
        except (ValueError, RecursionError) as e:
            raise ValueError(f"Corrupted calibration payload: {e}") from e

        record = CalibrationRecord.from_dict(data)
        record.validate()
        return record

    def save(self, record: CalibrationRecord) -> None:
        """
        Persist a calibration record.

        Raises:
            CalibrationStoreError: If the record is invalid or the write fails
        """
        try:
            record.validate()
            self._store.set(self._key, self.encode(record))
        except (ValueError, SettingsStoreError) as e:
            error_msg = f"Failed to save calibration: {e}"
            logger.error(error_msg)
            raise CalibrationStoreError(error_msg) from e

        logger.info(f"Calibration saved under {self._key!r}")

    def load(self) -> Optional[CalibrationRecord]:
        """
        Load the stored record.

        Returns:
            The record, or None if absent or unreadable
        """
        try:
            payload = self._store.get(self._key)
        except (SettingsStoreError, OSError, ValueError) as e:
            logger.warning(f"Calibration store unavailable: {e}")
            return None

        if payload is None:
            logger.info("No calibration data found")
            return None

        try:
            record = self.decode(payload)
        except (ValueError, TypeError, OverflowError, RecursionError) as e:
            logger.warning(f"Ignoring stored calibration: {e}")
            return None

        logger.info("Calibration loaded")
        return record

    def load_transform(self) -> AffineTransform:
        """Load the stored transform, identity when there is none."""
        record = self.load()
        if record is None:
            return AffineTransform.identity()
        return record.transform

    def delete(self) -> bool:
        """
        Delete stored calibration.

        Returns:
            True if deleted, False if nothing was stored
        """
        try:
            deleted = self._store.delete(self._key)
        except SettingsStoreError as e:
            raise CalibrationStoreError(f"Failed to delete calibration: {e}") from e

        logger.info("Calibration data deleted" if deleted else "No calibration data to delete")
        return deleted

    def exists(self) -> bool:
        return self.load() is not None
