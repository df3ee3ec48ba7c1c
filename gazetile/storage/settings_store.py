"""
Key-value settings storage.

Values are opaque bytes. ``JsonFileStore`` keeps every key in one JSON
file (values base64-encoded) and rewrites it atomically.
"""

import base64
import binascii
import json
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from gazetile.utils.logger import get_logger

logger = get_logger(__name__)


class SettingsStoreError(Exception):
    """Settings storage errors."""

    pass


@runtime_checkable
class KeyValueStore(Protocol):
    """Byte store keyed by string."""

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> bool: ...


class MemoryStore:
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._values: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._values.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._values[key] = bytes(value)

    def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return key in self._values


class JsonFileStore:
    """
    File-backed store.

    Security:
    - The file must sit directly inside the data directory
    - Writes go to a temporary file first, then atomically replace
    """

    def __init__(self, data_dir: Path, filename: str = "settings.json"):
        """
        Initialize file store.

        Args:
            data_dir: Directory holding the settings file (created if missing)
            filename: Settings file name

        Raises:
            SettingsStoreError: If the storage path is invalid
        """
        try:
            self._data_dir = Path(data_dir).resolve(strict=False)
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except (RuntimeError, OSError) as e:
            raise SettingsStoreError(f"Invalid storage path: {e}") from e

        self._path = self._data_dir / filename

        if self._path.resolve(strict=False).parent != self._data_dir:
            raise SettingsStoreError("Path traversal detected")

        logger.info(f"JsonFileStore initialized: {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # ValueError covers both JSONDecodeError and UnicodeDecodeError
            logger.warning(f"Unreadable settings file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Settings file {self._path} is not a JSON object")
            return {}
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        temp_path = self._path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            temp_path.replace(self._path)
        except OSError as e:
            raise SettingsStoreError(f"Failed to write settings: {e}") from e

    def get(self, key: str) -> Optional[bytes]:
        encoded = self._read_all().get(key)
        if not isinstance(encoded, str):
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"Setting {key!r} is not valid base64")
            return None

    def set(self, key: str, value: bytes) -> None:
        data = self._read_all()
        data[key] = base64.b64encode(value).decode("ascii")
        self._write_all(data)

    def delete(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return False
        del data[key]
        self._write_all(data)
        return True
