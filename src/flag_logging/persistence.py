"""Persistence of the last known-good SDK log level.

The level lives in a single string slot of a process-local key/value store.
Writers are not synchronized with each other; the last write wins.
"""

import json
import threading
from pathlib import Path
from typing import Final, Protocol

from .errors import ConfigurationError
from .factory import get_logger
from .log_levels import DEFAULT_SDK_LOG_LEVEL, SdkLogLevel, is_valid_remote_level

SDK_LOG_LEVEL_KEY: Final = "ld_sdk_log_level"


class KeyValueStore(Protocol):
    """Synchronous string key/value storage."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Dictionary-backed store living for the lifetime of the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Store keeping all slots in one JSON object on disk.

    Every write rewrites the whole file. A missing file reads as empty.

    Attributes:
        path:   Location of the JSON file
        _lock:  Lock serializing read-modify-write cycles within this process
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock: Final = threading.Lock()

    def read(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def write(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)

    def _load(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            msg = f"Corrupt store file {self.path}: {e}"
            raise ConfigurationError(msg) from e

        if not isinstance(data, dict):
            msg = f"Store file {self.path} must hold a JSON object"
            raise ConfigurationError(msg)
        return data


class LevelPersistence:
    """Reads and writes the SDK log level slot of a store.

    Args:
        store:  Backing key/value store (default: a fresh MemoryStore)
        key:    Slot name
    """

    def __init__(self, store: KeyValueStore | None = None, key: str = SDK_LOG_LEVEL_KEY) -> None:
        self.store = store if store is not None else MemoryStore()
        self.key = key

    def read_level(self) -> str | None:
        """Return the raw persisted value, or None if the slot is empty."""
        return self.store.read(self.key)

    def write_level(self, value: SdkLogLevel) -> None:
        self.store.write(self.key, value)
        get_logger(__name__).debug("sdk_log_level_persisted", key=self.key, level=value)

    def resolve(self, default: SdkLogLevel = DEFAULT_SDK_LOG_LEVEL) -> SdkLogLevel:
        """Return the persisted level if it is still valid, else ``default``.

        An unreadable store resolves to ``default`` as well.
        """
        try:
            stored = self.read_level()
        except (ConfigurationError, OSError) as e:
            get_logger(__name__).warning("sdk_log_level_unreadable", key=self.key, error=str(e))
            return default

        if is_valid_remote_level(stored):
            return stored
        return default
