"""
Sentiment Storage - Key-value persistence for configuration.

The config manager persists through two logical keys:
- "sentiment-config": settings with API keys stripped
- "sentiment-api-keys": {provider: [keys]}

Backends:
- MemoryStore: process-local dict (default, tests)
- JsonFileStore: one JSON document per key in a directory
"""

import copy
import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal get/set persistence interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value."""
        pass


class MemoryStore(KeyValueStore):
    """In-memory store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)


class JsonFileStore(KeyValueStore):
    """
    Directory-backed store.

    Each key maps to ``<directory>/<key>.json``. Unreadable or
    corrupt files read as absent.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2)
        tmp.replace(path)
