"""Key-value stores backing the endpoint registry."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class MemoryStore:
    """Process-local store; state is lost on restart."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any:
        return deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = deepcopy(value)


class JsonFileStore:
    """Store persisted as one JSON object on disk, read lazily on first access."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, Any] | None = None

    def get(self, key: str) -> Any:
        return deepcopy(self._load().get(key))

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = deepcopy(value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        self._data = {}
        if not self.path.exists():
            return self._data

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                parsed = json.load(handle)
        except (OSError, json.JSONDecodeError) as error:
            logger.warning("ignoring unreadable store %s: %s", self.path, error)
            return self._data

        if isinstance(parsed, dict):
            self._data = parsed
        return self._data
