"""Durable key-value string storage used by the local backend and the session layer."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger("rootly.local")


class KeyValueStorage(ABC):
    """Synchronous get/set/remove of string values, persisted per client."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...

    def get_json(self, key: str, default=None):
        """
        Decode the JSON value under key.

        A corrupt payload only affects this key: it is logged and the default
        is returned, other keys stay readable.
        """
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable value under %s", key)
            return default

    def set_json(self, key: str, value) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    def get_flag(self, key: str) -> bool:
        return self.get(key) == "true"

    def set_flag(self, key: str) -> None:
        self.set(key, "true")


class MemoryStorage(KeyValueStorage):
    """In-process storage. Lives as long as the object (one 'tab')."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStorage(KeyValueStorage):
    """
    File-backed storage: one JSON object of string values.

    Loads the whole file on init; every mutation rewrites it atomically
    (temp write + rename). An unreadable file starts empty.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._data: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.warning("Local storage file %s is unreadable, starting empty", self.path)
            return
        if not isinstance(data, dict):
            logger.warning("Local storage file %s has no object at top level, starting empty", self.path)
            return
        self._data = {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + '.tmp')
        with tmp.open('w', encoding='utf-8') as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2, sort_keys=True)
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    def keys(self) -> List[str]:
        return list(self._data)
