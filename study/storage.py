"""Local backend: entity collections stored as JSON arrays in key-value storage."""

import logging
import random
import string
import time
from typing import Any, Callable, Dict, List, Optional

from study.backend import EntityRepository, StorageBackend
from study.bus import ChangeBus
from study.filters import sort_courses, sort_daily_entries, sort_notes
from study.kinds import EntityKind
from study.kv import KeyValueStorage
from study.models import MODEL_FOR_KIND, now_iso

logger = logging.getLogger("rootly.local")

STORAGE_KEYS = {
    EntityKind.COURSES: "rootly_courses",
    EntityKind.NOTES: "rootly_notes",
    EntityKind.DAILY_ENTRIES: "rootly_daily_entries",
}
STORAGE_MODE_KEY = "rootly_storage_mode"
STORAGE_INITIALIZED_KEY = "rootly_storage_initialized"
PREVIOUSLY_AUTHENTICATED_KEY = "rootly_previously_authenticated"
REVIEW_SESSION_KEY = "rootly_review_session"

_SORTERS: Dict[EntityKind, Callable] = {
    EntityKind.COURSES: sort_courses,
    EntityKind.NOTES: sort_notes,
    EntityKind.DAILY_ENTRIES: sort_daily_entries,
}

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_local_id() -> str:
    """Timestamp + random suffix, e.g. '1718000000000-k3j9x0abc'."""
    suffix = ''.join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


class LocalRepository(EntityRepository):
    """
    One entity kind stored as a flat JSON array under a fixed key.

    Every call deserializes the whole array and filters in memory; writes
    rewrite the array. Fine for a single user's data.
    """

    def __init__(self, kind: EntityKind, storage: KeyValueStorage, bus: ChangeBus):
        super().__init__(kind, bus)
        self._storage = storage
        self._key = STORAGE_KEYS[self.kind]
        self._model = MODEL_FOR_KIND[self.kind]

    def _load(self) -> List:
        raw = self._storage.get_json(self._key, [])
        if not isinstance(raw, list):
            logger.warning("Expected a list under %s, treating as empty", self._key)
            return []
        items = []
        for row in raw:
            if not isinstance(row, dict):
                continue
            try:
                items.append(self._model.from_dict(row))
            except TypeError:
                logger.warning("Skipping malformed %s row under %s", self.kind.value, self._key)
        return items

    def _save(self, items: List) -> None:
        self._storage.set_json(self._key, [item.to_dict() for item in items])

    def _list(self, filters) -> List:
        items = self._load()
        if filters is not None:
            items = [item for item in items if filters.matches(item)]
        return _SORTERS[self.kind](items)

    def _get(self, entity_id: str):
        for item in self._load():
            if item.id == entity_id:
                return item
        return None

    def _create(self, fields: Dict[str, Any]):
        items = self._load()
        now = now_iso()
        if self.kind == EntityKind.DAILY_ENTRIES:
            for i, existing in enumerate(items):
                if existing.date == fields['date']:
                    merged = {**existing.to_dict(), **fields, 'updated_at': now}
                    items[i] = self._model.from_dict(merged)
                    self._save(items)
                    return items[i]
        entity = self._model.from_dict({
            **fields,
            'id': generate_local_id(),
            'created_at': now,
            'updated_at': now,
        })
        items.append(entity)
        self._save(items)
        return entity

    def _update(self, entity_id: str, fields: Dict[str, Any]):
        items = self._load()
        for i, existing in enumerate(items):
            if existing.id == entity_id:
                merged = {**existing.to_dict(), **fields, 'updated_at': now_iso()}
                items[i] = self._model.from_dict(merged)
                self._save(items)
                return items[i]
        return None

    def _delete(self, entity_id: str) -> bool:
        items = self._load()
        kept = [item for item in items if item.id != entity_id]
        if len(kept) == len(items):
            return False
        self._save(kept)
        return True


class LocalStore(StorageBackend):
    """
    Anonymous/offline backend over durable key-value storage.

    Single user, synchronous. Deleting a course leaves its notes in place;
    readers filter orphans (see study.filters.visible_notes).
    """

    name = "local"

    def __init__(self, storage: KeyValueStorage, bus: Optional[ChangeBus] = None):
        super().__init__(bus or ChangeBus())
        self.storage = storage
        self._repos = {
            kind: LocalRepository(kind, storage, self.bus) for kind in EntityKind
        }

    @property
    def courses(self) -> LocalRepository:
        return self._repos[EntityKind.COURSES]

    @property
    def notes(self) -> LocalRepository:
        return self._repos[EntityKind.NOTES]

    @property
    def daily_entries(self) -> LocalRepository:
        return self._repos[EntityKind.DAILY_ENTRIES]

    def all_data(self) -> Dict[str, List]:
        """Snapshot of every local collection (migration input)."""
        return {kind.value: self._repos[kind].list() for kind in EntityKind}

    def clear_all(self) -> None:
        """Remove all entity collections. Flags and the review checkpoint are untouched."""
        for key in STORAGE_KEYS.values():
            self.storage.remove(key)
        for kind in EntityKind:
            self.bus.publish(kind)

    def is_initialized(self) -> bool:
        return self.storage.get_flag(STORAGE_INITIALIZED_KEY)

    def mark_initialized(self) -> None:
        self.storage.set_flag(STORAGE_INITIALIZED_KEY)

    def clear_initialized(self) -> None:
        self.storage.remove(STORAGE_INITIALIZED_KEY)


def reset_local_storage(store: LocalStore) -> None:
    """Clear local data and the initialized flag, so demo data is re-seeded on next resolve."""
    store.clear_all()
    store.clear_initialized()
    logger.info("Local storage cleared; demo data will be re-seeded on next load")


def clear_local_data(store: LocalStore) -> None:
    """Clear local data but keep the initialized flag (no re-seed)."""
    store.clear_all()
    logger.info("Local storage data cleared")
