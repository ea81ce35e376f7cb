"""
Entity store contract shared by the local and remote backends.

Callers only ever see EntityRepository / StorageBackend; the concrete backend
is chosen once at the access-layer boundary (see study/context.py).

Every successful create/update/delete publishes exactly one change event for
the repository's entity kind. Failed or no-op mutations publish nothing.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

from study.bus import ChangeBus
from study.errors import NotFound, ValidationViolation
from study.kinds import EntityKind
from study.models import validate_fields

T = TypeVar('T')

REQUIRED_FIELDS = {
    EntityKind.COURSES: ('title',),
    EntityKind.NOTES: ('course_id',),
    EntityKind.DAILY_ENTRIES: ('date',),
}


class EntityRepository(ABC, Generic[T]):
    """CRUD over one entity kind for the current tenant."""

    def __init__(self, kind: EntityKind, bus: ChangeBus):
        self.kind = EntityKind(kind)
        self._bus = bus

    # ---- reads ----

    def list(self, filters=None) -> List[T]:
        """All entities matching filters (a conjunction), in the kind's default order."""
        return self._list(filters)

    def get(self, entity_id: str) -> Optional[T]:
        return self._get(entity_id)

    def require(self, entity_id: str) -> T:
        entity = self._get(entity_id)
        if entity is None:
            raise NotFound(f"{self.kind.value} {entity_id} not found")
        return entity

    def count(self) -> int:
        return len(self._list(None))

    def exists(self) -> bool:
        """True when the tenant has at least one entity of this kind."""
        return self.count() > 0

    # ---- writes ----

    def create(self, fields: Dict[str, Any]) -> T:
        """
        Assign id and timestamps, persist and return the stored entity.

        Daily entries upsert by date: an existing entry for the same date is
        updated in place instead of duplicated.
        """
        clean = validate_fields(self.kind, fields)
        missing = [f for f in REQUIRED_FIELDS[self.kind] if not clean.get(f)]
        if missing:
            raise ValidationViolation(f"{self.kind.value} requires {', '.join(missing)}")
        entity = self._create(clean)
        self._bus.publish(self.kind)
        return entity

    def update(self, entity_id: str, fields: Dict[str, Any]) -> Optional[T]:
        """Merge partial fields and refresh updated_at. None if the id is unknown."""
        clean = validate_fields(self.kind, fields)
        entity = self._update(entity_id, clean)
        if entity is not None:
            self._bus.publish(self.kind)
        return entity

    def delete(self, entity_id: str) -> bool:
        """Remove the entity. False if the id is unknown."""
        deleted = self._delete(entity_id)
        if deleted:
            self._bus.publish(self.kind)
        return deleted

    # ---- backend hooks ----

    @abstractmethod
    def _list(self, filters) -> List[T]:
        ...

    @abstractmethod
    def _get(self, entity_id: str) -> Optional[T]:
        ...

    @abstractmethod
    def _create(self, fields: Dict[str, Any]) -> T:
        ...

    @abstractmethod
    def _update(self, entity_id: str, fields: Dict[str, Any]) -> Optional[T]:
        ...

    @abstractmethod
    def _delete(self, entity_id: str) -> bool:
        ...


class StorageBackend(ABC):
    """One tenant's courses, notes and daily entries behind a single bus."""

    name: str = "base"

    def __init__(self, bus: ChangeBus):
        self.bus = bus

    @property
    @abstractmethod
    def courses(self) -> EntityRepository:
        ...

    @property
    @abstractmethod
    def notes(self) -> EntityRepository:
        ...

    @property
    @abstractmethod
    def daily_entries(self) -> EntityRepository:
        ...

    def repository(self, kind: EntityKind) -> EntityRepository:
        kind = EntityKind(kind)
        if kind == EntityKind.COURSES:
            return self.courses
        if kind == EntityKind.NOTES:
            return self.notes
        return self.daily_entries

    def has_data(self) -> bool:
        return any(self.repository(k).exists() for k in EntityKind)
