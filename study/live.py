"""Live readers: keep a query result fresh by re-fetching on change events."""

import logging
from typing import Generic, List, Optional, TypeVar

from study.backend import EntityRepository
from study.bus import ChangeBus
from study.errors import StoreError
from study.kinds import EntityKind

logger = logging.getLogger("rootly.bus")

T = TypeVar('T')


class LiveQuery(Generic[T]):
    """
    A subscribed reader over one repository.

    Every change event triggers a full re-fetch, never an incremental patch,
    so the result converges regardless of notification order. With
    coalesce=True events only mark the result stale; the next read of
    `value` performs a single fetch covering everything published since.

    Fetch failures are kept in `error` (the previous value is retained) and
    never raised to the publisher.
    """

    def __init__(
        self,
        repository: EntityRepository,
        bus: ChangeBus,
        filters=None,
        coalesce: bool = False,
    ):
        self.repository = repository
        self.filters = filters
        self.coalesce = coalesce
        self.error: Optional[StoreError] = None
        self.fetch_count = 0
        self._value: List[T] = []
        self._stale = False
        self._unsubscribe = bus.subscribe(repository.kind, self._on_change)
        self.refresh()

    @property
    def kind(self) -> EntityKind:
        return self.repository.kind

    @property
    def value(self) -> List[T]:
        if self._stale:
            self.refresh()
        return self._value

    @property
    def stale(self) -> bool:
        return self._stale

    def refresh(self) -> List[T]:
        self._stale = False
        self.fetch_count += 1
        try:
            self._value = self.repository.list(self.filters)
            self.error = None
        except StoreError as e:
            logger.warning("Fetching %s failed: %s", self.kind.value, e)
            self.error = e
        return self._value

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, kind: EntityKind) -> None:
        if self.coalesce:
            self._stale = True
        else:
            self.refresh()
