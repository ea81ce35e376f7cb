"""
Access-layer boundary: resolve the storage mode once, hand out the matching backend.

Callers receive a DataContext explicitly instead of consulting a global
"current mode"; the backend is selected here and never re-checked per call.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from study.backend import EntityRepository, StorageBackend
from study.bus import ChangeBus
from study.migration import MigrationResult, RemoteFactory, migrate_local_to_remote
from study.mode import ModeResolver, StorageMode
from study.storage import LocalStore

logger = logging.getLogger("rootly.mode")


@dataclass(frozen=True)
class DataContext:
    mode: StorageMode
    store: StorageBackend

    @property
    def bus(self) -> ChangeBus:
        return self.store.bus

    @property
    def courses(self) -> EntityRepository:
        return self.store.courses

    @property
    def notes(self) -> EntityRepository:
        return self.store.notes

    @property
    def daily_entries(self) -> EntityRepository:
        return self.store.daily_entries


ContextListener = Callable[[DataContext], None]


class DataAccess:
    """
    Owns the resolver and builds one DataContext per resolved mode.

    remote_factory turns an authenticated session into a tenant-scoped
    backend (server.services.remote_store.RemoteStore in production).
    """

    def __init__(
        self,
        resolver: ModeResolver,
        remote_factory: RemoteFactory,
        seed_today: Optional[date] = None,
    ):
        self.resolver = resolver
        self.remote_factory = remote_factory
        self._seed_today = seed_today
        self._context: Optional[DataContext] = None
        self._listeners: List[ContextListener] = []
        resolver.on_change(self._on_mode_change)

    @property
    def local(self) -> LocalStore:
        return self.resolver.local

    def context(self) -> DataContext:
        """Current context, resolving the mode on first use."""
        if self._context is None:
            if self.resolver.mode is None:
                self.resolver.resolve()
            if self._context is None:
                self._context = self._build()
        return self._context

    def refresh(self) -> DataContext:
        """Re-run mode resolution (e.g. after an external sign-in)."""
        self.resolver.resolve()
        return self.context()

    def migrate(self) -> MigrationResult:
        """Migrate local data into the signed-in tenant, then re-resolve."""
        result = migrate_local_to_remote(
            self.resolver.auth, self.local, self.remote_factory, self._seed_today,
        )
        if result.success:
            self.refresh()
        return result

    def on_change(self, listener: ContextListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _build(self) -> DataContext:
        mode = self.resolver.mode
        if mode == StorageMode.REMOTE and self.resolver.session is not None:
            return DataContext(mode, self.remote_factory(self.resolver.session))
        return DataContext(StorageMode.LOCAL, self.local)

    def _on_mode_change(self, previous: Optional[StorageMode], mode: StorageMode) -> None:
        self._context = self._build()
        for listener in list(self._listeners):
            listener(self._context)
