"""Storage mode resolution: which backend is active for this client right now."""

import logging
from datetime import date
from enum import Enum
from typing import Callable, List, Optional

from study.auth import AuthClient, AuthEvent, AuthSession
from study.errors import StoreError
from study.seed import seed_local_store
from study.storage import LocalStore, PREVIOUSLY_AUTHENTICATED_KEY, STORAGE_MODE_KEY

logger = logging.getLogger("rootly.mode")


class StorageMode(str, Enum):
    LOCAL = "localStorage"
    REMOTE = "remote"

    @classmethod
    def _missing_(cls, value):
        # Preferences written by the hosted web client name the remote mode "supabase".
        if value == "supabase":
            return cls.REMOTE
        return None


ModeListener = Callable[[Optional[StorageMode], StorageMode], None]


def current_session(auth: AuthClient) -> Optional[AuthSession]:
    """Cached session first, then a refreshed lookup against the backend."""
    session = auth.get_session()
    if session is not None:
        return session
    return auth.get_user()


class ModeResolver:
    """
    Single source of truth for the active storage mode.

    Re-evaluated on initial load (resolve()), sign-in and sign-out (attach()).
    An authenticated session always wins over a cached anonymous preference.
    A failing auth check resolves to local mode: local use must never be
    blocked by the remote side being down.

    mode is None until the first resolution.
    """

    def __init__(self, auth: AuthClient, local: LocalStore, seed_today: Optional[date] = None):
        self.auth = auth
        self.local = local
        self._storage = local.storage
        self._seed_today = seed_today
        self._mode: Optional[StorageMode] = None
        self._session: Optional[AuthSession] = None
        self._listeners: List[ModeListener] = []
        self._detach: Optional[Callable[[], None]] = None

    @property
    def mode(self) -> Optional[StorageMode]:
        return self._mode

    @property
    def session(self) -> Optional[AuthSession]:
        """The authenticated session backing remote mode, None in local mode."""
        return self._session

    def resolve(self) -> StorageMode:
        try:
            session = current_session(self.auth)
        except Exception as e:
            logger.warning("Auth check failed, falling back to local mode: %s", e)
            session = None

        if session is not None:
            self._storage.remove(STORAGE_MODE_KEY)
            self._set(StorageMode.REMOTE, session)
        else:
            if self._storage.get_flag(PREVIOUSLY_AUTHENTICATED_KEY):
                self._storage.remove(PREVIOUSLY_AUTHENTICATED_KEY)
            self._ensure_local_seed()
            self._set(StorageMode.LOCAL, None)
        return self._mode

    # ---- explicit anonymous choice ----

    def set_preference(self, mode: StorageMode) -> None:
        self._storage.set(STORAGE_MODE_KEY, StorageMode(mode).value)

    def preference(self) -> Optional[StorageMode]:
        raw = self._storage.get(STORAGE_MODE_KEY)
        try:
            return StorageMode(raw) if raw else None
        except ValueError:
            return None

    # ---- auth events ----

    def attach(self) -> None:
        if self._detach is None:
            self._detach = self.auth.on_auth_state_change(self._on_auth_event)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def _on_auth_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        if event == AuthEvent.SIGNED_IN and session is not None:
            self._storage.set_flag(PREVIOUSLY_AUTHENTICATED_KEY)
            self._storage.remove(STORAGE_MODE_KEY)
            self._set(StorageMode.REMOTE, session)
        elif event == AuthEvent.SIGNED_OUT:
            self._storage.remove(PREVIOUSLY_AUTHENTICATED_KEY)
            self._ensure_local_seed()
            self._set(StorageMode.LOCAL, None)

    # ---- change notification ----

    def on_change(self, listener: ModeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, mode: StorageMode, session: Optional[AuthSession]) -> None:
        previous = self._mode
        session_changed = session != self._session
        self._mode = mode
        self._session = session
        if previous == mode and not session_changed:
            return
        logger.info("Storage mode: %s -> %s", previous.value if previous else "unknown", mode.value)
        for listener in list(self._listeners):
            listener(previous, mode)

    def _ensure_local_seed(self) -> None:
        try:
            seed_local_store(self.local, self._seed_today)
        except StoreError:
            logger.exception("Seeding local storage failed")
