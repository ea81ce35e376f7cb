"""Auth collaborator interface consumed by the mode resolver and migration."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    email: str
    expires_at: Optional[datetime] = None


AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]


class AuthClient(ABC):
    """
    The client's view of the remote identity.

    get_session() may answer from a local cache; get_user() re-validates
    against the backend and may raise if the backend is unreachable.
    """

    def __init__(self):
        self._listeners: List[AuthListener] = []

    @abstractmethod
    def get_session(self) -> Optional[AuthSession]:
        ...

    @abstractmethod
    def get_user(self) -> Optional[AuthSession]:
        ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)


class AnonymousAuthClient(AuthClient):
    """No remote identity at all; the CLI and offline tools use it."""

    def get_session(self) -> Optional[AuthSession]:
        return None

    def get_user(self) -> Optional[AuthSession]:
        return None
