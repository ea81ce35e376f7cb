"""In-process AuthClient backed by the auth service and the users/sessions tables."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from server.services import auth_service
from study.auth import AuthClient, AuthEvent, AuthSession
from study.errors import BackendUnavailable, NotAuthenticated

logger = logging.getLogger("rootly.auth")


class SessionAuthClient(AuthClient):
    """
    Holds one opaque session token, like a browser holding the session cookie.

    get_session() answers from the cached session without touching the
    database; get_user() re-validates the token and drops the cache when the
    session has expired or been revoked.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        token: Optional[str] = None,
        ttl_hours: int = auth_service.DEFAULT_TTL_HOURS,
    ):
        super().__init__()
        self._session_factory = session_factory
        self._ttl_hours = ttl_hours
        self.token = token
        self._cached: Optional[AuthSession] = None

    def _run(self, fn):
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            raise BackendUnavailable(f"auth backend unavailable: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _session_for(self, db, token: str) -> Optional[AuthSession]:
        row = auth_service.get_session_row(db, token)
        if row is None:
            return None
        user = auth_service.get_user_by_session(db, token)
        if user is None:
            return None
        return AuthSession(user_id=user.id, email=user.email, expires_at=row.expires_at)

    def get_session(self) -> Optional[AuthSession]:
        return self._cached

    def get_user(self) -> Optional[AuthSession]:
        if not self.token:
            return None
        token = self.token
        session = self._run(lambda db: self._session_for(db, token))
        self._cached = session
        return session

    def sign_up(self, email: str, password: str) -> AuthSession:
        """Register and sign in. Raises ValueError for a taken email or weak password."""
        def work(db):
            user = auth_service.register_user(db, email, password)
            token = auth_service.create_session(db, user.id, self._ttl_hours)
            return token, self._session_for(db, token)

        self.token, self._cached = self._run(work)
        self._emit(AuthEvent.SIGNED_IN, self._cached)
        return self._cached

    def sign_in(self, email: str, password: str) -> AuthSession:
        def work(db):
            user = auth_service.authenticate(db, email, password)
            if user is None:
                return None, None
            token = auth_service.create_session(db, user.id, self._ttl_hours)
            return token, self._session_for(db, token)

        token, session = self._run(work)
        if session is None:
            raise NotAuthenticated("Invalid email or password")
        self.token, self._cached = token, session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        token = self.token
        self.token = None
        self._cached = None
        if token:
            try:
                self._run(lambda db: auth_service.logout_session(db, token))
            except BackendUnavailable as e:
                # Local sign-out still happens; the server row simply expires.
                logger.warning("Server-side logout failed: %s", e)
        self._emit(AuthEvent.SIGNED_OUT, None)
