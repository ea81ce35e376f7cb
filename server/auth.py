"""Auth dependencies: resolve the user from the session cookie, build their store."""

from typing import Optional

from fastapi import Cookie, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession, sessionmaker

from server.db.models import User
from server.dependencies import get_db_factory, get_realtime_hub
from server.realtime import RealtimeHub
from server.services import auth_service
from server.services.remote_store import RemoteStore

SESSION_COOKIE = "rootly_session"


def get_db_session(factory: sessionmaker = Depends(get_db_factory)):
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_current_user_optional(
    rootly_session: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
    db: DBSession = Depends(get_db_session),
) -> Optional[User]:
    """Return current user or None if not authenticated."""
    if not rootly_session:
        return None
    return auth_service.get_user_by_session(db, rootly_session)


def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Require authenticated user. Raises 401 if not logged in."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_store(
    user: User = Depends(get_current_user),
    factory: sessionmaker = Depends(get_db_factory),
    hub: RealtimeHub = Depends(get_realtime_hub),
) -> RemoteStore:
    """The signed-in user's remote store. Every write is broadcast on the hub."""
    return RemoteStore(factory, user.id, hub)
