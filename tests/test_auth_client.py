"""Tests for server/services/auth_client.py -- in-process session auth."""

import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from server.config import Settings
from server.db.session import get_session_factory, init_db, reset_engine
from server.services.auth_client import SessionAuthClient
from study.auth import AuthEvent
from study.errors import NotAuthenticated


@pytest.fixture
def factory():
    reset_engine()
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}")
        init_db(settings)
        yield get_session_factory(settings)
        reset_engine()


def test_sign_up_caches_session_and_emits(factory):
    auth = SessionAuthClient(factory)
    events = []
    auth.on_auth_state_change(lambda event, session: events.append((event, session)))

    session = auth.sign_up("New@X.com", "password123")
    assert session.email == "new@x.com"
    assert auth.get_session() == session
    assert auth.token
    assert events == [(AuthEvent.SIGNED_IN, session)]


def test_sign_up_rejects_duplicate_and_short_password(factory):
    auth = SessionAuthClient(factory)
    auth.sign_up("dup@x.com", "password123")
    with pytest.raises(ValueError):
        SessionAuthClient(factory).sign_up("dup@x.com", "password456")
    with pytest.raises(ValueError):
        SessionAuthClient(factory).sign_up("short@x.com", "abc")


def test_sign_in_with_bad_credentials(factory):
    SessionAuthClient(factory).sign_up("u@x.com", "password123")
    auth = SessionAuthClient(factory)
    with pytest.raises(NotAuthenticated):
        auth.sign_in("u@x.com", "wrong-password")
    assert auth.get_session() is None
    assert auth.sign_in("u@x.com", "password123").email == "u@x.com"


def test_get_user_revalidates_token(factory):
    auth = SessionAuthClient(factory)
    session = auth.sign_up("u@x.com", "password123")

    # A second holder of the same token can see the session, then revoke it.
    other = SessionAuthClient(factory, token=auth.token)
    assert other.get_session() is None
    assert other.get_user().user_id == session.user_id
    other.sign_out()

    assert auth.get_session() == session
    assert auth.get_user() is None
    assert auth.get_session() is None


def test_sign_out_emits_and_forgets_token(factory):
    auth = SessionAuthClient(factory)
    auth.sign_up("u@x.com", "password123")
    events = []
    auth.on_auth_state_change(lambda event, session: events.append(event))
    auth.sign_out()
    assert auth.token is None
    assert auth.get_user() is None
    assert events == [AuthEvent.SIGNED_OUT]
