"""Authentication service: register, login, session management."""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from sqlalchemy.orm import Session as DBSession

from server.db.models import Session, User

logger = logging.getLogger("rootly.auth")

ph = PasswordHasher()

DEFAULT_TTL_HOURS = 24 * 7
MIN_PASSWORD_LENGTH = 6


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def normalize_email(email: str) -> str:
    return email.lower().strip()


def register_user(db: DBSession, email: str, password: str) -> User:
    """Create a new user. Raises ValueError if the email exists or the password is too short."""
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValueError("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise ValueError("Email already registered")
    user = User(email=email, password_hash=ph.hash(password))
    db.add(user)
    db.flush()
    logger.info("Registered user %s", user.id)
    return user


def verify_password(password: str, password_hash: str) -> bool:
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def authenticate(db: DBSession, email: str, password: str) -> Optional[User]:
    """User for valid credentials, else None."""
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def create_session(db: DBSession, user_id: str, ttl_hours: int = DEFAULT_TTL_HOURS) -> str:
    """Create session, return raw token (to set in cookie)."""
    token = secrets.token_urlsafe(32)
    expires = datetime.now(timezone.utc) + timedelta(hours=ttl_hours)
    sess = Session(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=expires,
    )
    db.add(sess)
    db.flush()
    return token


def get_session_row(db: DBSession, token: str) -> Optional[Session]:
    if not token:
        return None
    return db.query(Session).filter(
        Session.token_hash == hash_token(token),
        Session.expires_at > datetime.now(timezone.utc),
    ).first()


def get_user_by_session(db: DBSession, token: str) -> Optional[User]:
    """Return user if valid session token, else None."""
    sess = get_session_row(db, token)
    if not sess:
        return None
    return db.query(User).filter(User.id == sess.user_id).first()


def logout_session(db: DBSession, token: str) -> bool:
    """Delete session by token. Returns True if found."""
    if not token:
        return False
    deleted = db.query(Session).filter(Session.token_hash == hash_token(token)).delete()
    return deleted > 0
