"""Database layer: SQLAlchemy models and session."""

from server.db.models import Base, User, Session, CourseRow, NoteRow, DailyEntryRow
from server.db.session import get_db, init_db

__all__ = [
    "Base",
    "User",
    "Session",
    "CourseRow",
    "NoteRow",
    "DailyEntryRow",
    "get_db",
    "init_db",
]
