"""FastAPI dependency factories."""

import sys
from functools import lru_cache
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends
from sqlalchemy.orm import sessionmaker

from server.config import Settings
from server.db.session import get_session_factory
from server.realtime import RealtimeHub, get_hub


@lru_cache()
def get_settings() -> Settings:
    """Singleton Settings -- override via app.dependency_overrides in tests."""
    return Settings()


def get_db_factory(settings: Settings = Depends(get_settings)) -> sessionmaker:
    """Process-wide session factory bound to the configured database."""
    return get_session_factory(settings)


def get_realtime_hub() -> RealtimeHub:
    return get_hub()
