"""Configuration for the Rootly API server and the local CLI."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _env_int(name: str, current: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return current
    try:
        return int(value)
    except ValueError:
        return current


@dataclass
class Settings:
    """
    Database, local storage and session settings.

    Defaults resolve relative to the project root.
    Every field is overridable at construction for testing.
    """
    database_url: Optional[str] = None
    local_storage_path: Optional[Path] = None
    session_ttl_hours: Optional[int] = None
    cors_origins: List[str] = field(default_factory=list)
    review_default_limit: Optional[int] = None
    log_level: Optional[str] = None

    def __post_init__(self):
        project_root = Path(__file__).resolve().parent.parent

        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", "sqlite:///./rootly.db")

        if self.local_storage_path is None:
            env_path = os.environ.get("ROOTLY_LOCAL_STORAGE")
            self.local_storage_path = (
                Path(env_path) if env_path else project_root / ".rootly" / "local_storage.json"
            )
        self.local_storage_path = Path(self.local_storage_path)

        if self.session_ttl_hours is None:
            self.session_ttl_hours = _env_int("SESSION_TTL_HOURS", 168)
        if self.review_default_limit is None:
            self.review_default_limit = _env_int("REVIEW_LIMIT", 20)

        if not self.cors_origins:
            env_origins = os.environ.get("CORS_ORIGINS")
            self.cors_origins = (
                [o.strip() for o in env_origins.split(",") if o.strip()]
                if env_origins else ["http://localhost:3000"]
            )

        if self.log_level is None:
            self.log_level = os.environ.get("LOG_LEVEL", "INFO")
        self.log_level = self.log_level.upper()
