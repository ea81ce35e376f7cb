"""Typed failures shared by both storage backends and the session layer."""

from dataclasses import dataclass


class StoreError(Exception):
    """Base class for every data-layer failure surfaced to callers."""


class NotAuthenticated(StoreError):
    """An operation that needs a remote identity was called without one."""


class NotFound(StoreError):
    """Update/delete/lookup targeted an id that does not exist."""


class BackendUnavailable(StoreError):
    """The remote backend failed (connection, server or query error)."""


class ValidationViolation(StoreError, ValueError):
    """Structurally malformed fields (out-of-range ordinal, bad date)."""


@dataclass
class PartialMigrationFailure:
    """One entity that could not be migrated. Logged and skipped, never fatal."""
    kind: str
    local_id: str
    reason: str
