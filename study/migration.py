"""
One-shot transfer of local data into the remote backend after sign-in.

Fail-forward, not atomic: individual entity failures are logged and skipped.
Re-running after a partial success can duplicate courses (there is no
per-migration idempotency key).
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from study.auth import AuthClient, AuthSession
from study.backend import StorageBackend
from study.errors import BackendUnavailable, NotAuthenticated, PartialMigrationFailure, StoreError
from study.kinds import EntityKind
from study.models import content_fields
from study.seed import seed_backend
from study.storage import LocalStore

logger = logging.getLogger("rootly.migration")

RemoteFactory = Callable[[AuthSession], StorageBackend]


@dataclass
class MigrationResult:
    success: bool
    skipped: bool = False
    seeded: bool = False
    error: Optional[StoreError] = None
    courses_migrated: int = 0
    notes_migrated: int = 0
    entries_migrated: int = 0
    failures: List[PartialMigrationFailure] = field(default_factory=list)

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ''

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'skipped': self.skipped,
            'seeded': self.seeded,
            'error': self.message or None,
            'courses_migrated': self.courses_migrated,
            'notes_migrated': self.notes_migrated,
            'entries_migrated': self.entries_migrated,
            'failures': [f.__dict__ for f in self.failures],
        }


def _discard_local(local: LocalStore) -> None:
    local.clear_all()
    local.clear_initialized()


def migrate_local_to_remote(
    auth: AuthClient,
    local: LocalStore,
    remote_factory: RemoteFactory,
    today: Optional[date] = None,
) -> MigrationResult:
    """
    Move every local course, note and daily entry into the signed-in tenant.

    Outcomes:
        - not signed in / auth check fails      -> success=False, NotAuthenticated
        - remote existence check fails           -> success=False, BackendUnavailable
        - remote already has courses             -> skipped, local data discarded
        - remote and local both empty            -> remote seeded with demo data
        - otherwise                              -> courses, then notes, then entries
    """
    try:
        session = auth.get_user()
    except Exception as e:
        logger.warning("Auth check failed before migration: %s", e)
        session = None
    if session is None:
        return MigrationResult(success=False, error=NotAuthenticated("User not authenticated"))

    remote = remote_factory(session)

    try:
        remote_has_courses = remote.courses.exists()
    except StoreError as e:
        logger.error("Error checking existing courses: %s", e)
        return MigrationResult(success=False, error=BackendUnavailable(str(e)))

    if remote_has_courses:
        _discard_local(local)
        logger.info("Remote account already has data; local data discarded without migrating")
        return MigrationResult(success=True, skipped=True)

    data = local.all_data()
    if not any(data.values()):
        try:
            seed_backend(remote, today)
        except StoreError as e:
            logger.error("Error seeding demo data: %s", e)
            return MigrationResult(success=False, error=BackendUnavailable(f"Failed to seed demo data: {e}"))
        _discard_local(local)
        return MigrationResult(success=True, seeded=True)

    result = MigrationResult(success=True)

    # Remote ids are server-generated: old local id -> new remote id.
    course_ids: Dict[str, str] = {}
    for course in data[EntityKind.COURSES.value]:
        try:
            created = remote.courses.create(content_fields(course))
        except StoreError as e:
            logger.error("Error migrating course %s: %s", course.id, e)
            result.failures.append(PartialMigrationFailure('courses', course.id, str(e)))
            continue
        course_ids[course.id] = created.id
        result.courses_migrated += 1

    for note in data[EntityKind.NOTES.value]:
        new_course_id = course_ids.get(note.course_id)
        if new_course_id is None:
            logger.warning("Course %s not found, skipping note %s", note.course_id, note.id)
            result.failures.append(PartialMigrationFailure(
                'notes', note.id, f"course {note.course_id} was not migrated",
            ))
            continue
        fields = content_fields(note)
        fields['course_id'] = new_course_id
        try:
            remote.notes.create(fields)
        except StoreError as e:
            logger.error("Error migrating note %s: %s", note.id, e)
            result.failures.append(PartialMigrationFailure('notes', note.id, str(e)))
            continue
        result.notes_migrated += 1

    # create() upserts by date, so a date already present remotely is updated in place.
    for entry in data[EntityKind.DAILY_ENTRIES.value]:
        try:
            remote.daily_entries.create(content_fields(entry))
        except StoreError as e:
            logger.error("Error migrating daily entry %s: %s", entry.date, e)
            result.failures.append(PartialMigrationFailure('daily_entries', entry.id, str(e)))
            continue
        result.entries_migrated += 1

    _discard_local(local)
    logger.info(
        "Migrated %d course(s), %d note(s), %d daily entr(ies); %d skipped",
        result.courses_migrated, result.notes_migrated, result.entries_migrated,
        len(result.failures),
    )
    return result
