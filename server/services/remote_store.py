"""
Remote backend: tenant-scoped CRUD over the SQLAlchemy tables.

Every query is filtered by the owning user_id, so one user can never read or
write another user's rows through this store. Filters are pushed down as SQL
predicates; the final ordering uses the same sort helpers as the local
backend so both return identical sequences.

Any SQLAlchemy failure is rolled back and surfaces as BackendUnavailable.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from server.db.models import CourseRow, DailyEntryRow, NoteRow
from server.realtime import RealtimeHub, RemoteChangeBus, get_hub
from study.backend import EntityRepository, StorageBackend
from study.errors import BackendUnavailable, ValidationViolation
from study.filters import sort_courses, sort_daily_entries, sort_notes
from study.kinds import EntityKind
from study.models import MODEL_FOR_KIND, to_iso

logger = logging.getLogger("rootly.remote")

ROW_FOR_KIND = {
    EntityKind.COURSES: CourseRow,
    EntityKind.NOTES: NoteRow,
    EntityKind.DAILY_ENTRIES: DailyEntryRow,
}

_SORTERS = {
    EntityKind.COURSES: sort_courses,
    EntityKind.NOTES: sort_notes,
    EntityKind.DAILY_ENTRIES: sort_daily_entries,
}

# Columns the store owns; never copied from caller fields.
_PROTECTED = {'id', 'user_id', 'created_at', 'updated_at'}


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally (escape char is a backslash)."""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _like(column, term: str):
    return column.ilike(f"%{escape_like(term)}%", escape='\\')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RemoteRepository(EntityRepository):
    def __init__(self, kind: EntityKind, session_factory: sessionmaker, user_id: str, bus):
        super().__init__(kind, bus)
        self._session_factory = session_factory
        self.user_id = user_id
        self._row = ROW_FOR_KIND[self.kind]
        self._model = MODEL_FOR_KIND[self.kind]
        self._columns = {c.key for c in self._row.__table__.columns} - _PROTECTED

    @contextmanager
    def _session(self):
        try:
            session = self._session_factory()
        except SQLAlchemyError as e:
            logger.error("Opening a session failed: %s", e)
            raise BackendUnavailable(f"{self.kind.value} request failed: {e}") from e
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("%s query failed: %s", self.kind.value, e)
            raise BackendUnavailable(f"{self.kind.value} request failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ---- row helpers ----

    def _to_entity(self, row):
        data = {c.key: getattr(row, c.key) for c in self._row.__table__.columns}
        data.pop('user_id', None)
        data['created_at'] = to_iso(row.created_at)
        data['updated_at'] = to_iso(row.updated_at)
        return self._model.from_dict(data)

    def _scoped(self):
        return select(self._row).where(self._row.user_id == self.user_id)

    def _find(self, session, entity_id: str):
        return session.scalars(self._scoped().where(self._row.id == entity_id)).first()

    def _apply(self, row, fields: Dict[str, Any], now: datetime) -> None:
        for key, value in fields.items():
            if key in self._columns:
                setattr(row, key, value)
        row.updated_at = now

    def _predicates(self, filters) -> List:
        return []

    def _check_fields(self, session, fields: Dict[str, Any], entity_id: Optional[str] = None) -> None:
        """Remote-only referential checks, run inside the write session."""

    # ---- hooks ----

    def _list(self, filters) -> List:
        stmt = self._scoped()
        if filters is not None:
            for predicate in self._predicates(filters):
                stmt = stmt.where(predicate)
        with self._session() as session:
            rows = session.scalars(stmt).all()
            entities = [self._to_entity(r) for r in rows]
        return _SORTERS[self.kind](entities)

    def _get(self, entity_id: str):
        with self._session() as session:
            row = self._find(session, entity_id)
            return self._to_entity(row) if row is not None else None

    def count(self) -> int:
        stmt = select(func.count()).select_from(self._row).where(self._row.user_id == self.user_id)
        with self._session() as session:
            return session.scalar(stmt) or 0

    def _create(self, fields: Dict[str, Any]):
        now = _utcnow()
        with self._session() as session:
            self._check_fields(session, fields)
            row = self._row(user_id=self.user_id, created_at=now, updated_at=now)
            self._apply(row, fields, now)
            session.add(row)
            session.flush()
            return self._to_entity(row)

    def _update(self, entity_id: str, fields: Dict[str, Any]):
        with self._session() as session:
            row = self._find(session, entity_id)
            if row is None:
                return None
            self._check_fields(session, fields, entity_id)
            self._apply(row, fields, _utcnow())
            session.flush()
            return self._to_entity(row)

    def _delete(self, entity_id: str) -> bool:
        with self._session() as session:
            row = self._find(session, entity_id)
            if row is None:
                return False
            session.delete(row)
        return True


class RemoteCourseRepository(RemoteRepository):
    def __init__(self, session_factory: sessionmaker, user_id: str, bus):
        super().__init__(EntityKind.COURSES, session_factory, user_id, bus)

    def _predicates(self, filters) -> List:
        preds = []
        if filters.instructor is not None:
            preds.append(CourseRow.instructor == filters.instructor)
        if filters.search:
            preds.append(or_(_like(CourseRow.title, filters.search),
                             _like(CourseRow.instructor, filters.search)))
        return preds

    def _delete(self, entity_id: str) -> bool:
        with self._session() as session:
            row = self._find(session, entity_id)
            if row is None:
                return False
            had_notes = bool(row.notes)
            # ORM cascade removes the course's notes in the same transaction.
            session.delete(row)
        if had_notes:
            self._bus.publish(EntityKind.NOTES)
        return True


class RemoteNoteRepository(RemoteRepository):
    def __init__(self, session_factory: sessionmaker, user_id: str, bus):
        super().__init__(EntityKind.NOTES, session_factory, user_id, bus)

    def _predicates(self, filters) -> List:
        preds = []
        if filters.course_id is not None:
            preds.append(NoteRow.course_id == filters.course_id)
        if filters.understanding_level is not None:
            preds.append(NoteRow.understanding_level == filters.understanding_level)
        if filters.flagged is not None:
            preds.append(NoteRow.flag == filters.flagged)
        if filters.code_language is not None:
            preds.append(NoteRow.code_language == filters.code_language)
        if filters.search:
            preds.append(or_(_like(NoteRow.question, filters.search),
                             _like(NoteRow.answer, filters.search),
                             _like(NoteRow.code_snippet, filters.search)))
        return preds

    def _check_fields(self, session, fields, entity_id=None) -> None:
        course_id = fields.get('course_id')
        if course_id is None:
            return
        owned = session.scalars(
            select(CourseRow.id).where(CourseRow.id == course_id, CourseRow.user_id == self.user_id)
        ).first()
        if owned is None:
            raise ValidationViolation(f"course {course_id} not found")


class RemoteDailyEntryRepository(RemoteRepository):
    def __init__(self, session_factory: sessionmaker, user_id: str, bus):
        super().__init__(EntityKind.DAILY_ENTRIES, session_factory, user_id, bus)

    def _predicates(self, filters) -> List:
        preds = []
        if filters.date is not None:
            preds.append(DailyEntryRow.date == filters.date)
        if filters.since is not None:
            preds.append(DailyEntryRow.date >= filters.since)
        if filters.until is not None:
            preds.append(DailyEntryRow.date <= filters.until)
        return preds

    def _for_date(self, session, day: str):
        return session.scalars(self._scoped().where(DailyEntryRow.date == day)).first()

    def _check_fields(self, session, fields, entity_id=None) -> None:
        day = fields.get('date')
        if day is None or entity_id is None:
            return
        clash = self._for_date(session, day)
        if clash is not None and clash.id != entity_id:
            raise ValidationViolation(f"an entry for {day} already exists")

    def _create(self, fields: Dict[str, Any]):
        """Upsert by date within the tenant."""
        now = _utcnow()
        day = fields['date']
        with self._session() as session:
            row = self._for_date(session, day)
            if row is None:
                row = DailyEntryRow(user_id=self.user_id, created_at=now, updated_at=now)
                self._apply(row, fields, now)
                session.add(row)
                try:
                    session.flush()
                except IntegrityError:
                    # Another writer inserted the same date first.
                    session.rollback()
                    logger.info("Daily entry for %s created concurrently, updating instead", day)
                    row = self._for_date(session, day)
                    if row is None:
                        raise BackendUnavailable(f"daily entry for {day} could not be written")
                    self._apply(row, fields, now)
            else:
                self._apply(row, fields, now)
            session.flush()
            return self._to_entity(row)


class RemoteStore(StorageBackend):
    """
    Authenticated backend for one user.

    Writes are broadcast on the realtime hub, so other clients of the same
    user re-fetch as well.
    """

    name = "remote"

    def __init__(self, session_factory: sessionmaker, user_id: str, hub: Optional[RealtimeHub] = None):
        super().__init__(RemoteChangeBus(hub or get_hub(), user_id))
        self.user_id = user_id
        self._courses = RemoteCourseRepository(session_factory, user_id, self.bus)
        self._notes = RemoteNoteRepository(session_factory, user_id, self.bus)
        self._daily_entries = RemoteDailyEntryRepository(session_factory, user_id, self.bus)

    @property
    def courses(self) -> RemoteCourseRepository:
        return self._courses

    @property
    def notes(self) -> RemoteNoteRepository:
        return self._notes

    @property
    def daily_entries(self) -> RemoteDailyEntryRepository:
        return self._daily_entries
