"""Tests for study/kv.py and study/storage.py -- local key-value backend."""

import json
import re
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from study.errors import NotFound, ValidationViolation
from study.filters import CourseFilters, DailyEntryFilters, NoteFilters, visible_notes
from study.kinds import EntityKind
from study.kv import JsonFileStorage, MemoryStorage
from study.storage import (
    STORAGE_INITIALIZED_KEY,
    STORAGE_KEYS,
    LocalStore,
    clear_local_data,
    generate_local_id,
    reset_local_storage,
)


def _store():
    return LocalStore(MemoryStorage())


def _course(store, title="Algorithms", instructor="Ada"):
    return store.courses.create({'title': title, 'instructor': instructor})


# ---- key-value storage ----

def test_json_file_storage_persists_across_instances():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'local.json'
        JsonFileStorage(path).set('a', '1')
        assert JsonFileStorage(path).get('a') == '1'
        assert not Path(str(path) + '.tmp').exists()


def test_json_file_storage_unreadable_file_starts_empty():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'local.json'
        path.write_text('{not json', encoding='utf-8')
        storage = JsonFileStorage(path)
        assert storage.keys() == []
        storage.set('k', 'v')
        assert json.loads(path.read_text(encoding='utf-8')) == {'k': 'v'}


def test_corrupt_key_only_affects_that_key():
    storage = MemoryStorage({
        STORAGE_KEYS[EntityKind.COURSES]: '[{"id": "c1", "title": "Kept"}]',
        STORAGE_KEYS[EntityKind.NOTES]: '{{broken',
    })
    store = LocalStore(storage)
    assert store.notes.list() == []
    assert [c.title for c in store.courses.list()] == ['Kept']


def test_malformed_rows_are_skipped():
    storage = MemoryStorage({
        STORAGE_KEYS[EntityKind.COURSES]: json.dumps([
            {'id': 'c1', 'title': 'Good'},
            'not a row',
            {'title': 'missing id'},
        ]),
    })
    assert [c.id for c in LocalStore(storage).courses.list()] == ['c1']


# ---- ids and timestamps ----

def test_local_id_format():
    assert re.fullmatch(r'\d{13}-[0-9a-z]{9}', generate_local_id())


def test_create_assigns_id_and_equal_timestamps():
    store = _store()
    course = _course(store)
    assert course.id
    assert course.created_at == course.updated_at
    assert store.courses.get(course.id) == course


def test_create_ignores_caller_system_fields():
    store = _store()
    course = store.courses.create({'id': 'mine', 'title': 'T', 'created_at': 'yesterday'})
    assert course.id != 'mine'
    assert course.created_at != 'yesterday'


def test_create_requires_key_fields():
    store = _store()
    with pytest.raises(ValidationViolation):
        store.courses.create({'instructor': 'nobody'})
    with pytest.raises(ValidationViolation):
        store.daily_entries.create({'study_time': 10})


# ---- update / delete ----

def test_update_merges_and_refreshes_updated_at():
    store = _store()
    course = _course(store)
    updated = store.courses.update(course.id, {'instructor': 'Grace', 'created_at': 'x', 'id': 'y'})
    assert updated.id == course.id
    assert updated.title == 'Algorithms'
    assert updated.instructor == 'Grace'
    assert updated.created_at == course.created_at
    assert updated.updated_at >= course.updated_at


def test_update_and_delete_unknown_id():
    store = _store()
    assert store.notes.update('missing', {'question': 'q'}) is None
    assert store.notes.delete('missing') is False
    with pytest.raises(NotFound):
        store.notes.require('missing')


def test_delete_course_leaves_orphan_notes_readable():
    store = _store()
    course = _course(store)
    store.notes.create({'course_id': course.id, 'question': 'Q'})
    assert store.courses.delete(course.id) is True

    notes = store.notes.list()
    assert len(notes) == 1
    assert visible_notes(notes, store.courses.list()) == []


# ---- validation ----

@pytest.mark.parametrize('fields', [
    {'understanding_level': 0},
    {'understanding_level': 6},
    {'understanding_level': 2.5},
    {'understanding_level': True},
])
def test_note_level_out_of_range_rejected(fields):
    store = _store()
    course = _course(store)
    with pytest.raises(ValidationViolation):
        store.notes.create({'course_id': course.id, **fields})
    assert store.notes.list() == []


def test_daily_entry_bounds():
    store = _store()
    with pytest.raises(ValidationViolation):
        store.daily_entries.create({'date': '2026-01-01', 'study_time': 1441})
    with pytest.raises(ValidationViolation):
        store.daily_entries.create({'date': '2026-01-01', 'mood': 0})
    with pytest.raises(ValidationViolation):
        store.daily_entries.create({'date': '2026-13-01'})
    entry = store.daily_entries.create({'date': '2026-01-01', 'study_time': 1440, 'mood': 5})
    assert entry.study_time == 1440


def test_unknown_code_language_falls_back_to_plaintext():
    store = _store()
    course = _course(store)
    note = store.notes.create({'course_id': course.id, 'code_language': 'cobol'})
    assert note.code_language == 'plaintext'


# ---- upsert by date ----

def test_daily_entry_create_upserts_by_date():
    store = _store()
    first = store.daily_entries.create({'date': '2026-03-01', 'study_time': 30})
    second = store.daily_entries.create({'date': '2026-03-01', 'study_time': 90, 'mood': 5})

    entries = store.daily_entries.list(DailyEntryFilters(date='2026-03-01'))
    assert len(entries) == 1
    assert entries[0].id == first.id == second.id
    assert entries[0].study_time == 90
    assert entries[0].mood == 5


# ---- filters and ordering ----

def test_note_filters_are_a_conjunction():
    store = _store()
    c1 = _course(store, 'One')
    c2 = _course(store, 'Two')
    store.notes.create({'course_id': c1.id, 'question': 'What is a Heap?', 'flag': True})
    store.notes.create({'course_id': c1.id, 'question': 'Stack basics', 'answer': 'LIFO heap-free'})
    store.notes.create({'course_id': c2.id, 'question': 'heap sort', 'flag': True})

    assert len(store.notes.list(NoteFilters(search='HEAP'))) == 3
    assert len(store.notes.list(NoteFilters(search='heap', flagged=True))) == 2
    found = store.notes.list(NoteFilters(search='heap', flagged=True, course_id=c1.id))
    assert [n.question for n in found] == ['What is a Heap?']


def test_note_search_matches_code_snippet():
    store = _store()
    course = _course(store)
    store.notes.create({'course_id': course.id, 'question': 'q', 'code_snippet': 'useEffect(() => {})'})
    assert len(store.notes.list(NoteFilters(search='useeffect'))) == 1


def test_course_ordering_and_search():
    store = _store()
    _course(store, 'Zoology', 'Bob')
    _course(store, 'Algebra', 'Eve')
    _course(store, 'Music', 'Bob')
    assert [c.title for c in store.courses.list()] == ['Algebra', 'Music', 'Zoology']
    assert [c.title for c in store.courses.list(CourseFilters(instructor='Bob'))] == ['Music', 'Zoology']
    assert [c.title for c in store.courses.list(CourseFilters(search='eve'))] == ['Algebra']


def test_daily_entries_newest_date_first_and_range():
    store = _store()
    for d in ('2026-01-02', '2026-01-05', '2026-01-03'):
        store.daily_entries.create({'date': d})
    assert [e.date for e in store.daily_entries.list()] == ['2026-01-05', '2026-01-03', '2026-01-02']
    ranged = store.daily_entries.list(DailyEntryFilters(since='2026-01-03', until='2026-01-05'))
    assert [e.date for e in ranged] == ['2026-01-05', '2026-01-03']


# ---- events ----

def test_each_successful_mutation_publishes_once():
    store = _store()
    seen = []
    store.bus.subscribe(EntityKind.COURSES, seen.append)

    course = _course(store)
    store.courses.update(course.id, {'title': 'New'})
    store.courses.delete(course.id)
    assert seen == [EntityKind.COURSES] * 3

    store.courses.update('missing', {'title': 'x'})
    store.courses.delete('missing')
    with pytest.raises(ValidationViolation):
        store.courses.create({})
    assert len(seen) == 3


# ---- reset utilities ----

def test_clear_all_keeps_flags():
    store = _store()
    _course(store)
    store.mark_initialized()
    store.clear_all()
    assert store.courses.list() == []
    assert store.is_initialized()


def test_reset_local_storage_clears_initialized_flag():
    store = _store()
    _course(store)
    store.mark_initialized()
    reset_local_storage(store)
    assert not store.has_data()
    assert store.storage.get(STORAGE_INITIALIZED_KEY) is None


def test_clear_local_data_keeps_initialized_flag():
    store = _store()
    _course(store)
    store.mark_initialized()
    clear_local_data(store)
    assert not store.has_data()
    assert store.is_initialized()
