"""Tests for study/cli.py -- the local-storage command line."""

import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from study.cli import main
from study.kv import JsonFileStorage
from study.storage import REVIEW_SESSION_KEY, LocalStore


@pytest.fixture
def storage_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield str(Path(tmp) / "local_storage.json")


def _run(path, *argv, answers=()):
    """Run the CLI; returns (exit code, printed text)."""
    replies = iter(answers)
    out = []

    def ask(prompt):
        out.append(prompt)
        try:
            return next(replies)
        except StopIteration:
            raise EOFError

    code = main(['--storage', path, *argv], ask=ask, say=out.append)
    return code, "\n".join(str(line) for line in out)


def test_first_use_seeds_demo_courses(storage_path):
    code, text = _run(storage_path, 'courses')
    assert code == 0
    assert '2 course(s)' in text
    assert 'Complete MongoDB' in text


def test_notes_filters(storage_path):
    _, text = _run(storage_path, 'notes', '--flagged')
    assert 'note(s)' in text
    assert '[flagged]' in text
    _, text = _run(storage_path, 'notes', '--search', 'no such phrase anywhere')
    assert 'No notes match.' in text


def test_add_entry_upserts_and_validates(storage_path):
    code, text = _run(storage_path, 'add-entry', '2026-02-01', '45', '4', '--notes', 'graphs')
    assert code == 0
    assert 'Saved 2026-02-01: 45 min, mood 4' in text
    _run(storage_path, 'add-entry', '2026-02-01', '60', '5')

    entries = LocalStore(JsonFileStorage(Path(storage_path))).daily_entries.list()
    same_day = [e for e in entries if e.date == '2026-02-01']
    assert len(same_day) == 1
    assert same_day[0].study_time == 60

    code, text = _run(storage_path, 'add-entry', '2026-02-02', '30', '9')
    assert code == 1
    assert 'Could not save entry' in text


def test_review_to_completion_prints_summary(storage_path):
    code, text = _run(
        storage_path, 'review', '--no-shuffle', '--limit', '2',
        answers=['', '5', '', 'abc', '1'],
    )
    assert code == 0
    assert 'REVIEW: 2 note(s)' in text
    assert 'Enter a number from 1 to 5.' in text
    assert 'SESSION COMPLETE' in text
    assert 'Accuracy:' in text
    assert JsonFileStorage(Path(storage_path)).get(REVIEW_SESSION_KEY) is None


def test_review_quit_then_resume(storage_path):
    _, text = _run(storage_path, 'review', '--no-shuffle', '--limit', '3', answers=['', '4', 'q'])
    assert 'Progress saved' in text
    assert JsonFileStorage(Path(storage_path)).get(REVIEW_SESSION_KEY) is not None

    _, text = _run(storage_path, 'review', answers=['', '4', '', '4'])
    assert 'Resuming session at note 2 of 3.' in text
    assert 'SESSION COMPLETE' in text


def test_review_ending_on_skip_has_no_summary(storage_path):
    _, text = _run(storage_path, 'review', '--limit', '1', answers=['s'])
    assert 'nothing to summarize' in text
    assert 'SESSION COMPLETE' not in text


def test_review_end_discards_session(storage_path):
    _, text = _run(storage_path, 'review', '--limit', '2', answers=['e'])
    assert 'Session ended.' in text
    assert JsonFileStorage(Path(storage_path)).get(REVIEW_SESSION_KEY) is None


def test_review_with_no_candidates(storage_path):
    _run(storage_path, 'courses')
    _run(storage_path, 'reset', '--keep-flag')
    code, text = _run(storage_path, 'review')
    assert code == 0
    assert 'No notes to review.' in text


def test_reset_restores_demo_data_unless_flag_kept(storage_path):
    _run(storage_path, 'courses')
    _, text = _run(storage_path, 'reset', '--keep-flag')
    assert 'Local data cleared.' in text
    _, text = _run(storage_path, 'courses')
    assert 'No courses yet.' in text

    _, text = _run(storage_path, 'reset')
    assert 'demo data will be restored' in text
    _, text = _run(storage_path, 'courses')
    assert '2 course(s)' in text


def test_stats(storage_path):
    code, text = _run(storage_path, 'stats')
    assert code == 0
    assert 'Courses:            2' in text
    assert 'Notes:              6' in text


def test_no_command_prints_help(storage_path):
    assert main(['--storage', storage_path], ask=input, say=lambda *_: None) == 1
