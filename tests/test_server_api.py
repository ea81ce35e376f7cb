"""Tests for the per-user study data routes: courses, notes, daily entries, seed, stats."""

import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from fastapi.testclient import TestClient

from server.app import app
from server.config import Settings
from server.db.session import init_db, reset_engine
from server.dependencies import get_realtime_hub, get_settings
from server.realtime import RealtimeHub
from study.kinds import EntityKind


@pytest.fixture
def api():
    """(client factory, hub) over a fresh SQLite database."""
    reset_engine()
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}")
        init_db(settings)
        hub = RealtimeHub()
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_realtime_hub] = lambda: hub

        def signed_in(email="learner@x.com"):
            client = TestClient(app)
            r = client.post("/auth/register", json={"email": email, "password": "password123"})
            assert r.status_code == 200
            return client

        try:
            yield signed_in, hub
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_data_routes_require_login(api):
    _, _ = api
    client = TestClient(app)
    for path in ("/courses", "/notes", "/daily-entries", "/stats/overview"):
        assert client.get(path).status_code == 401
    assert client.post("/seed").status_code == 401


def test_course_crud(api):
    signed_in, _ = api
    client = signed_in()
    r = client.post("/courses", json={"title": "Algorithms", "topics": ["graphs"]})
    assert r.status_code == 200
    course = r.json()
    assert course["title"] == "Algorithms"
    assert course["links"] == []

    r = client.patch(f"/courses/{course['id']}", json={"instructor": "Knuth"})
    assert r.status_code == 200
    assert r.json()["instructor"] == "Knuth"
    assert r.json()["title"] == "Algorithms"

    assert [c["id"] for c in client.get("/courses").json()] == [course["id"]]
    assert client.get(f"/courses/{course['id']}").json()["instructor"] == "Knuth"

    assert client.delete(f"/courses/{course['id']}").status_code == 200
    assert client.get(f"/courses/{course['id']}").status_code == 404
    assert client.delete(f"/courses/{course['id']}").status_code == 404
    assert client.patch(f"/courses/{course['id']}", json={"title": "x"}).status_code == 404


def test_note_routes_validate_and_filter(api):
    signed_in, _ = api
    client = signed_in()
    course = client.post("/courses", json={"title": "SQL"}).json()

    r = client.post("/notes", json={"course_id": course["id"], "question": "JOIN?", "understanding_level": 9})
    assert r.status_code == 422
    r = client.post("/notes", json={"course_id": "missing", "question": "Orphan"})
    assert r.status_code == 422

    note = client.post("/notes", json={
        "course_id": course["id"], "question": "What is 100% of a JOIN?", "flag": True,
    }).json()
    client.post("/notes", json={"course_id": course["id"], "question": "Indexes"})

    flagged = client.get("/notes", params={"flagged": "true"}).json()
    assert [n["id"] for n in flagged] == [note["id"]]
    found = client.get("/notes", params={"search": "100%"}).json()
    assert [n["id"] for n in found] == [note["id"]]

    r = client.patch(f"/notes/{note['id']}", json={"understanding_level": 5})
    assert r.json()["understanding_level"] == 5
    assert r.json()["flag"] is True

    # Deleting the course takes its notes with it.
    client.delete(f"/courses/{course['id']}")
    assert client.get("/notes").json() == []


def test_users_cannot_see_each_others_data(api):
    signed_in, _ = api
    alice = signed_in("alice@x.com")
    bob = signed_in("bob@x.com")
    course = alice.post("/courses", json={"title": "Private"}).json()

    assert bob.get("/courses").json() == []
    assert bob.get(f"/courses/{course['id']}").status_code == 404
    assert bob.delete(f"/courses/{course['id']}").status_code == 404
    r = bob.post("/notes", json={"course_id": course["id"], "question": "sneaky"})
    assert r.status_code == 422
    assert len(alice.get("/courses").json()) == 1


def test_daily_entry_post_upserts_by_date(api):
    signed_in, _ = api
    client = signed_in()
    first = client.post("/daily-entries", json={"date": "2026-03-01", "study_time": 30, "mood": 2}).json()
    second = client.post("/daily-entries", json={"date": "2026-03-01", "study_time": 90, "mood": 4}).json()
    assert second["id"] == first["id"]
    entries = client.get("/daily-entries").json()
    assert len(entries) == 1
    assert entries[0]["study_time"] == 90

    r = client.post("/daily-entries", json={"date": "2026-13-45", "study_time": 10})
    assert r.status_code == 422
    r = client.patch(f"/daily-entries/{first['id']}", json={"mood": 5})
    assert r.json()["mood"] == 5
    assert client.delete(f"/daily-entries/{first['id']}").status_code == 200


def test_seed_only_when_empty(api):
    signed_in, _ = api
    client = signed_in()
    r = client.post("/seed")
    assert r.status_code == 200
    assert r.json() == {"seeded": True, "counts": {"courses": 2, "notes": 6, "daily_entries": 4}}
    r = client.post("/seed")
    assert r.json()["seeded"] is False
    assert r.json()["counts"]["courses"] == 2


def test_stats_overview(api):
    signed_in, _ = api
    client = signed_in()
    empty = client.get("/stats/overview").json()
    assert empty["total_courses"] == 0
    assert empty["study_time"] is None

    client.post("/seed")
    stats = client.get("/stats/overview").json()
    assert stats["total_courses"] == 2
    assert stats["total_notes"] == 6
    assert stats["understanding"]["total"] == 6
    assert len(stats["course_progress"]["courses"]) == 2


def test_writes_are_broadcast_to_the_users_channel(api):
    signed_in, hub = api
    client = signed_in()
    user_id = client.get("/auth/me").json()["id"]
    seen = []
    hub.listen(user_id, EntityKind.COURSES, seen.append)
    hub.listen("someone-else", EntityKind.COURSES, lambda kind: seen.append("leak"))

    client.post("/courses", json={"title": "Broadcast"})
    assert seen == [EntityKind.COURSES]
