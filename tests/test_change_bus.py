"""Tests for study/bus.py, study/live.py and server/realtime.py."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from server.realtime import RealtimeHub, RemoteChangeBus
from study.bus import ChangeBus
from study.errors import BackendUnavailable
from study.filters import NoteFilters
from study.kinds import EntityKind
from study.kv import MemoryStorage
from study.live import LiveQuery
from study.storage import LocalStore


def test_subscribers_are_independent_per_kind():
    bus = ChangeBus()
    notes, courses = [], []
    bus.subscribe(EntityKind.NOTES, notes.append)
    bus.subscribe(EntityKind.NOTES, notes.append)
    bus.subscribe(EntityKind.COURSES, courses.append)

    bus.publish(EntityKind.NOTES)
    assert notes == [EntityKind.NOTES, EntityKind.NOTES]
    assert courses == []


def test_unsubscribe_stops_delivery():
    bus = ChangeBus()
    seen = []
    unsubscribe = bus.subscribe(EntityKind.NOTES, seen.append)
    unsubscribe()
    unsubscribe()
    bus.publish(EntityKind.NOTES)
    assert seen == []
    assert bus.subscriber_count(EntityKind.NOTES) == 0


def test_failing_subscriber_does_not_block_others():
    bus = ChangeBus()
    seen = []

    def broken(kind):
        raise RuntimeError("boom")

    bus.subscribe(EntityKind.NOTES, broken)
    bus.subscribe(EntityKind.NOTES, seen.append)
    bus.publish(EntityKind.NOTES)
    assert seen == [EntityKind.NOTES]


def test_subscriber_may_unsubscribe_during_delivery():
    bus = ChangeBus()
    seen = []
    holder = {}

    def once(kind):
        seen.append(kind)
        holder['unsub']()

    holder['unsub'] = bus.subscribe(EntityKind.NOTES, once)
    bus.publish(EntityKind.NOTES)
    bus.publish(EntityKind.NOTES)
    assert seen == [EntityKind.NOTES]


# ---- live queries ----

def test_live_query_refetches_on_change():
    store = LocalStore(MemoryStorage())
    course = store.courses.create({'title': 'C'})
    live = LiveQuery(store.notes, store.bus, NoteFilters(course_id=course.id))
    assert live.value == []

    store.notes.create({'course_id': course.id, 'question': 'Q1'})
    store.notes.create({'course_id': 'other', 'question': 'Q2'})
    assert [n.question for n in live.value] == ['Q1']
    assert live.fetch_count == 3


def test_coalesced_live_query_reads_once_for_many_publishes():
    store = LocalStore(MemoryStorage())
    live = LiveQuery(store.courses, store.bus, coalesce=True)
    for i in range(5):
        store.courses.create({'title': f'C{i}'})

    assert live.stale
    assert len(live.value) == 5
    assert live.fetch_count == 2
    assert not live.stale


def test_live_query_keeps_previous_value_on_error():
    store = LocalStore(MemoryStorage())
    store.courses.create({'title': 'C'})
    live = LiveQuery(store.courses, store.bus)

    def failing(filters):
        raise BackendUnavailable("offline")

    store.courses._list = failing
    live.refresh()
    assert isinstance(live.error, BackendUnavailable)
    assert [c.title for c in live.value] == ['C']


def test_closed_live_query_stops_listening():
    store = LocalStore(MemoryStorage())
    live = LiveQuery(store.courses, store.bus)
    live.close()
    store.courses.create({'title': 'C'})
    assert live.fetch_count == 1
    assert store.bus.subscriber_count(EntityKind.COURSES) == 0


# ---- realtime hub ----

def test_remote_bus_delivers_writes_from_other_clients_of_same_tenant():
    hub = RealtimeHub()
    phone = RemoteChangeBus(hub, 'user-1')
    laptop = RemoteChangeBus(hub, 'user-1')
    stranger = RemoteChangeBus(hub, 'user-2')
    seen_laptop, seen_stranger = [], []
    laptop.subscribe(EntityKind.NOTES, seen_laptop.append)
    stranger.subscribe(EntityKind.NOTES, seen_stranger.append)

    phone.publish(EntityKind.NOTES)
    assert seen_laptop == [EntityKind.NOTES]
    assert seen_stranger == []


def test_hub_unsubscribe_and_counts():
    hub = RealtimeHub()
    bus = RemoteChangeBus(hub, 'u')
    unsubscribe = bus.subscribe(EntityKind.COURSES, lambda kind: None)
    assert bus.subscriber_count(EntityKind.COURSES) == 1
    unsubscribe()
    assert hub.listener_count('u', EntityKind.COURSES) == 0


def test_hub_isolates_failing_listener():
    hub = RealtimeHub()
    seen = []

    def broken(kind):
        raise RuntimeError("boom")

    hub.listen('u', EntityKind.COURSES, broken)
    hub.listen('u', EntityKind.COURSES, seen.append)
    hub.broadcast('u', EntityKind.COURSES)
    assert seen == [EntityKind.COURSES]
