"""
Unit tests for Session Store

Tests copy semantics, atomic mutation, per-session serialization and TTL
eviction.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading
import time

import pytest

from questionnaire.contracts import QuestionSnapshot, ResponseEntry
from questionnaire.core.session_store import SessionStore
from questionnaire.errors import SessionNotFound
from questionnaire.utils.dialogue_states import DialogueState


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


QUESTIONS = [
    QuestionSnapshot(id="q1", text="First?"),
    QuestionSnapshot(id="q2", text="Second?", type="choice", options=("Yes", "No")),
]


def test_create_and_get():
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)

    session = store.get(session_id)

    assert session.id == session_id
    assert session.language == "en"
    assert [q.id for q in session.questions] == ["q1", "q2"]
    assert session.state == DialogueState.NOT_STARTED
    assert session.current_index == 0
    assert len(store) == 1

    print("✓ Create/get test passed")


def test_unknown_session_raises():
    store = SessionStore()

    with pytest.raises(SessionNotFound) as exc_info:
        store.get("missing")
    assert exc_info.value.session_id == "missing"

    with pytest.raises(SessionNotFound):
        store.mutate("missing", lambda s: None)


def test_get_returns_copy():
    """Changing a read copy never touches the stored session"""
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)

    copy_ = store.get(session_id)
    copy_.current_index = 1
    copy_.responses["q1"] = ResponseEntry("First?", "yes", "yes")

    stored = store.get(session_id)
    assert stored.current_index == 0
    assert stored.responses == {}


def test_mutate_commits_and_returns_result():
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)

    def advance(session):
        session.current_index = 1
        session.state = DialogueState.ASKING_QUESTION
        return "done"

    assert store.mutate(session_id, advance) == "done"

    session = store.get(session_id)
    assert session.current_index == 1
    assert session.state == DialogueState.ASKING_QUESTION


def test_mutate_rolls_back_on_exception():
    """A raising mutation leaves no partial writes"""
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)

    def broken(session):
        session.current_index = 1
        session.questions.pop()
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.mutate(session_id, broken)

    session = store.get(session_id)
    assert session.current_index == 0
    assert len(session.questions) == 2

    print("✓ Rollback test passed")


def test_mutate_with_discard_removes_session():
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)

    result = store.mutate(session_id, lambda s: s.id, discard=True)

    assert result == session_id
    assert len(store) == 0
    with pytest.raises(SessionNotFound):
        store.get(session_id)


def test_concurrent_mutations_are_serialized():
    """Read-modify-write on one session never loses an update"""
    store = SessionStore()
    session_id = store.create("en", QUESTIONS)
    workers = 8
    increments = 25

    def increment(session):
        value = session.current_index
        time.sleep(0.0005)
        session.current_index = value + 1

    def worker():
        for _ in range(increments):
            store.mutate(session_id, increment)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get(session_id).current_index == workers * increments

    print("✓ Serialization test passed")


def test_sessions_are_independent():
    """A long mutation on one session does not block another"""
    store = SessionStore()
    slow_id = store.create("en", QUESTIONS)
    fast_id = store.create("en", QUESTIONS)
    release = threading.Event()
    entered = threading.Event()

    def slow(session):
        entered.set()
        release.wait(timeout=5)

    thread = threading.Thread(target=store.mutate, args=(slow_id, slow))
    thread.start()
    entered.wait(timeout=5)

    store.mutate(fast_id, lambda s: setattr(s, "current_index", 1))
    assert store.get(fast_id).current_index == 1

    release.set()
    thread.join()


def test_session_expires_after_ttl():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    session_id = store.create("en", QUESTIONS)

    clock.advance(61)

    with pytest.raises(SessionNotFound):
        store.get(session_id)
    assert len(store) == 0


def test_mutation_slides_expiry():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    session_id = store.create("en", QUESTIONS)

    clock.advance(50)
    store.mutate(session_id, lambda s: None)
    clock.advance(50)

    assert store.get(session_id).id == session_id


def test_sweep_expired():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    old_id = store.create("en", QUESTIONS)
    clock.advance(30)
    new_id = store.create("en", QUESTIONS)
    clock.advance(40)

    assert store.sweep_expired() == 1
    assert len(store) == 1
    assert store.get(new_id).id == new_id
    with pytest.raises(SessionNotFound):
        store.get(old_id)


def test_create_sweeps_abandoned_sessions():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=10, clock=clock)
    store.create("en", QUESTIONS)
    store.create("en", QUESTIONS)
    clock.advance(11)

    store.create("en", QUESTIONS)

    assert len(store) == 1


def test_ttl_disabled():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=0, clock=clock)
    session_id = store.create("en", QUESTIONS)
    clock.advance(10 ** 9)

    assert store.sweep_expired() == 0
    assert store.get(session_id).id == session_id
