"""Tests for habitmind/persistence.py: JSON backend and the debounced gateway."""

import json

import pytest

from habitmind.models import AppState, Habit, Task
from habitmind.persistence import STORAGE_KEY, JsonFileBackend, PersistenceGateway, StorageError
from habitmind.store import DomainStore

from conftest import RecordingBackend, fixed_clock


def _state(n_tasks: int = 1) -> AppState:
    return AppState(
        onboarded=True,
        tasks=[Task(id=f"t{i}", title=f"Task {i}", progress=10 * i, date="2026-02-11") for i in range(n_tasks)],
        habits=[Habit(id="h1", name="Read", completed_dates={"2026-02-10", "2026-02-11"}, streak=2)],
    )


# ── JsonFileBackend ──────────────────────────────────────────


def test_json_backend_missing_file_reads_none(tmp_path):
    assert JsonFileBackend(tmp_path / "state.json").read() is None


def test_json_backend_writes_envelope(tmp_path):
    path = tmp_path / "state.json"
    backend = JsonFileBackend(path)
    backend.write(_state().to_dict())
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["key"] == STORAGE_KEY
    assert doc["state"]["tasks"][0]["id"] == "t0"
    assert "savedAt" in doc
    assert list(tmp_path.glob(".tmp_*")) == []


def test_json_backend_accepts_bare_document(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"tasks": [{"id": "t1", "title": "x"}]}), encoding="utf-8")
    assert JsonFileBackend(path).read()["tasks"][0]["id"] == "t1"


def test_json_backend_corrupt_file_raises(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonFileBackend(path).read()


def test_json_backend_foreign_key_raises(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"key": "someone-else", "state": {}}), encoding="utf-8")
    with pytest.raises(StorageError):
        JsonFileBackend(path).read()


# ── load ─────────────────────────────────────────────────────


def test_load_empty_backend_gives_defaults():
    result = PersistenceGateway(RecordingBackend()).load_result()
    assert result.ok is True
    assert result.empty is True
    assert result.state == AppState()


def test_load_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("\x00\x01garbage", encoding="utf-8")
    gateway = PersistenceGateway(JsonFileBackend(path))
    result = gateway.load_result()
    assert result.ok is False
    assert result.error
    assert gateway.load() == AppState()


def test_load_failing_backend_gives_defaults():
    backend = RecordingBackend()
    backend.fail_reads = True
    assert PersistenceGateway(backend).load() == AppState()


# ── debounced saving ─────────────────────────────────────────


def test_burst_of_saves_coalesces_into_one_write(gateway, backend, timers):
    for n in range(1, 6):
        gateway.schedule_save(_state(n))
    assert backend.writes == []
    assert gateway.has_pending is True
    assert len(timers.created) == 5
    assert len(timers.live) == 1
    assert all(t.daemon and t.started for t in timers.created)
    assert timers.live[0].interval == 0.3

    timers.live[0].fire()
    assert len(backend.writes) == 1
    assert len(backend.writes[0]["tasks"]) == 5
    assert gateway.has_pending is False
    assert gateway.writes == 1


def test_saved_state_is_a_snapshot(gateway, backend):
    state = _state(1)
    gateway.schedule_save(state)
    state.tasks[0].title = "mutated after scheduling"
    gateway.flush()
    assert backend.writes[0]["tasks"][0]["title"] == "Task 0"


def test_flush_cancels_timer_and_writes(gateway, backend, timers):
    gateway.schedule_save(_state())
    assert gateway.flush() is True
    assert timers.created[0].cancelled is True
    assert len(backend.writes) == 1
    # nothing pending: a second flush is a no-op
    assert gateway.flush() is True
    assert len(backend.writes) == 1


def test_failed_write_is_retained_and_retried(gateway, backend):
    backend.fail_writes = True
    gateway.schedule_save(_state(2))
    assert gateway.flush() is False
    assert gateway.save_failures == 1
    assert gateway.has_pending is True

    backend.fail_writes = False
    assert gateway.flush() is True
    assert len(backend.writes) == 1
    assert len(backend.writes[0]["tasks"]) == 2


def test_failed_write_does_not_clobber_newer_state(gateway, backend, timers):
    backend.fail_writes = True
    gateway.schedule_save(_state(1))
    gateway.flush()
    gateway.schedule_save(_state(3))
    backend.fail_writes = False
    timers.live[0].fire()
    assert len(backend.writes[-1]["tasks"]) == 3


def test_close_flushes_and_stops_timers(gateway, backend, timers):
    gateway.schedule_save(_state())
    assert gateway.close() is True
    assert len(backend.writes) == 1
    created = len(timers.created)
    gateway.schedule_save(_state(2))
    assert len(timers.created) == created
    assert gateway.has_pending is True


# ── end to end with a real file ──────────────────────────────


def test_flush_then_load_round_trips(tmp_path, timers):
    path = tmp_path / "state.json"
    gateway = PersistenceGateway(JsonFileBackend(path), timer_factory=timers)
    store = DomainStore(gateway=gateway, clock=fixed_clock)
    task = store.create_task("Read", 30)
    store.update_task_progress(task.id, 100)
    habit = store.create_habit("Meditate")
    store.toggle_habit_completion(habit.id)
    store.add_journal_entry("text", "hello", ["a", "b"], mood=4)
    store.add_goal("Run 5K", progress=20)
    assert store.flush() is True

    loaded = PersistenceGateway(JsonFileBackend(path)).load()
    assert loaded == store.state


def test_load_collapses_duplicate_tracker_dates(tmp_path):
    path = tmp_path / "state.json"
    doc = {"trackers": [{"id": "a", "date": "2026-02-10"}, {"id": "b", "date": "2026-02-10", "energy": 7}]}
    path.write_text(json.dumps({"key": STORAGE_KEY, "state": doc}), encoding="utf-8")
    trackers = PersistenceGateway(JsonFileBackend(path)).load().trackers
    assert [(t.id, t.energy) for t in trackers] == [("b", 7)]
