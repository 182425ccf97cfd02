"""Tests for habitmind/bootstrap.py: wiring a store from a data root."""

import json
import logging
from datetime import timedelta

from habitmind.bootstrap import make_backend, open_store
from habitmind.config import Settings
from habitmind.persistence import JsonFileBackend
from habitmind.sqlite_backend import SqliteBackend
from habitmind.workspace import SETTINGS_FILENAME, logs_dir, state_path

from conftest import TODAY, fixed_clock


def test_make_backend(root):
    assert isinstance(make_backend(Settings(), root), JsonFileBackend)
    assert isinstance(make_backend(Settings(storage="sqlite"), root), SqliteBackend)


def test_open_store_on_empty_root(root):
    store = open_store(root, clock=fixed_clock)
    assert store.state.tasks == []
    assert store.state.last_rollover_date == TODAY.isoformat()
    assert store.close() is True
    assert state_path(root).exists()


def test_open_store_reloads_and_rolls_over(root):
    yesterday = (TODAY - timedelta(days=1)).isoformat()
    store = open_store(root, clock=lambda: fixed_clock() - timedelta(days=1))
    task = store.create_task("Essay", 60)
    store.update_task_progress(task.id, 40)
    assert store.close() is True

    reopened = open_store(root, clock=fixed_clock)
    assert len(reopened.state.tasks) == 2
    original, copy = reopened.state.tasks
    assert (original.date, original.progress) == (yesterday, 40)
    assert (copy.date, copy.progress, copy.carried_from) == (TODAY.isoformat(), 0, task.id)
    reopened.close()


def test_open_store_with_corrupt_state_starts_empty(root):
    state_path(root).write_text("not json at all", encoding="utf-8")
    store = open_store(root, clock=fixed_clock)
    assert store.state.tasks == []
    assert store.state.habits == []
    store.close()


def test_open_store_honours_settings_file(root):
    (root / SETTINGS_FILENAME).write_text("storage: sqlite\nsave_debounce_ms: 0\n", encoding="utf-8")
    store = open_store(root, clock=fixed_clock)
    store.create_habit("Meditate")
    assert store.close() is True
    assert (root / "habitmind.sqlite3").exists()
    assert not state_path(root).exists()

    reopened = open_store(root, clock=fixed_clock)
    assert [h.name for h in reopened.state.habits] == ["Meditate"]
    reopened.close()


def test_open_store_without_rollover(root):
    doc = {"state": {"tasks": [{"id": "t1", "title": "x", "progress": 10, "date": "2026-02-01"}]}}
    state_path(root).write_text(json.dumps(doc), encoding="utf-8")
    store = open_store(root, clock=fixed_clock, rollover=False)
    assert len(store.state.tasks) == 1
    assert store.state.last_rollover_date is None
    store.close()


def test_open_store_configures_logging_from_settings(root):
    (root / SETTINGS_FILENAME).write_text("log_level: WARNING\n", encoding="utf-8")
    root_logger = logging.getLogger()
    saved = list(root_logger.handlers)
    try:
        store = open_store(root, clock=fixed_clock, configure_logging=True)
        console = [h for h in root_logger.handlers if not isinstance(h, logging.FileHandler)]
        assert [h.level for h in console] == [logging.WARNING]
        assert (logs_dir(root) / "habitmind.log").exists()
        store.close()
    finally:
        for h in list(root_logger.handlers):
            root_logger.removeHandler(h)
            h.close()
        for h in saved:
            root_logger.addHandler(h)
        logging.captureWarnings(False)
