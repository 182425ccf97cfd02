"""Tests for habitmind/config.py, habitmind/workspace.py and habitmind/logging_setup.py."""

import logging

from habitmind.config import Settings, load_settings, write_default_settings
from habitmind.fileio import read_yaml
from habitmind.logging_setup import setup_logging
from habitmind.workspace import SETTINGS_FILENAME, logs_dir, resolve_timezone


def test_defaults_when_missing(root):
    s = load_settings(root)
    assert s == Settings()
    assert s.save_debounce_seconds == 0.3


def test_load_settings_file(root):
    (root / SETTINGS_FILENAME).write_text(
        "timezone: Europe/Berlin\nstorage: SQLite\nsave_debounce_ms: 50\nlog_level: debug\n",
        encoding="utf-8",
    )
    s = load_settings(root)
    assert s.timezone == "Europe/Berlin"
    assert s.storage == "sqlite"
    assert s.save_debounce_ms == 50
    assert s.log_level == "DEBUG"


def test_invalid_values_fall_back(root):
    (root / SETTINGS_FILENAME).write_text(
        "storage: redis\nsave_debounce_ms: soon\nlog_level: LOUD\n",
        encoding="utf-8",
    )
    s = load_settings(root)
    assert s.storage == "json"
    assert s.save_debounce_ms == 300
    assert s.log_level == "INFO"


def test_broken_yaml_gives_defaults(root):
    (root / SETTINGS_FILENAME).write_text("timezone: [unclosed\n", encoding="utf-8")
    assert load_settings(root) == Settings()


def test_write_default_settings_does_not_overwrite(root):
    path = write_default_settings(root)
    assert read_yaml(path) == Settings().to_dict()

    path.write_text("timezone: Asia/Tokyo\n", encoding="utf-8")
    write_default_settings(root)
    assert load_settings(root).timezone == "Asia/Tokyo"


def test_unknown_timezone_falls_back_to_utc():
    assert resolve_timezone("Mars/Olympus_Mons").key == "UTC"
    assert resolve_timezone(None).key == "UTC"


def test_setup_logging_writes_file(tmp_path):
    root_logger = logging.getLogger()
    saved = list(root_logger.handlers)
    try:
        setup_logging(log_dir=logs_dir(tmp_path))
        logging.getLogger("habitmind.test").info("hello from test")
        for h in root_logger.handlers:
            h.flush()
        text = (logs_dir(tmp_path) / "habitmind.log").read_text(encoding="utf-8")
        assert "hello from test" in text
    finally:
        for h in list(root_logger.handlers):
            root_logger.removeHandler(h)
            h.close()
        for h in saved:
            root_logger.addHandler(h)
        logging.captureWarnings(False)
