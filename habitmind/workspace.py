"""Data root, clock, and path helpers for HabitMind."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

STATE_FILENAME = "state.json"
DB_FILENAME = "habitmind.sqlite3"
SETTINGS_FILENAME = "settings.yaml"


def default_root() -> Path:
    """The data root used when the caller does not pass one."""
    return (Path.home() / ".habitmind").expanduser().resolve()


def resolve_timezone(name: str | None) -> ZoneInfo:
    """ZoneInfo for *name*, falling back to UTC on unknown names."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return ZoneInfo("UTC")


def now_local(tz: ZoneInfo | None = None) -> datetime:
    """Current datetime in the user's timezone."""
    return datetime.now(tz or ZoneInfo("UTC"))


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = default_root()
    return root / SETTINGS_FILENAME


def state_path(root: Path | None = None) -> Path:
    if root is None:
        root = default_root()
    return root / STATE_FILENAME


def db_path(root: Path | None = None) -> Path:
    if root is None:
        root = default_root()
    return root / DB_FILENAME


def backups_dir(root: Path | None = None) -> Path:
    if root is None:
        root = default_root()
    return root / "backups"


def logs_dir(root: Path | None = None) -> Path:
    if root is None:
        root = default_root()
    return root / "logs"
