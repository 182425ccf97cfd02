"""JSON backup export/import.

Unlike the autosave path, these are explicit user actions, so an
unreadable backup raises BackupError instead of degrading silently.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from habitmind.fileio import read_json, write_json_atomic
from habitmind.models import SCHEMA_VERSION, AppState, HabitMindError
from habitmind.workspace import now_local

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "habitmind_backup_"


class BackupError(HabitMindError):
    """A backup file could not be written or read."""


def export_backup(state: AppState, directory: Path, now: datetime | None = None) -> Path:
    """Write the whole state to ``habitmind_backup_<timestamp>.json`` in *directory*."""
    now = now or now_local()
    path = Path(directory) / f"{BACKUP_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}.json"
    doc = {
        "version": SCHEMA_VERSION,
        "exportedAt": now.isoformat(timespec="seconds"),
        "state": state.to_dict(),
    }
    try:
        write_json_atomic(path, doc)
    except OSError as e:
        raise BackupError(f"cannot write backup {path}: {e}") from e
    logger.info("Exported backup to %s", path)
    return path


def import_backup(path: Path) -> AppState:
    """Read a backup written by export_backup()."""
    path = Path(path)
    if not path.exists():
        raise BackupError(f"backup not found: {path}")
    try:
        doc = read_json(path)
    except (OSError, ValueError) as e:
        raise BackupError(f"cannot read backup {path}: {e}") from e
    state = doc.get("state")
    if not isinstance(state, dict):
        raise BackupError(f"{path} is not a HabitMind backup")
    version = doc.get("version", SCHEMA_VERSION)
    if isinstance(version, int) and version > SCHEMA_VERSION:
        logger.warning("Backup %s has newer schema version %s", path, version)
    logger.info("Imported backup from %s", path)
    return AppState.from_dict(state)


def list_backups(directory: Path) -> list[Path]:
    """Backups in *directory*, newest first."""
    directory = Path(directory)
    if not directory.exists():
        return []
    return sorted(directory.glob(f"{BACKUP_PREFIX}*.json"), reverse=True)


def delete_backup(path: Path) -> bool:
    """Remove one backup file. Returns False if it was already gone."""
    path = Path(path)
    if not path.name.startswith(BACKUP_PREFIX):
        raise BackupError(f"{path} is not a HabitMind backup")
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError as e:
        raise BackupError(f"cannot delete backup {path}: {e}") from e
    logger.info("Deleted backup %s", path)
    return True
