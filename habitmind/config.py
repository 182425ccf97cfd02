"""Settings loaded from settings.yaml in the data root."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import yaml

from habitmind.fileio import read_yaml, write_yaml_atomic
from habitmind.workspace import resolve_timezone, settings_path

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = {"json", "sqlite"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


@dataclass(frozen=True)
class Settings:
    timezone: str = "UTC"
    storage: str = "json"  # json, sqlite
    save_debounce_ms: int = 300
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return resolve_timezone(self.timezone)

    @property
    def save_debounce_seconds(self) -> float:
        return self.save_debounce_ms / 1000.0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        storage = str(d.get("storage", "json")).strip().lower()
        if storage not in STORAGE_BACKENDS:
            logger.warning("Unknown storage backend %r, using json", storage)
            storage = "json"
        try:
            debounce = max(0, int(d.get("save_debounce_ms", 300)))
        except (TypeError, ValueError):
            debounce = 300
        level = str(d.get("log_level", "INFO")).strip().upper()
        if level not in LOG_LEVELS:
            level = "INFO"
        return cls(
            timezone=str(d.get("timezone", "UTC") or "UTC"),
            storage=storage,
            save_debounce_ms=debounce,
            log_level=level,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timezone": self.timezone,
            "storage": self.storage,
            "save_debounce_ms": self.save_debounce_ms,
            "log_level": self.log_level,
        }


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml; a missing or unreadable file yields defaults."""
    path = settings_path(root)
    try:
        return Settings.from_dict(read_yaml(path))
    except (OSError, yaml.YAMLError):
        logger.warning("Could not read %s, using default settings", path, exc_info=True)
        return Settings()


def write_default_settings(root: Path | None = None) -> Path:
    """Create settings.yaml with defaults if it does not exist yet."""
    path = settings_path(root)
    if not path.exists():
        write_yaml_atomic(path, Settings().to_dict())
        logger.info("Wrote default settings to %s", path)
    return path
