"""
Composition root for HabitMind hosts.

- loads settings once (and optionally configures logging from them),
- ensures the data root exists,
- picks the storage backend and wraps it in the debounced gateway,
- loads the stored state into an explicitly constructed DomainStore,
- runs the day-boundary rollover.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from habitmind.config import Settings, load_settings
from habitmind.logging_setup import setup_logging
from habitmind.persistence import JsonFileBackend, PersistenceGateway, StorageBackend, StorageError
from habitmind.rollover import roll_over_if_needed
from habitmind.sqlite_backend import SqliteBackend
from habitmind.store import DomainStore
from habitmind.workspace import db_path, default_root, logs_dir, now_local, state_path

logger = logging.getLogger(__name__)


def make_backend(settings: Settings, root: Path) -> StorageBackend:
    if settings.storage == "sqlite":
        try:
            return SqliteBackend(db_path(root))
        except StorageError:
            logger.exception("SQLite storage unavailable, falling back to JSON file")
    return JsonFileBackend(state_path(root))


def open_store(
    root: Path | None = None,
    *,
    settings: Settings | None = None,
    clock: Callable[[], datetime] | None = None,
    rollover: bool = True,
    configure_logging: bool = False,
) -> DomainStore:
    """Build a ready-to-use store for the data root *root*.

    With *configure_logging*, also installs the console and file handlers
    (console at settings.log_level, file under <root>/logs).
    """
    root = Path(root) if root is not None else default_root()
    root.mkdir(parents=True, exist_ok=True)
    if settings is None:
        settings = load_settings(root)
    if configure_logging:
        setup_logging(log_dir=logs_dir(root), console_level=settings.log_level)
    if clock is None:
        tz = settings.tz

        def clock() -> datetime:
            return now_local(tz)

    gateway = PersistenceGateway(make_backend(settings, root), delay=settings.save_debounce_seconds)
    result = gateway.load_result()
    if not result.ok:
        logger.warning("Starting with an empty store: %s", result.error)

    store = DomainStore(result.state, gateway=gateway, clock=clock)
    if rollover:
        roll_over_if_needed(store)
    logger.info(
        "Store ready root=%s storage=%s tasks=%d habits=%d",
        root, settings.storage, len(store.state.tasks), len(store.state.habits),
    )
    return store
