"""Durable load/save of the HabitMind state with debounced writes.

The gateway is the only place that performs blocking I/O. Writes are
coalesced: every schedule_save() cancels the pending timer and starts a
new one, so only the latest state within a debounce window reaches disk.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from habitmind.fileio import read_json, write_json_atomic
from habitmind.models import SCHEMA_VERSION, AppState, HabitMindError
from habitmind.workspace import now_local

logger = logging.getLogger(__name__)

STORAGE_KEY = "habitmind-app-state"
DEFAULT_DEBOUNCE_SECONDS = 0.3


class StorageError(HabitMindError):
    """A backend could not read or write the durable state."""


class StorageBackend(Protocol):
    def read(self) -> dict[str, Any] | None:
        """Return the stored state document, or None if nothing is stored."""

    def write(self, data: dict[str, Any]) -> None:
        """Replace the stored state with *data*."""


@dataclass(frozen=True)
class LoadResult:
    state: AppState
    ok: bool = True
    error: str | None = None
    empty: bool = False


# ── Blob backend ──────────────────────────────────────────────


class JsonFileBackend:
    """Whole-document JSON file, written atomically (temp file + rename)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> dict[str, Any] | None:
        try:
            doc = read_json(self.path)
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e
        if not doc:
            return None
        if "state" not in doc:
            # Bare state document without the envelope.
            return doc
        if doc.get("key") not in (None, STORAGE_KEY):
            raise StorageError(f"{self.path} holds {doc.get('key')!r}, not {STORAGE_KEY!r}")
        state = doc.get("state")
        if not isinstance(state, dict):
            raise StorageError(f"{self.path} has no state object")
        return state

    def write(self, data: dict[str, Any]) -> None:
        doc = {
            "key": STORAGE_KEY,
            "version": SCHEMA_VERSION,
            "savedAt": now_local().isoformat(timespec="seconds"),
            "state": data,
        }
        try:
            write_json_atomic(self.path, doc)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"cannot write {self.path}: {e}") from e


# ── Gateway ───────────────────────────────────────────────────


TimerFactory = Callable[[float, Callable[[], None]], Any]


class PersistenceGateway:
    """Debounced, coalescing writer in front of a storage backend."""

    def __init__(
        self,
        backend: StorageBackend,
        *,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.backend = backend
        self.delay = max(0.0, float(delay))
        self._timer_factory = timer_factory
        self._lock = threading.Lock()  # guards _pending and _timer
        self._write_lock = threading.Lock()  # one backend write at a time
        self._pending: dict[str, Any] | None = None
        self._timer: Any = None
        self._closed = False
        self.writes = 0
        self.save_failures = 0

    # ---- load ----

    def load_result(self) -> LoadResult:
        try:
            data = self.backend.read()
        except StorageError as e:
            logger.warning("Stored state unreadable, starting from defaults: %s", e)
            return LoadResult(state=AppState(), ok=False, error=str(e))
        if data is None:
            logger.info("No stored state, starting from defaults")
            return LoadResult(state=AppState(), empty=True)
        try:
            state = AppState.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Stored state malformed, starting from defaults: %s", e)
            return LoadResult(state=AppState(), ok=False, error=str(e))
        logger.debug(
            "Loaded state tasks=%d habits=%d journal=%d",
            len(state.tasks), len(state.habits), len(state.journal),
        )
        return LoadResult(state=state)

    def load(self) -> AppState:
        """Stored state, or defaults when missing or corrupt. Never raises."""
        return self.load_result().state

    # ---- save ----

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def schedule_save(self, state: AppState) -> None:
        """Queue *state* for writing after the debounce delay, replacing any pending write."""
        data = state.to_dict()
        with self._lock:
            self._pending = data
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.delay, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            if self._timer is threading.current_thread():
                self._timer = None
        self._write_pending()

    def _write_pending(self) -> bool:
        with self._write_lock:
            with self._lock:
                data = self._pending
                self._pending = None
            if data is None:
                return True
            try:
                self.backend.write(data)
            except Exception:
                self.save_failures += 1
                logger.exception("Saving state failed; will retry on next change")
                with self._lock:
                    # Keep it for the next attempt unless a newer state arrived.
                    if self._pending is None:
                        self._pending = data
                return False
            self.writes += 1
            logger.debug("State saved (write #%d)", self.writes)
            return True

    def flush(self) -> bool:
        """Write any pending state now. Waits for an in-flight write.

        Returns False if the write failed.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return self._write_pending()

    def close(self) -> bool:
        """Flush and stop scheduling further timers."""
        with self._lock:
            self._closed = True
        return self.flush()
