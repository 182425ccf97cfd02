"""Shared test fixtures for HabitMind tests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from habitmind.persistence import PersistenceGateway, StorageError
from habitmind.store import DomainStore

TODAY = date(2026, 2, 11)  # a Wednesday
NOW = datetime(2026, 2, 11, 10, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class FakeTimer:
    """Stands in for threading.Timer; fires only when the test says so."""

    def __init__(self, interval: float, function) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


class FakeTimers:
    def __init__(self) -> None:
        self.created: list[FakeTimer] = []

    def __call__(self, interval: float, function) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.created if not t.cancelled]


class RecordingBackend:
    """In-memory backend that records every write."""

    def __init__(self, stored: dict[str, Any] | None = None) -> None:
        self.stored = stored
        self.writes: list[dict[str, Any]] = []
        self.fail_writes = False
        self.fail_reads = False

    def read(self) -> dict[str, Any] | None:
        if self.fail_reads:
            raise StorageError("disk on fire")
        return self.stored

    def write(self, data: dict[str, Any]) -> None:
        if self.fail_writes:
            raise StorageError("disk full")
        self.writes.append(data)
        self.stored = data


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Empty data root."""
    path = tmp_path / "habitmind"
    path.mkdir()
    return path


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def gateway(backend: RecordingBackend, timers: FakeTimers) -> PersistenceGateway:
    return PersistenceGateway(backend, delay=0.3, timer_factory=timers)


@pytest.fixture
def store(gateway: PersistenceGateway) -> DomainStore:
    """Empty store on a fixed clock, wired to a recording backend."""
    return DomainStore(gateway=gateway, clock=fixed_clock)
