"""Relational storage backend: one SQLite table per entity type.

Rows carry a surrogate INTEGER id plus the entity's natural key (``uid``;
habit completions are keyed by (habit_uid, date) and trackers are unique
per date). A save upserts changed rows and deletes vanished ones inside a
single transaction.

The schema is migration-safe:
- create table if missing
- use PRAGMA table_info to detect missing columns
- add columns with ALTER TABLE only when needed
"""

from __future__ import annotations

import contextlib
import dataclasses
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from habitmind.models import (
    SCHEMA_VERSION,
    AppState,
    DailyLog,
    DailyTracker,
    Goal,
    Habit,
    HabitCompletion,
    JournalEntry,
    Task,
    UserProfile,
)
from habitmind.persistence import StorageError

logger = logging.getLogger(__name__)

_SQL_TYPES = {"bool": "INTEGER", "int": "INTEGER", "float": "REAL", "str": "TEXT"}

# Tracker columns follow the dataclass fields; lists are stored as JSON text.
TRACKER_COLUMNS = [
    (f.name, _SQL_TYPES.get(str(f.type), "TEXT"))
    for f in dataclasses.fields(DailyTracker)
    if f.name not in ("id", "date")
]

SCHEMA: dict[str, list[tuple[str, str]]] = {
    "tasks": [
        ("position", "INTEGER NOT NULL DEFAULT 0"),
        ("title", "TEXT NOT NULL DEFAULT ''"),
        ("time_estimate_minutes", "INTEGER NOT NULL DEFAULT 30"),
        ("progress", "INTEGER NOT NULL DEFAULT 0"),
        ("date", "TEXT NOT NULL DEFAULT ''"),
        ("completed", "INTEGER NOT NULL DEFAULT 0"),
        ("carried_forward", "INTEGER NOT NULL DEFAULT 0"),
        ("original_date", "TEXT"),
        ("carried_from", "TEXT"),
        ("created_at", "TEXT NOT NULL DEFAULT ''"),
    ],
    "habits": [
        ("position", "INTEGER NOT NULL DEFAULT 0"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("icon", "TEXT NOT NULL DEFAULT ''"),
        ("category", "TEXT NOT NULL DEFAULT ''"),
        ("streak", "INTEGER NOT NULL DEFAULT 0"),
        ("archived", "INTEGER NOT NULL DEFAULT 0"),
        ("created_at", "TEXT NOT NULL DEFAULT ''"),
    ],
    "journal_entries": [
        ("position", "INTEGER NOT NULL DEFAULT 0"),
        ("type", "TEXT NOT NULL DEFAULT 'text'"),
        ("content", "TEXT NOT NULL DEFAULT ''"),
        ("tags", "TEXT NOT NULL DEFAULT '[]'"),
        ("timestamp", "TEXT NOT NULL DEFAULT ''"),
        ("date", "TEXT NOT NULL DEFAULT ''"),
        ("mood", "INTEGER"),
        ("media_path", "TEXT"),
    ],
    "daily_logs": [
        ("position", "INTEGER NOT NULL DEFAULT 0"),
        ("text", "TEXT NOT NULL DEFAULT ''"),
        ("timestamp", "TEXT NOT NULL DEFAULT ''"),
    ],
    "daily_trackers": [("date", "TEXT NOT NULL DEFAULT ''")] + TRACKER_COLUMNS,
    "goals": [
        ("position", "INTEGER NOT NULL DEFAULT 0"),
        ("title", "TEXT NOT NULL DEFAULT ''"),
        ("progress", "INTEGER NOT NULL DEFAULT 0"),
        ("notes", "TEXT NOT NULL DEFAULT '[]'"),
        ("weekly_progress", "TEXT NOT NULL DEFAULT '[]'"),
    ],
}


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _load_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    try:
        val = json.loads(raw)
    except ValueError:
        return []
    return val if isinstance(val, list) else []


class SqliteBackend:
    """SQLite state store. Each call opens its own connection."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_schema()
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e
        logger.info("SqliteBackend ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS habit_completions (
                    habit_uid TEXT NOT NULL,
                    date TEXT NOT NULL,
                    PRIMARY KEY (habit_uid, date)
                )
                """
            )
            for table, columns in SCHEMA.items():
                cur.execute(
                    f"CREATE TABLE IF NOT EXISTS {table} ("
                    "id INTEGER PRIMARY KEY AUTOINCREMENT, uid TEXT NOT NULL UNIQUE)"
                )
                cur.execute(f"PRAGMA table_info({table})")
                existing = {row["name"] for row in cur.fetchall()}
                for name, decl in columns:
                    if name in existing:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.debug("SqliteBackend migration: added %s.%s", table, name)
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_trackers_date ON daily_trackers(date)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_date ON tasks(date)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _sync_rows(cur: sqlite3.Cursor, table: str, rows: list[dict[str, Any]]) -> None:
        """Delete rows whose uid vanished, then upsert the rest."""
        cur.execute(f"SELECT uid FROM {table}")
        keep = {r["uid"] for r in rows}
        stale = [(row["uid"],) for row in cur.fetchall() if row["uid"] not in keep]
        if stale:
            cur.executemany(f"DELETE FROM {table} WHERE uid = ?", stale)
        if not rows:
            return
        cols = list(rows[0].keys())
        updates = ", ".join(f"{c} = excluded.{c}" for c in cols if c != "uid")
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)}) "
            f"ON CONFLICT(uid) DO UPDATE SET {updates}"
        )
        cur.executemany(sql, [tuple(r[c] for c in cols) for r in rows])

    @staticmethod
    def _sync_completions(cur: sqlite3.Cursor, habits: list[Habit]) -> None:
        wanted = {HabitCompletion(h.id, d) for h in habits for d in h.completed_dates}
        cur.execute("SELECT habit_uid, date FROM habit_completions")
        existing = {HabitCompletion(row["habit_uid"], row["date"]) for row in cur.fetchall()}
        removed = [(c.habit_id, c.date) for c in sorted(existing - wanted)]
        added = [(c.habit_id, c.date) for c in sorted(wanted - existing)]
        if removed:
            cur.executemany("DELETE FROM habit_completions WHERE habit_uid = ? AND date = ?", removed)
        if added:
            cur.executemany("INSERT OR IGNORE INTO habit_completions (habit_uid, date) VALUES (?, ?)", added)

    # ---- StorageBackend ----

    def write(self, data: dict[str, Any]) -> None:
        # Same normalization as a load: one tracker per date, every row with its own id.
        state = AppState.from_dict(data)
        tasks, habits, journal = state.tasks, state.habits, state.journal
        logs, trackers, goals = state.logs, state.trackers, state.goals

        meta = {
            "version": data.get("version", SCHEMA_VERSION),
            "onboarded": bool(data.get("onboarded", False)),
            "profile": data.get("profile") or {},
            "mood": data.get("mood", 3),
            "lastRolloverDate": data.get("lastRolloverDate"),
        }

        conn = self._get_conn()
        try:
            with conn:
                cur = conn.cursor()
                cur.executemany(
                    "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                    [(k, _dump(v)) for k, v in meta.items()],
                )
                self._sync_rows(cur, "tasks", [
                    {
                        "uid": t.id,
                        "position": i,
                        "title": t.title,
                        "time_estimate_minutes": t.time_estimate_minutes,
                        "progress": t.progress,
                        "date": t.date,
                        "completed": int(t.completed),
                        "carried_forward": int(t.carried_forward),
                        "original_date": t.original_date,
                        "carried_from": t.carried_from,
                        "created_at": t.created_at,
                    }
                    for i, t in enumerate(tasks)
                ])
                self._sync_rows(cur, "habits", [
                    {
                        "uid": h.id,
                        "position": i,
                        "name": h.name,
                        "icon": h.icon,
                        "category": h.category,
                        "streak": h.streak,
                        "archived": int(h.archived),
                        "created_at": h.created_at,
                    }
                    for i, h in enumerate(habits)
                ])
                self._sync_completions(cur, habits)
                self._sync_rows(cur, "journal_entries", [
                    {
                        "uid": e.id,
                        "position": i,
                        "type": e.type,
                        "content": e.content,
                        "tags": _dump(sorted(e.tags)),
                        "timestamp": e.timestamp,
                        "date": e.date,
                        "mood": e.mood,
                        "media_path": e.media_path,
                    }
                    for i, e in enumerate(journal)
                ])
                self._sync_rows(cur, "daily_logs", [
                    {"uid": log.id, "position": i, "text": log.text, "timestamp": log.timestamp}
                    for i, log in enumerate(logs)
                ])
                self._sync_rows(cur, "daily_trackers", [self._tracker_row(t) for t in trackers])
                self._sync_rows(cur, "goals", [
                    {
                        "uid": g.id,
                        "position": i,
                        "title": g.title,
                        "progress": g.progress,
                        "notes": _dump(g.notes),
                        "weekly_progress": _dump([w.to_dict() for w in g.weekly_progress]),
                    }
                    for i, g in enumerate(goals)
                ])
        except sqlite3.Error as e:
            raise StorageError(f"cannot write {self._db_path}: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _tracker_row(t: DailyTracker) -> dict[str, Any]:
        row: dict[str, Any] = {"uid": t.id, "date": t.date}
        for name, _sql_type in TRACKER_COLUMNS:
            value = getattr(t, name)
            if isinstance(value, list):
                value = _dump(value)
            elif isinstance(value, bool):
                value = int(value)
            row[name] = value
        return row

    def read(self) -> dict[str, Any] | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT key, value FROM meta")
            meta: dict[str, Any] = {}
            for row in cur.fetchall():
                try:
                    meta[row["key"]] = json.loads(row["value"])
                except ValueError:
                    logger.warning("Ignoring unreadable meta value for %s", row["key"])
            if "version" not in meta:
                return None

            cur.execute("SELECT habit_uid, date FROM habit_completions")
            completions: dict[str, set[str]] = {}
            for row in cur.fetchall():
                completions.setdefault(row["habit_uid"], set()).add(row["date"])

            cur.execute("SELECT * FROM tasks ORDER BY position, id")
            tasks = [
                Task(
                    id=row["uid"],
                    title=row["title"],
                    time_estimate_minutes=row["time_estimate_minutes"],
                    progress=row["progress"],
                    date=row["date"],
                    carried_forward=bool(row["carried_forward"]),
                    original_date=row["original_date"],
                    carried_from=row["carried_from"],
                    created_at=row["created_at"],
                )
                for row in cur.fetchall()
            ]
            cur.execute("SELECT * FROM habits ORDER BY position, id")
            habits = [
                Habit(
                    id=row["uid"],
                    name=row["name"],
                    icon=row["icon"],
                    category=row["category"],
                    completed_dates=completions.get(row["uid"], set()),
                    streak=row["streak"],
                    archived=bool(row["archived"]),
                    created_at=row["created_at"],
                )
                for row in cur.fetchall()
            ]
            cur.execute("SELECT * FROM journal_entries ORDER BY position, id")
            journal = [
                JournalEntry(
                    id=row["uid"],
                    type=row["type"],
                    content=row["content"],
                    tags=set(_load_list(row["tags"])),
                    timestamp=row["timestamp"],
                    date=row["date"],
                    mood=row["mood"],
                    media_path=row["media_path"],
                )
                for row in cur.fetchall()
            ]
            cur.execute("SELECT * FROM daily_logs ORDER BY position, id")
            logs = [DailyLog(id=row["uid"], text=row["text"], timestamp=row["timestamp"]) for row in cur.fetchall()]

            cur.execute("SELECT * FROM daily_trackers ORDER BY date")
            trackers = []
            for row in cur.fetchall():
                kwargs: dict[str, Any] = {"id": row["uid"], "date": row["date"]}
                for name, _sql_type in TRACKER_COLUMNS:
                    value = row[name]
                    if name == "photo_paths":
                        value = _load_list(value)
                    kwargs[name] = value
                trackers.append(DailyTracker(**kwargs))

            cur.execute("SELECT * FROM goals ORDER BY position, id")
            goals = [
                Goal.from_dict({
                    "id": row["uid"],
                    "title": row["title"],
                    "progress": row["progress"],
                    "notes": _load_list(row["notes"]),
                    "weeklyProgress": _load_list(row["weekly_progress"]),
                })
                for row in cur.fetchall()
            ]
        except sqlite3.Error as e:
            raise StorageError(f"cannot read {self._db_path}: {e}") from e
        finally:
            conn.close()

        return {
            "version": meta.get("version", SCHEMA_VERSION),
            "onboarded": bool(meta.get("onboarded", False)),
            "profile": UserProfile.from_dict(meta.get("profile") or {}).to_dict(),
            "mood": meta.get("mood", 3),
            "tasks": [t.to_dict() for t in tasks],
            "habits": [h.to_dict() for h in habits],
            "journal": [e.to_dict() for e in journal],
            "logs": [log.to_dict() for log in logs],
            "trackers": [t.to_dict() for t in trackers],
            "goals": [g.to_dict() for g in goals],
            "lastRolloverDate": meta.get("lastRolloverDate"),
        }
