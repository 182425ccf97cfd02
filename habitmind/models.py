"""Typed dataclasses for the HabitMind data model.

All models use from_dict/to_dict for JSON serialization.
camelCase in the stored document is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults; out-of-range
numbers are clamped rather than rejected.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

JOURNAL_TYPES = ("text", "voice", "image")


class HabitMindError(Exception):
    """Base class for HabitMind errors."""


class ValidationError(HabitMindError):
    """Raised when required text is blank."""


# ── Validators ────────────────────────────────────────────────


def clamp(value: Any, low: int, high: int) -> int:
    """Coerce to int and clamp into [low, high]. Garbage becomes *low*."""
    try:
        n = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return low
    return max(low, min(high, n))


def clamp_float(value: Any, low: float = 0.0, high: float | None = None) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return low
    if f != f:  # NaN
        return low
    if high is not None:
        f = min(high, f)
    return max(low, f)


def require_text(value: Any, field_name: str) -> str:
    """Strip and return *value*, raising ValidationError if blank."""
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} must not be empty")
    return text


def str_list(raw: Any) -> list[str]:
    """List of non-blank strings from a list or a comma-separated string."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return [str(x).strip() for x in raw if str(x).strip()]


def new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


# ── Task ──────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    title: str = ""
    time_estimate_minutes: int = 30
    progress: int = 0
    date: str = ""  # ISO day
    completed: bool = False
    carried_forward: bool = False
    original_date: str | None = None  # first date of a carried chain
    carried_from: str | None = None  # id of the task this one continues
    created_at: str = ""

    def __post_init__(self) -> None:
        self.progress = clamp(self.progress, 0, 100)
        self.time_estimate_minutes = clamp(self.time_estimate_minutes, 1, 24 * 60)
        self.completed = self.progress == 100

    def set_progress(self, progress: Any) -> None:
        self.progress = clamp(progress, 0, 100)
        self.completed = self.progress == 100

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        progress = d.get("progress")
        if progress is None:
            # Older documents only carried the completed flag.
            progress = 100 if d.get("completed") else 0
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            time_estimate_minutes=d.get("timeEstimate", d.get("timeEstimateMinutes", 30)),
            progress=progress,
            date=str(d.get("date", "")),
            carried_forward=bool(d.get("carriedForward", d.get("deferred", False))),
            original_date=d.get("originalDate"),
            carried_from=d.get("carriedFrom"),
            created_at=str(d.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "timeEstimate": self.time_estimate_minutes,
            "progress": self.progress,
            "date": self.date,
            "completed": self.completed,
            "carriedForward": self.carried_forward,
        }
        if self.original_date:
            d["originalDate"] = self.original_date
        if self.carried_from:
            d["carriedFrom"] = self.carried_from
        if self.created_at:
            d["createdAt"] = self.created_at
        return d


# ── Habits ────────────────────────────────────────────────────


@dataclass
class Habit:
    id: str = ""
    name: str = ""
    icon: str = ""
    category: str = ""
    completed_dates: set[str] = field(default_factory=set)
    streak: int = 0  # cached; always recomputed from completed_dates
    archived: bool = False
    created_at: str = ""

    def __post_init__(self) -> None:
        self.completed_dates = {str(d) for d in self.completed_dates if d}
        self.streak = max(0, int(self.streak or 0))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            icon=str(d.get("icon", "")),
            category=str(d.get("category", "")),
            completed_dates=set(str_list(d.get("completedDates"))),
            streak=clamp(d.get("streak", 0), 0, 10**6),
            archived=bool(d.get("archived", False)),
            created_at=str(d.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "category": self.category,
            "completedDates": sorted(self.completed_dates),
            "streak": self.streak,
        }
        if self.archived:
            d["archived"] = True
        if self.created_at:
            d["createdAt"] = self.created_at
        return d


@dataclass(frozen=True, order=True)
class HabitCompletion:
    """One (habit, day) row in the relational layout."""

    habit_id: str
    date: str


# ── Journal & logs ────────────────────────────────────────────


@dataclass
class JournalEntry:
    id: str = ""
    type: str = "text"  # text, voice, image
    content: str = ""
    tags: set[str] = field(default_factory=set)
    timestamp: str = ""
    date: str = ""
    mood: int | None = None  # 1-5
    media_path: str | None = None

    def __post_init__(self) -> None:
        if self.type not in JOURNAL_TYPES:
            self.type = "text"
        self.tags = {t.strip() for t in self.tags if t and t.strip()}
        if self.mood is not None:
            self.mood = clamp(self.mood, 1, 5)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JournalEntry:
        return cls(
            id=str(d.get("id", "")),
            type=str(d.get("type", "text")).lower(),
            content=str(d.get("content", "")),
            tags=set(str_list(d.get("tags"))),
            timestamp=str(d.get("timestamp", "")),
            date=str(d.get("date", "")),
            mood=d.get("mood"),
            media_path=d.get("mediaPath"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "tags": sorted(self.tags),
            "timestamp": self.timestamp,
            "date": self.date,
        }
        if self.mood is not None:
            d["mood"] = self.mood
        if self.media_path:
            d["mediaPath"] = self.media_path
        return d


@dataclass
class DailyLog:
    id: str = ""
    text: str = ""
    timestamp: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DailyLog:
        return cls(
            id=str(d.get("id", "")),
            text=str(d.get("text", d.get("content", ""))),
            timestamp=str(d.get("timestamp", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "timestamp": self.timestamp}


# ── Daily tracker ─────────────────────────────────────────────

TRACKER_CHECKLIST = (
    "meditation",
    "no_junk_food",
    "no_music",
    "no_screen_time_limit_breach",
    "workout",
)
TRACKER_RATINGS = ("energy", "focus", "mood", "stress")
TRACKER_METRICS = (
    "screen_time_hours",
    "sleep_hours",
    "social_media_minutes",
    "water_liters",
    "study_hours",
)
TRACKER_TEXT = ("workout_type", "gratitude", "win_of_the_day", "notes_emotions")

_TRACKER_KEYS = {
    "no_junk_food": "noJunkFood",
    "no_music": "noMusic",
    "no_screen_time_limit_breach": "noScreenTimeLimitBreach",
    "screen_time_hours": "screenTimeHours",
    "sleep_hours": "sleepHours",
    "social_media_minutes": "socialMediaMinutes",
    "water_liters": "waterLiters",
    "study_hours": "studyHours",
    "workout_type": "workoutType",
    "workout_duration_minutes": "workoutDurationMinutes",
    "photo_paths": "photoPaths",
    "win_of_the_day": "winOfTheDay",
    "notes_emotions": "notesEmotions",
    "discipline_score": "disciplineScore",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def _tracker_key(name: str) -> str:
    return _TRACKER_KEYS.get(name, name)


@dataclass
class DailyTracker:
    id: str = ""
    date: str = ""
    # checklist
    meditation: bool = False
    no_junk_food: bool = False
    no_music: bool = False
    no_screen_time_limit_breach: bool = False
    workout: bool = False
    # 0-10 ratings
    energy: int = 0
    focus: int = 0
    mood: int = 0
    stress: int = 0
    # metrics
    screen_time_hours: float = 0.0
    sleep_hours: float = 0.0
    social_media_minutes: float = 0.0
    water_liters: float = 0.0
    study_hours: float = 0.0
    # workout details
    workout_type: str = ""
    workout_duration_minutes: int = 0
    photo_paths: list[str] = field(default_factory=list)
    # reflection
    gratitude: str = ""
    win_of_the_day: str = ""
    notes_emotions: str = ""
    discipline_score: int = 0
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        for name in TRACKER_CHECKLIST:
            setattr(self, name, bool(getattr(self, name)))
        for name in TRACKER_RATINGS:
            setattr(self, name, clamp(getattr(self, name), 0, 10))
        self.sleep_hours = clamp_float(self.sleep_hours, 0.0, 24.0)
        self.screen_time_hours = clamp_float(self.screen_time_hours, 0.0, 24.0)
        self.social_media_minutes = clamp_float(self.social_media_minutes, 0.0, 24 * 60.0)
        self.water_liters = clamp_float(self.water_liters)
        self.study_hours = clamp_float(self.study_hours, 0.0, 24.0)
        self.workout_duration_minutes = clamp(self.workout_duration_minutes, 0, 24 * 60)
        self.discipline_score = clamp(self.discipline_score, 0, 10)
        self.photo_paths = str_list(self.photo_paths)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DailyTracker:
        kwargs: dict[str, Any] = {
            "id": str(d.get("id", "")),
            "date": str(d.get("date", "")),
        }
        names = (
            TRACKER_CHECKLIST
            + TRACKER_RATINGS
            + TRACKER_METRICS
            + TRACKER_TEXT
            + ("workout_duration_minutes", "photo_paths", "discipline_score", "created_at", "updated_at")
        )
        for name in names:
            key = _tracker_key(name)
            if key in d:
                kwargs[name] = d[key]
        for name in TRACKER_TEXT + ("created_at", "updated_at"):
            if name in kwargs:
                kwargs[name] = str(kwargs[name] or "")
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "date": self.date}
        for name in TRACKER_CHECKLIST + TRACKER_RATINGS + TRACKER_METRICS + TRACKER_TEXT:
            d[_tracker_key(name)] = getattr(self, name)
        d["workoutDurationMinutes"] = self.workout_duration_minutes
        d["photoPaths"] = list(self.photo_paths)
        d["disciplineScore"] = self.discipline_score
        d["createdAt"] = self.created_at
        d["updatedAt"] = self.updated_at
        return d


# ── Goals & profile ───────────────────────────────────────────


@dataclass
class WeeklyProgress:
    week: str = ""
    value: int = 0

    def __post_init__(self) -> None:
        self.value = clamp(self.value, 0, 100)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WeeklyProgress:
        return cls(week=str(d.get("week", d.get("weekLabel", ""))), value=d.get("value", 0))

    def to_dict(self) -> dict[str, Any]:
        return {"week": self.week, "value": self.value}


@dataclass
class Goal:
    id: str = ""
    title: str = ""
    progress: int = 0
    notes: list[str] = field(default_factory=list)
    weekly_progress: list[WeeklyProgress] = field(default_factory=list)
    completed: bool = False

    def __post_init__(self) -> None:
        self.progress = clamp(self.progress, 0, 100)
        self.completed = self.progress == 100
        self.notes = [str(n) for n in self.notes]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Goal:
        notes = d.get("notes") or []
        if isinstance(notes, str):
            notes = [notes] if notes.strip() else []
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            progress=d.get("progress", 0),
            notes=list(notes),
            weekly_progress=[
                WeeklyProgress.from_dict(w) for w in (d.get("weeklyProgress") or []) if isinstance(w, dict)
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "progress": self.progress,
            "completed": self.completed,
            "notes": list(self.notes),
            "weeklyProgress": [w.to_dict() for w in self.weekly_progress],
        }


@dataclass
class UserProfile:
    age: str = ""
    height: str = ""
    weight: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UserProfile:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            age=str(d.get("age", "") or ""),
            height=str(d.get("height", "") or ""),
            weight=str(d.get("weight", "") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"age": self.age, "height": self.height, "weight": self.weight}


# ── Whole document ────────────────────────────────────────────


def _items(d: dict[str, Any], key: str) -> list[dict[str, Any]]:
    raw = d.get(key) or []
    if not isinstance(raw, list):
        return []
    return [x for x in raw if isinstance(x, dict)]


def unique_trackers(trackers: Iterable[DailyTracker]) -> list[DailyTracker]:
    """One tracker per date, the later one winning, sorted by date."""
    by_date: dict[str, DailyTracker] = {}
    for t in trackers:
        if t.date in by_date:
            logger.warning("Dropping duplicate tracker %s for %s", by_date[t.date].id, t.date)
        by_date[t.date] = t
    return sorted(by_date.values(), key=lambda t: t.date)


def _with_ids(items: list[Any], prefix: str) -> list[Any]:
    """Give blank or repeated ids a fresh one so every row has its own key."""
    seen: set[str] = set()
    for item in items:
        if not item.id or item.id in seen:
            old = item.id
            item.id = new_id(prefix)
            logger.info("Assigned id %s to %s row with id %r", item.id, prefix, old)
        seen.add(item.id)
    return items


@dataclass
class AppState:
    """The full entity snapshot; what the persistence layer loads and saves."""

    version: int = SCHEMA_VERSION
    onboarded: bool = False
    profile: UserProfile = field(default_factory=UserProfile)
    mood: int = 3  # 1-5
    tasks: list[Task] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    journal: list[JournalEntry] = field(default_factory=list)
    logs: list[DailyLog] = field(default_factory=list)
    trackers: list[DailyTracker] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    last_rollover_date: str | None = None

    def __post_init__(self) -> None:
        self.mood = clamp(self.mood, 1, 5)
        self.trackers = unique_trackers(self.trackers)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AppState:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            version=int(d.get("version", SCHEMA_VERSION) or SCHEMA_VERSION),
            onboarded=bool(d.get("onboarded", False)),
            profile=UserProfile.from_dict(d.get("profile") or {}),
            mood=d.get("mood", 3),
            tasks=_with_ids([Task.from_dict(x) for x in _items(d, "tasks")], "t"),
            habits=_with_ids([Habit.from_dict(x) for x in _items(d, "habits")], "h"),
            journal=_with_ids([JournalEntry.from_dict(x) for x in _items(d, "journal")], "j"),
            logs=_with_ids([DailyLog.from_dict(x) for x in _items(d, "logs")], "l"),
            trackers=_with_ids([DailyTracker.from_dict(x) for x in _items(d, "trackers")], "d"),
            goals=_with_ids([Goal.from_dict(x) for x in _items(d, "goals")], "g"),
            last_rollover_date=d.get("lastRolloverDate"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "onboarded": self.onboarded,
            "profile": self.profile.to_dict(),
            "mood": self.mood,
            "tasks": [t.to_dict() for t in self.tasks],
            "habits": [h.to_dict() for h in self.habits],
            "journal": [e.to_dict() for e in self.journal],
            "logs": [log.to_dict() for log in self.logs],
            "trackers": [t.to_dict() for t in self.trackers],
            "goals": [g.to_dict() for g in self.goals],
            "lastRolloverDate": self.last_rollover_date,
        }
