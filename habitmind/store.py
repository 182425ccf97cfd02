"""In-memory domain store for HabitMind.

The store is the single writer of every entity collection. Commands
validate and clamp their input, mutate the state, notify subscribers
synchronously and hand the new state to the persistence gateway, which
writes it later. No command blocks on I/O and none raises for bad input:
blank required text or an unknown id yields None (or False).
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Any

from habitmind import rollover
from habitmind.analytics import as_date, compute_streak, discipline_score, week_bounds
from habitmind.models import (
    AppState,
    DailyLog,
    DailyTracker,
    Goal,
    Habit,
    JournalEntry,
    Task,
    UserProfile,
    ValidationError,
    WeeklyProgress,
    clamp,
    new_id,
    require_text,
    str_list,
    unique_trackers,
)
from habitmind.persistence import PersistenceGateway
from habitmind.workspace import now_local

logger = logging.getLogger(__name__)

Listener = Callable[["DomainStore"], None]


class DomainStore:
    """Holds the AppState and exposes the command operations."""

    def __init__(
        self,
        state: AppState | None = None,
        *,
        gateway: PersistenceGateway | None = None,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self._state = state if state is not None else AppState()
        self._gateway = gateway
        self._clock = clock
        self._listeners: list[Listener] = []
        self._state.trackers = unique_trackers(self._state.trackers)
        self.reconcile_streaks()

    # ---- reading ----

    @property
    def state(self) -> AppState:
        """The live state. Read it, never mutate it; use the commands."""
        return self._state

    def snapshot(self) -> AppState:
        """Deep copy of the current state."""
        return copy.deepcopy(self._state)

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self._state.tasks if t.id == task_id), None)

    def find_habit(self, habit_id: str) -> Habit | None:
        return next((h for h in self._state.habits if h.id == habit_id), None)

    def find_goal(self, goal_id: str) -> Goal | None:
        return next((g for g in self._state.goals if g.id == goal_id), None)

    def tracker_for(self, day: date | str) -> DailyTracker | None:
        key = as_date(day).isoformat()
        return next((t for t in self._state.trackers if t.date == key), None)

    def tasks_for(self, day: date | str) -> list[Task]:
        key = as_date(day).isoformat()
        return [t for t in self._state.tasks if t.date == key]

    # ---- subscription ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, reason: str) -> None:
        logger.debug("commit: %s", reason)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Store listener failed after %s", reason)
        if self._gateway is not None:
            self._gateway.schedule_save(self._state)

    def _stamp(self) -> str:
        return self.now().isoformat(timespec="seconds")

    def _day_key(self, day: date | str | None) -> str | None:
        if day is None:
            return self.today().isoformat()
        try:
            return as_date(day).isoformat()
        except ValueError:
            logger.debug("Rejected malformed day %r", day)
            return None

    # ---- tasks ----

    def create_task(self, title: str, time_estimate_minutes: int = 30, day: date | str | None = None) -> Task | None:
        try:
            title = require_text(title, "title")
        except ValidationError as e:
            logger.debug("create_task rejected: %s", e)
            return None
        key = self._day_key(day)
        if key is None:
            return None
        task = Task(
            id=new_id("t"),
            title=title,
            time_estimate_minutes=time_estimate_minutes,
            progress=0,
            date=key,
            created_at=self._stamp(),
        )
        self._state.tasks.append(task)
        self._commit("create_task")
        return task

    def update_task_progress(self, task_id: str, progress: int) -> Task | None:
        task = self.find_task(task_id)
        if task is None:
            return None
        task.set_progress(progress)
        self._commit("update_task_progress")
        return task

    def update_task(self, task_id: str, **changes: Any) -> Task | None:
        """Edit title, time_estimate_minutes, date and/or progress of a task."""
        task = self.find_task(task_id)
        if task is None:
            return None
        unknown = set(changes) - {"title", "time_estimate_minutes", "date", "progress"}
        if unknown:
            logger.debug("update_task ignoring fields %s", sorted(unknown))
        if "title" in changes:
            try:
                task.title = require_text(changes["title"], "title")
            except ValidationError as e:
                logger.debug("update_task rejected: %s", e)
                return None
        if "time_estimate_minutes" in changes:
            task.time_estimate_minutes = clamp(changes["time_estimate_minutes"], 1, 24 * 60)
        if "date" in changes:
            key = self._day_key(changes["date"])
            if key is not None:
                task.date = key
        if "progress" in changes:
            task.set_progress(changes["progress"])
        self._commit("update_task")
        return task

    def delete_task(self, task_id: str) -> bool:
        before = len(self._state.tasks)
        self._state.tasks = [t for t in self._state.tasks if t.id != task_id]
        if len(self._state.tasks) == before:
            return False
        self._commit("delete_task")
        return True

    def carry_forward(self, today: date | str | None = None, *, include_today: bool = False) -> list[Task]:
        """Forward incomplete past tasks as new rows; originals are kept as history."""
        day = as_date(today) if today is not None else self.today()
        forwarded = rollover.plan_carry_forward(
            self._state.tasks,
            day,
            include_today=include_today,
            make_id=lambda: new_id("t"),
            stamp=self._stamp(),
        )
        if forwarded:
            self._state.tasks.extend(forwarded)
            logger.info("Carried forward %d task(s) to %s", len(forwarded), forwarded[0].date)
            self._commit("carry_forward")
        return forwarded

    def mark_rollover(self, day: date | str) -> None:
        self._state.last_rollover_date = as_date(day).isoformat()
        self._commit("mark_rollover")

    # ---- habits ----

    def create_habit(self, name: str, icon: str = "", category: str = "") -> Habit | None:
        try:
            name = require_text(name, "name")
        except ValidationError as e:
            logger.debug("create_habit rejected: %s", e)
            return None
        habit = Habit(id=new_id("h"), name=name, icon=icon, category=category, created_at=self._stamp())
        self._state.habits.append(habit)
        self._commit("create_habit")
        return habit

    def delete_habit(self, habit_id: str) -> bool:
        before = len(self._state.habits)
        self._state.habits = [h for h in self._state.habits if h.id != habit_id]
        if len(self._state.habits) == before:
            return False
        self._commit("delete_habit")
        return True

    def archive_habit(self, habit_id: str, archived: bool = True) -> Habit | None:
        habit = self.find_habit(habit_id)
        if habit is None:
            return None
        habit.archived = archived
        self._commit("archive_habit")
        return habit

    def toggle_habit_completion(self, habit_id: str, day: date | str | None = None) -> Habit | None:
        """Flip *day* in the habit's completed dates and recompute its streak."""
        habit = self.find_habit(habit_id)
        if habit is None:
            return None
        key = self._day_key(day)
        if key is None:
            return None
        if key in habit.completed_dates:
            habit.completed_dates.discard(key)
        else:
            habit.completed_dates.add(key)
        habit.streak = compute_streak(habit.completed_dates, self.today())
        self._commit("toggle_habit_completion")
        return habit

    def reconcile_streaks(self, today: date | str | None = None) -> int:
        """Recompute every cached streak. Returns how many were wrong."""
        day = as_date(today) if today is not None else self.today()
        fixed = 0
        for habit in self._state.habits:
            actual = compute_streak(habit.completed_dates, day)
            if habit.streak != actual:
                habit.streak = actual
                fixed += 1
        if fixed:
            logger.info("Reconciled %d habit streak(s)", fixed)
        return fixed

    # ---- journal & logs ----

    def add_journal_entry(
        self,
        type: str,
        content: str,
        tags: Iterable[str] = (),
        *,
        day: date | str | None = None,
        mood: int | None = None,
        media_path: str | None = None,
    ) -> JournalEntry | None:
        content = str(content or "").strip()
        if not content and not media_path:
            logger.debug("add_journal_entry rejected: empty entry")
            return None
        key = self._day_key(day)
        if key is None:
            return None
        entry = JournalEntry(
            id=new_id("j"),
            type=str(type or "text").lower(),
            content=content,
            tags=set(str_list(tags)),
            timestamp=self._stamp(),
            date=key,
            mood=mood,
            media_path=media_path,
        )
        # Newest first.
        self._state.journal.insert(0, entry)
        self._commit("add_journal_entry")
        return entry

    def delete_journal_entry(self, entry_id: str) -> bool:
        before = len(self._state.journal)
        self._state.journal = [e for e in self._state.journal if e.id != entry_id]
        if len(self._state.journal) == before:
            return False
        self._commit("delete_journal_entry")
        return True

    def add_log(self, text: str) -> DailyLog | None:
        try:
            text = require_text(text, "text")
        except ValidationError as e:
            logger.debug("add_log rejected: %s", e)
            return None
        log = DailyLog(id=new_id("l"), text=text, timestamp=self._stamp())
        self._state.logs.insert(0, log)
        self._commit("add_log")
        return log

    # ---- goals ----

    def add_goal(
        self,
        title: str,
        progress: int = 0,
        notes: Iterable[str] = (),
        weekly_progress: Iterable[WeeklyProgress | dict[str, Any]] = (),
    ) -> Goal | None:
        try:
            title = require_text(title, "title")
        except ValidationError as e:
            logger.debug("add_goal rejected: %s", e)
            return None
        goal = Goal(
            id=new_id("g"),
            title=title,
            progress=progress,
            notes=list(notes),
            weekly_progress=[_weekly(w) for w in weekly_progress],
        )
        self._state.goals.append(goal)
        self._commit("add_goal")
        return goal

    def update_goal(self, goal_id: str, **changes: Any) -> Goal | None:
        """Merge title, progress, notes and/or weekly_progress into a goal."""
        goal = self.find_goal(goal_id)
        if goal is None:
            return None
        if "title" in changes:
            try:
                goal.title = require_text(changes["title"], "title")
            except ValidationError as e:
                logger.debug("update_goal rejected: %s", e)
                return None
        if "progress" in changes:
            goal.progress = clamp(changes["progress"], 0, 100)
            goal.completed = goal.progress == 100
        if "notes" in changes:
            goal.notes = [str(n) for n in changes["notes"] or []]
        if "weekly_progress" in changes:
            goal.weekly_progress = [_weekly(w) for w in changes["weekly_progress"] or []]
        self._commit("update_goal")
        return goal

    def add_goal_weekly_update(self, goal_id: str, delta: int, note: str = "") -> Goal | None:
        """Move goal progress by *delta* and record it against the current week."""
        goal = self.find_goal(goal_id)
        if goal is None:
            return None
        try:
            step = int(round(float(delta)))
        except (TypeError, ValueError, OverflowError):
            logger.debug("add_goal_weekly_update ignoring delta %r", delta)
            step = 0
        goal.progress = clamp(goal.progress + step, 0, 100)
        goal.completed = goal.progress == 100
        week = week_bounds(self.today())[0].isoformat()
        if goal.weekly_progress and goal.weekly_progress[-1].week == week:
            goal.weekly_progress[-1].value = goal.progress
        else:
            goal.weekly_progress.append(WeeklyProgress(week=week, value=goal.progress))
        if note and note.strip():
            goal.notes.append(note.strip())
        self._commit("add_goal_weekly_update")
        return goal

    def delete_goal(self, goal_id: str) -> bool:
        before = len(self._state.goals)
        self._state.goals = [g for g in self._state.goals if g.id != goal_id]
        if len(self._state.goals) == before:
            return False
        self._commit("delete_goal")
        return True

    # ---- daily tracker ----

    def save_daily_tracker(self, tracker: DailyTracker) -> DailyTracker | None:
        """Insert or replace the tracker for tracker.date (last write wins)."""
        key = self._day_key(tracker.date or None)
        if key is None:
            return None
        saved = dataclasses.replace(tracker, date=key, photo_paths=list(tracker.photo_paths))
        stamp = self._stamp()
        existing = self.tracker_for(key)
        if existing is not None:
            saved.id = existing.id
            saved.created_at = existing.created_at or stamp
            self._state.trackers = [t for t in self._state.trackers if t.date != key]
        else:
            saved.id = saved.id or new_id("d")
            saved.created_at = saved.created_at or stamp
        saved.updated_at = stamp
        saved.discipline_score = discipline_score(saved)
        self._state.trackers.append(saved)
        self._state.trackers.sort(key=lambda t: t.date)
        self._commit("save_daily_tracker")
        return saved

    def delete_daily_tracker(self, day: date | str) -> bool:
        key = self._day_key(day)
        if key is None or self.tracker_for(key) is None:
            return False
        self._state.trackers = [t for t in self._state.trackers if t.date != key]
        self._commit("delete_daily_tracker")
        return True

    # ---- profile & misc ----

    def set_profile(self, profile: UserProfile) -> None:
        self._state.profile = dataclasses.replace(profile)
        self._commit("set_profile")

    def set_mood(self, mood: int) -> None:
        self._state.mood = clamp(mood, 1, 5)
        self._commit("set_mood")

    def set_onboarded(self, value: bool = True) -> None:
        self._state.onboarded = bool(value)
        self._commit("set_onboarded")

    def replace_state(self, state: AppState) -> None:
        """Swap in a whole new state, e.g. from a backup."""
        self._state = copy.deepcopy(state)
        self._state.trackers = unique_trackers(self._state.trackers)
        self.reconcile_streaks()
        self._commit("replace_state")

    # ---- lifecycle ----

    def flush(self) -> bool:
        if self._gateway is None:
            return True
        return self._gateway.flush()

    def close(self) -> bool:
        if self._gateway is None:
            return True
        return self._gateway.close()


def _weekly(w: WeeklyProgress | dict[str, Any]) -> WeeklyProgress:
    if isinstance(w, WeeklyProgress):
        return dataclasses.replace(w)
    return WeeklyProgress.from_dict(w)
