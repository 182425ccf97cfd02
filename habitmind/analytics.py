"""Streak and analytics engine for HabitMind.

Pure functions over entity dataclasses and a reference day. Nothing here
reads the clock or touches storage, so repeated calls with the same inputs
return the same result.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from habitmind.models import TRACKER_CHECKLIST, DailyTracker, Habit, Task

ONE_DAY = timedelta(days=1)

# Ratings that feed the discipline score. Stress is tracked but not scored,
# since a higher stress value must never raise the score.
SCORED_RATINGS = ("energy", "focus", "mood")


# ── Date helpers ──────────────────────────────────────────────


def as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _date_set(days: Iterable[str]) -> set[date]:
    """Parse ISO day strings, skipping anything malformed."""
    out = set()
    for d in days:
        try:
            out.add(as_date(d))
        except ValueError:
            continue
    return out


def iter_days(start: date, end: date) -> Iterable[date]:
    d = start
    while d <= end:
        yield d
        d += ONE_DAY


def week_bounds(day: date | str) -> tuple[date, date]:
    """Monday..Sunday of the week containing *day*."""
    d = as_date(day)
    monday = d - timedelta(days=d.weekday())
    return monday, monday + timedelta(days=6)


# ── Streaks ───────────────────────────────────────────────────


def compute_streak(completed_dates: Iterable[str], today: date | str) -> int:
    """Consecutive completed days ending today, or yesterday if today is still open.

    A streak that was alive yesterday is not broken just because today
    has not been checked off yet.
    """
    days = _date_set(completed_dates)
    cursor = as_date(today)
    if cursor not in days:
        cursor -= ONE_DAY
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= ONE_DAY
    return streak


def streak_runs(completed_dates: Iterable[str]) -> list[dict[str, object]]:
    """All runs of consecutive completed days, oldest first."""
    days = sorted(_date_set(completed_dates))
    runs: list[dict[str, object]] = []
    if not days:
        return runs
    start = prev = days[0]
    for d in days[1:]:
        if d - prev == ONE_DAY:
            prev = d
            continue
        runs.append({"start": start.isoformat(), "end": prev.isoformat(), "length": (prev - start).days + 1})
        start = prev = d
    runs.append({"start": start.isoformat(), "end": prev.isoformat(), "length": (prev - start).days + 1})
    return runs


def longest_streak(completed_dates: Iterable[str]) -> int:
    runs = streak_runs(completed_dates)
    return max((int(r["length"]) for r in runs), default=0)


# ── Rates ─────────────────────────────────────────────────────


def completion_rate(completed_dates: Iterable[str], start: date | str, end: date | str) -> float:
    """Percentage of days in [start, end] that were completed; 0 for an empty window."""
    start_d, end_d = as_date(start), as_date(end)
    window = (end_d - start_d).days + 1
    if window <= 0:
        return 0.0
    hits = sum(1 for d in _date_set(completed_dates) if start_d <= d <= end_d)
    return hits * 100.0 / window


@dataclass(frozen=True)
class TaskStats:
    completed: int = 0
    total: int = 0
    completion_rate: float = 0.0  # fraction 0..1


def tasks_in_range(tasks: Iterable[Task], start: date | str, end: date | str) -> list[Task]:
    start_s, end_s = as_date(start).isoformat(), as_date(end).isoformat()
    return [t for t in tasks if start_s <= t.date <= end_s]


def task_completion_stats(tasks: Iterable[Task], start: date | str, end: date | str) -> TaskStats:
    window = tasks_in_range(tasks, start, end)
    total = len(window)
    done = sum(1 for t in window if t.completed)
    return TaskStats(completed=done, total=total, completion_rate=(done / total) if total else 0.0)


def average_task_progress(tasks: Iterable[Task], day: date | str) -> float:
    day_s = as_date(day).isoformat()
    values = [t.progress for t in tasks if t.date == day_s]
    return sum(values) / len(values) if values else 0.0


def daily_habit_rates(habits: Iterable[Habit], start: date | str, end: date | str) -> list[tuple[str, float]]:
    """Per-day percentage of active habits completed, for charting."""
    active = [h for h in habits if not h.archived]
    series = []
    for d in iter_days(as_date(start), as_date(end)):
        key = d.isoformat()
        if active:
            done = sum(1 for h in active if key in h.completed_dates)
            series.append((key, done * 100.0 / len(active)))
        else:
            series.append((key, 0.0))
    return series


def daily_task_rates(tasks: Iterable[Task], start: date | str, end: date | str) -> list[tuple[str, float]]:
    """Per-day percentage of that day's tasks completed."""
    by_day: dict[str, list[Task]] = {}
    for t in tasks:
        by_day.setdefault(t.date, []).append(t)
    series = []
    for d in iter_days(as_date(start), as_date(end)):
        key = d.isoformat()
        day_tasks = by_day.get(key, [])
        if day_tasks:
            series.append((key, sum(1 for t in day_tasks if t.completed) * 100.0 / len(day_tasks)))
        else:
            series.append((key, 0.0))
    return series


# ── Discipline score ──────────────────────────────────────────


def discipline_score(tracker: DailyTracker) -> int:
    """0-10 score: one point per checklist item plus up to five from ratings.

    The ratings part is the mean of energy/focus/mood (0-10 each) halved.
    Computed in integers as round-half-up of ``checked + sum / 6``, so the
    result never drops when a box is ticked or a scored rating goes up.
    """
    checked = sum(1 for name in TRACKER_CHECKLIST if getattr(tracker, name))
    rating_sum = sum(max(0, min(10, int(getattr(tracker, name)))) for name in SCORED_RATINGS)
    score = (6 * checked + rating_sum + 3) // 6
    return max(0, min(10, score))


def average_discipline_score(trackers: Iterable[DailyTracker], start: date | str, end: date | str) -> float:
    start_s, end_s = as_date(start).isoformat(), as_date(end).isoformat()
    scores = [discipline_score(t) for t in trackers if start_s <= t.date <= end_s]
    return sum(scores) / len(scores) if scores else 0.0


# ── Weekly summary ────────────────────────────────────────────


@dataclass(frozen=True)
class WeeklySummary:
    start: str
    end: str
    tasks_completed: int
    tasks_total: int
    habit_completion_rate: float  # percent
    peak_streak: int
    peak_streak_habit: str | None = None
    carried_forward: int = 0


def weekly_summary(
    tasks: Iterable[Task],
    habits: Iterable[Habit],
    start: date | str,
    end: date | str,
) -> WeeklySummary:
    """Task and habit roll-up for the weekly review.

    Streaks are measured as of *end*.
    """
    start_d, end_d = as_date(start), as_date(end)
    window = tasks_in_range(tasks, start_d, end_d)
    active = [h for h in habits if not h.archived]

    rates = [completion_rate(h.completed_dates, start_d, end_d) for h in active]
    peak, peak_name = 0, None
    for h in active:
        s = compute_streak(h.completed_dates, end_d)
        if s > peak:
            peak, peak_name = s, h.name

    return WeeklySummary(
        start=start_d.isoformat(),
        end=end_d.isoformat(),
        tasks_completed=sum(1 for t in window if t.completed),
        tasks_total=len(window),
        habit_completion_rate=(sum(rates) / len(rates)) if rates else 0.0,
        peak_streak=peak,
        peak_streak_habit=peak_name,
        carried_forward=sum(1 for t in window if t.carried_forward),
    )
