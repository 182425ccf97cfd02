"""Read-only views composed from store state and the analytics engine.

Every function takes an AppState (usually ``store.state``) and a reference
day and builds its view on demand; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from habitmind.analytics import (
    WeeklySummary,
    as_date,
    average_discipline_score,
    average_task_progress,
    completion_rate,
    compute_streak,
    daily_habit_rates,
    daily_task_rates,
    discipline_score,
    longest_streak,
    task_completion_stats,
    week_bounds,
    weekly_summary,
)
from habitmind.models import AppState, Goal, Habit


@dataclass(frozen=True)
class HabitWithStreak:
    habit: Habit
    completed_today: bool
    current_streak: int
    longest_streak: int
    completion_rate_30d: float

    def to_dict(self) -> dict[str, Any]:
        d = self.habit.to_dict()
        d.update({
            "completedToday": self.completed_today,
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "completionRate30d": round(self.completion_rate_30d, 1),
        })
        return d


@dataclass(frozen=True)
class TodaySummary:
    date: str
    habits_completed: int
    habits_total: int
    tasks_completed: int
    tasks_total: int
    average_task_progress: float
    discipline_score: int | None = None


@dataclass(frozen=True)
class InsightsSummary:
    start: str
    end: str
    consistency: int  # % of active habits done today
    adherence: int  # mean habit completion rate over the window
    accuracy: int  # % of planned tasks completed in the window
    average_discipline_score: float
    habit_series: list[tuple[str, float]] = field(default_factory=list)
    task_series: list[tuple[str, float]] = field(default_factory=list)
    discipline_series: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "consistency": self.consistency,
            "adherence": self.adherence,
            "accuracy": self.accuracy,
            "averageDisciplineScore": round(self.average_discipline_score, 2),
            "habitSeries": [{"date": d, "value": round(v, 1)} for d, v in self.habit_series],
            "taskSeries": [{"date": d, "value": round(v, 1)} for d, v in self.task_series],
            "disciplineSeries": [{"date": d, "value": v} for d, v in self.discipline_series],
        }


@dataclass(frozen=True)
class GoalProgressView:
    goal: Goal
    latest_week: str | None
    weekly_delta: int  # change since the previous weekly entry


def habits_with_streaks(state: AppState, today: date | str, *, include_archived: bool = False) -> list[HabitWithStreak]:
    today_d = as_date(today)
    key = today_d.isoformat()
    out = []
    for h in state.habits:
        if h.archived and not include_archived:
            continue
        out.append(
            HabitWithStreak(
                habit=h,
                completed_today=key in h.completed_dates,
                current_streak=compute_streak(h.completed_dates, today_d),
                longest_streak=longest_streak(h.completed_dates),
                completion_rate_30d=completion_rate(h.completed_dates, today_d - timedelta(days=29), today_d),
            )
        )
    return out


def today_summary(state: AppState, today: date | str) -> TodaySummary:
    today_d = as_date(today)
    key = today_d.isoformat()
    active = [h for h in state.habits if not h.archived]
    tasks = [t for t in state.tasks if t.date == key]
    tracker = next((t for t in state.trackers if t.date == key), None)
    return TodaySummary(
        date=key,
        habits_completed=sum(1 for h in active if key in h.completed_dates),
        habits_total=len(active),
        tasks_completed=sum(1 for t in tasks if t.completed),
        tasks_total=len(tasks),
        average_task_progress=average_task_progress(state.tasks, today_d),
        discipline_score=discipline_score(tracker) if tracker else None,
    )


def week_summary(state: AppState, today: date | str) -> WeeklySummary:
    """Monday-to-today roll-up of the week containing *today*."""
    today_d = as_date(today)
    start, _ = week_bounds(today_d)
    return weekly_summary(state.tasks, state.habits, start, today_d)


def insights_summary(state: AppState, today: date | str, days: int = 7) -> InsightsSummary:
    """Headline percentages plus daily series over the last *days* days."""
    end = as_date(today)
    start = end - timedelta(days=max(1, days) - 1)
    key = end.isoformat()
    active = [h for h in state.habits if not h.archived]

    consistency = round(sum(1 for h in active if key in h.completed_dates) * 100 / len(active)) if active else 0
    rates = [completion_rate(h.completed_dates, start, end) for h in active]
    adherence = round(sum(rates) / len(rates)) if rates else 0
    stats = task_completion_stats(state.tasks, start, end)

    start_s = start.isoformat()
    discipline = [(t.date, discipline_score(t)) for t in state.trackers if start_s <= t.date <= key]

    return InsightsSummary(
        start=start_s,
        end=key,
        consistency=consistency,
        adherence=adherence,
        accuracy=round(stats.completion_rate * 100),
        average_discipline_score=average_discipline_score(state.trackers, start, end),
        habit_series=daily_habit_rates(state.habits, start, end),
        task_series=daily_task_rates(state.tasks, start, end),
        discipline_series=sorted(discipline),
    )


def goal_progress(state: AppState) -> list[GoalProgressView]:
    out = []
    for g in state.goals:
        series = g.weekly_progress
        latest = series[-1].week if series else None
        delta = series[-1].value - series[-2].value if len(series) >= 2 else 0
        out.append(GoalProgressView(goal=g, latest_week=latest, weekly_delta=delta))
    return out
