"""Tests for habitmind/analytics.py: streaks, rates and the discipline score."""

from datetime import date, timedelta

from habitmind.analytics import (
    average_discipline_score,
    completion_rate,
    compute_streak,
    daily_habit_rates,
    daily_task_rates,
    discipline_score,
    longest_streak,
    streak_runs,
    task_completion_stats,
    week_bounds,
    weekly_summary,
)
from habitmind.models import DailyTracker, Habit, Task

from conftest import TODAY


def _days(*offsets: int) -> set[str]:
    return {(TODAY - timedelta(days=n)).isoformat() for n in offsets}


# ── compute_streak ───────────────────────────────────────────


def test_streak_empty():
    assert compute_streak(set(), TODAY) == 0


def test_streak_counts_through_today():
    assert compute_streak(_days(0, 1, 2), TODAY) == 3


def test_streak_still_alive_when_today_unchecked():
    assert compute_streak(_days(1, 2), TODAY) == 2


def test_streak_grows_when_today_checked():
    dates = _days(1, 2)
    dates.add(TODAY.isoformat())
    assert compute_streak(dates, TODAY) == 3


def test_streak_broken_by_gap():
    assert compute_streak(_days(2, 3, 4), TODAY) == 0
    assert compute_streak(_days(0, 2, 3), TODAY) == 1


def test_streak_accepts_iso_string_today_and_skips_bad_dates():
    dates = _days(0, 1) | {"not-a-date"}
    assert compute_streak(dates, TODAY.isoformat()) == 2


def test_streak_is_deterministic():
    dates = _days(0, 1, 5, 6, 7)
    assert compute_streak(dates, TODAY) == compute_streak(dates, TODAY) == 2


# ── runs ─────────────────────────────────────────────────────


def test_streak_runs_and_longest():
    dates = _days(0, 1, 5, 6, 7)
    runs = streak_runs(dates)
    assert [r["length"] for r in runs] == [3, 2]
    assert runs[-1]["end"] == TODAY.isoformat()
    assert longest_streak(dates) == 3
    assert longest_streak([]) == 0


# ── completion_rate ──────────────────────────────────────────


def test_completion_rate_bounds():
    start = TODAY - timedelta(days=9)
    assert completion_rate(set(), start, TODAY) == 0.0
    assert completion_rate(_days(*range(10)), start, TODAY) == 100.0
    assert completion_rate(_days(0, 1, 2, 3, 4), start, TODAY) == 50.0


def test_completion_rate_ignores_days_outside_window():
    start = TODAY - timedelta(days=3)
    assert completion_rate(_days(0, 10, 20), start, TODAY) == 25.0


def test_completion_rate_empty_window():
    assert completion_rate(_days(0), TODAY, TODAY - timedelta(days=1)) == 0.0


# ── task stats ───────────────────────────────────────────────


def test_task_completion_stats():
    tasks = [
        Task(id="a", title="A", progress=100, date="2026-02-10"),
        Task(id="b", title="B", progress=50, date="2026-02-10"),
        Task(id="c", title="C", progress=100, date="2026-01-01"),
    ]
    stats = task_completion_stats(tasks, "2026-02-09", "2026-02-11")
    assert stats.completed == 1
    assert stats.total == 2
    assert stats.completion_rate == 0.5
    assert task_completion_stats([], TODAY, TODAY).completion_rate == 0.0


def test_daily_series():
    habits = [Habit(id="h1", name="A", completed_dates=_days(0)), Habit(id="h2", name="B")]
    series = daily_habit_rates(habits, TODAY - timedelta(days=1), TODAY)
    assert series == [("2026-02-10", 0.0), ("2026-02-11", 50.0)]

    tasks = [Task(id="a", title="A", progress=100, date="2026-02-11"), Task(id="b", title="B", date="2026-02-11")]
    assert daily_task_rates(tasks, TODAY, TODAY) == [("2026-02-11", 50.0)]


# ── discipline_score ─────────────────────────────────────────


def test_discipline_score_bounds():
    assert discipline_score(DailyTracker()) == 0
    full = DailyTracker(
        meditation=True,
        no_junk_food=True,
        no_music=True,
        no_screen_time_limit_breach=True,
        workout=True,
        energy=10,
        focus=10,
        mood=10,
        stress=10,
    )
    assert discipline_score(full) == 10


def test_discipline_score_checklist_and_ratings():
    # 2 checked + (6+6+6)/6 = 5
    t = DailyTracker(meditation=True, workout=True, energy=6, focus=6, mood=6)
    assert discipline_score(t) == 5


def test_discipline_score_monotonic_in_checklist_and_ratings():
    base = DailyTracker(energy=4, focus=5, mood=3)
    score = discipline_score(base)
    assert discipline_score(DailyTracker(energy=4, focus=5, mood=3, meditation=True)) >= score
    for bump in range(4, 11):
        assert discipline_score(DailyTracker(energy=bump, focus=5, mood=3)) >= score


def test_discipline_score_ignores_stress():
    calm = DailyTracker(energy=5, focus=5, mood=5, stress=0)
    tense = DailyTracker(energy=5, focus=5, mood=5, stress=10)
    assert discipline_score(calm) == discipline_score(tense)


def test_average_discipline_score():
    trackers = [
        DailyTracker(date="2026-02-10", meditation=True),
        DailyTracker(date="2026-02-11", meditation=True, workout=True, no_music=True),
        DailyTracker(date="2025-12-01", workout=True),
    ]
    assert average_discipline_score(trackers, "2026-02-09", "2026-02-11") == 2.0
    assert average_discipline_score([], TODAY, TODAY) == 0.0


# ── weekly summary ───────────────────────────────────────────


def test_week_bounds():
    assert week_bounds(TODAY) == (date(2026, 2, 9), date(2026, 2, 15))


def test_weekly_summary():
    tasks = [
        Task(id="a", title="A", progress=100, date="2026-02-09"),
        Task(id="b", title="B", progress=30, date="2026-02-11", carried_forward=True),
        Task(id="c", title="C", progress=100, date="2026-02-01"),
    ]
    habits = [
        Habit(id="h1", name="Read", completed_dates={"2026-02-09", "2026-02-10", "2026-02-11"}),
        Habit(id="h2", name="Run", completed_dates={"2026-02-10"}),
        Habit(id="h3", name="Old", completed_dates={"2026-02-09", "2026-02-10", "2026-02-11"}, archived=True),
    ]
    s = weekly_summary(tasks, habits, "2026-02-09", "2026-02-11")
    assert s.tasks_completed == 1
    assert s.tasks_total == 2
    assert s.carried_forward == 1
    assert s.peak_streak == 3
    assert s.peak_streak_habit == "Read"
    # Read 3/3, Run 1/3, archived habit excluded
    assert round(s.habit_completion_rate, 2) == round((100.0 + 100.0 / 3) / 2, 2)


def test_weekly_summary_empty():
    s = weekly_summary([], [], "2026-02-09", "2026-02-15")
    assert s.tasks_total == 0
    assert s.habit_completion_rate == 0.0
    assert s.peak_streak == 0
    assert s.peak_streak_habit is None
