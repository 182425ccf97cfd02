"""HabitMind core library: local-first domain store and analytics engine.

Public API re-exports for convenient imports:
    from habitmind import open_store, DomainStore, compute_streak, ...
"""

# Models
from habitmind.models import (
    AppState,
    DailyLog,
    DailyTracker,
    Goal,
    Habit,
    HabitCompletion,
    HabitMindError,
    JournalEntry,
    Task,
    UserProfile,
    ValidationError,
    WeeklyProgress,
)

# Analytics
from habitmind.analytics import (
    TaskStats,
    WeeklySummary,
    completion_rate,
    compute_streak,
    discipline_score,
    longest_streak,
    streak_runs,
    task_completion_stats,
    weekly_summary,
)

# Persistence
from habitmind.persistence import (
    JsonFileBackend,
    LoadResult,
    PersistenceGateway,
    StorageError,
)
from habitmind.sqlite_backend import SqliteBackend

# Store & scheduling
from habitmind.store import DomainStore
from habitmind.rollover import (
    WeeklyReviewResult,
    complete_weekly_review,
    plan_carry_forward,
    roll_over_if_needed,
)

# Projections
from habitmind.projections import (
    GoalProgressView,
    HabitWithStreak,
    InsightsSummary,
    TodaySummary,
    goal_progress,
    habits_with_streaks,
    insights_summary,
    today_summary,
    week_summary,
)

# Backup, config, wiring
from habitmind.backup import BackupError, delete_backup, export_backup, import_backup, list_backups
from habitmind.config import Settings, load_settings, write_default_settings
from habitmind.logging_setup import setup_logging
from habitmind.bootstrap import open_store
