"""Carry-forward of incomplete tasks on day and week boundaries.

Policy: retain-with-audit-trail. An incomplete task keeps its historical
date and progress; a fresh copy (progress 0, carried_forward set) is
created on the target day. A task is forwarded at most once: the copy
records the source id in ``carried_from`` and later runs skip any source
that already has a copy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from habitmind.analytics import WeeklySummary, as_date, week_bounds, weekly_summary
from habitmind.models import Task

if TYPE_CHECKING:
    from habitmind.store import DomainStore

logger = logging.getLogger(__name__)


def plan_carry_forward(
    tasks: Iterable[Task],
    today: date | str,
    *,
    include_today: bool = False,
    make_id: Callable[[], str],
    stamp: str = "",
) -> list[Task]:
    """Build the forwarded copies for every eligible task. Does not mutate *tasks*.

    Eligible: dated before today (or up to and including today when
    *include_today*), progress below 100, and not forwarded before.
    The copies land on today, or tomorrow when *include_today*.
    """
    tasks = list(tasks)
    today_d = as_date(today)
    target = today_d + timedelta(days=1) if include_today else today_d
    target_s = target.isoformat()
    already = {t.carried_from for t in tasks if t.carried_from}

    out: list[Task] = []
    for t in tasks:
        try:
            day = as_date(t.date)
        except ValueError:
            logger.warning("Task %s has malformed date %r; not carried", t.id, t.date)
            continue
        if day >= target or t.progress >= 100 or t.id in already:
            continue
        out.append(
            Task(
                id=make_id(),
                title=t.title,
                time_estimate_minutes=t.time_estimate_minutes,
                progress=0,
                date=target_s,
                carried_forward=True,
                original_date=t.original_date or t.date,
                carried_from=t.id,
                created_at=stamp,
            )
        )
        already.add(t.id)
    return out


def roll_over_if_needed(store: DomainStore, today: date | str | None = None) -> list[Task]:
    """Day-boundary rollover; runs at most once per calendar day."""
    day = as_date(today) if today is not None else store.today()
    if store.state.last_rollover_date == day.isoformat():
        return []
    forwarded = store.carry_forward(day)
    store.reconcile_streaks(day)
    store.mark_rollover(day)
    return forwarded


@dataclass(frozen=True)
class WeeklyReviewResult:
    summary: WeeklySummary
    forwarded: list[Task] = field(default_factory=list)


def complete_weekly_review(store: DomainStore, today: date | str | None = None) -> WeeklyReviewResult:
    """Summarize the current week, then move every incomplete task to tomorrow."""
    day = as_date(today) if today is not None else store.today()
    start, _ = week_bounds(day)
    summary = weekly_summary(store.state.tasks, store.state.habits, start, day)
    forwarded = store.carry_forward(day, include_today=True)
    logger.info(
        "Weekly review %s..%s: %d/%d tasks done, %d forwarded",
        summary.start, summary.end, summary.tasks_completed, summary.tasks_total, len(forwarded),
    )
    return WeeklyReviewResult(summary=summary, forwarded=forwarded)
