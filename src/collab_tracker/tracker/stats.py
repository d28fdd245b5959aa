# src/collab_tracker/tracker/stats.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from ..core.models import Project, Task, TaskPriority, TaskStatus, parse_ts


@dataclass(slots=True, frozen=True)
class TaskStats:
    total: int
    pending: int
    in_progress: int
    completed: int


@dataclass(slots=True, frozen=True)
class PersonalStats:
    projects_created: int
    tasks_created: int
    tasks_started: int
    tasks_completed: int


@dataclass(slots=True, frozen=True)
class ProjectAnalytics:
    total: int
    pending: int
    in_progress: int
    completed: int
    completion_rate: int  # percent, rounded


@dataclass(slots=True, frozen=True)
class OverallAnalytics:
    tasks_this_week: int
    tasks_this_month: int
    completed_this_week: int
    open_high_priority: int
    overdue: int


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    items = list(tasks)
    return TaskStats(
        total=len(items),
        pending=sum(1 for t in items if t.status == TaskStatus.PENDING),
        in_progress=sum(1 for t in items if t.status == TaskStatus.IN_PROGRESS),
        completed=sum(1 for t in items if t.status == TaskStatus.COMPLETED),
    )


def personal_stats(projects: Iterable[Project], tasks: Iterable[Task], user_id: str) -> PersonalStats:
    items = list(tasks)
    return PersonalStats(
        projects_created=sum(1 for p in projects if p.created_by == user_id),
        tasks_created=sum(1 for t in items if t.created_by == user_id),
        tasks_started=sum(1 for t in items if t.started_by == user_id),
        tasks_completed=sum(1 for t in items if t.completed_by == user_id),
    )


def project_analytics(project: Project, tasks: Iterable[Task]) -> ProjectAnalytics:
    stats = task_stats(t for t in tasks if t.project_id == project.id)
    rate = round(stats.completed * 100 / stats.total) if stats.total else 0
    return ProjectAnalytics(
        total=stats.total,
        pending=stats.pending,
        in_progress=stats.in_progress,
        completed=stats.completed,
        completion_rate=rate,
    )


def overall_analytics(tasks: Iterable[Task], now: datetime | None = None) -> OverallAnalytics:
    """
    Rolling counters over the task pool.

    "This week" is the last 7 days; "this month" starts on the 1st (UTC).
    Tasks with unparseable timestamps are not counted in time windows.
    """
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    week_ago = now - timedelta(days=7)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    this_week = this_month = completed_week = high_open = overdue = 0
    for t in tasks:
        created = parse_ts(t.created_at)
        if created is not None:
            if created >= week_ago:
                this_week += 1
            if created >= month_start:
                this_month += 1

        done_at = parse_ts(t.completed_at)
        if done_at is not None and done_at >= week_ago:
            completed_week += 1

        if t.status == TaskStatus.COMPLETED:
            continue
        if t.priority == TaskPriority.HIGH:
            high_open += 1
        due = parse_ts(t.due_date)
        if due is not None and due < now:
            overdue += 1

    return OverallAnalytics(
        tasks_this_week=this_week,
        tasks_this_month=this_month,
        completed_this_week=completed_week,
        open_high_priority=high_open,
        overdue=overdue,
    )
