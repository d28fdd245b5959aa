# tests/test_stats.py

from __future__ import annotations

from datetime import UTC, datetime

from collab_tracker.core.models import Project, ProjectStatus, Task, TaskPriority, TaskStatus
from collab_tracker.tracker.stats import overall_analytics, personal_stats, project_analytics, task_stats

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def _task(tid: str, status: TaskStatus, **kw) -> Task:
    base = dict(
        id=tid,
        title=f"task {tid}",
        description="",
        project_id="p1",
        created_by="1",
        status=status,
        priority=TaskPriority.MEDIUM,
        created_at="2026-03-14T00:00:00Z",
    )
    base.update(kw)
    return Task(**base)


TASKS = [
    _task("1", TaskStatus.PENDING, priority=TaskPriority.HIGH, due_date="2026-03-01"),
    _task("2", TaskStatus.IN_PROGRESS, started_by="2", created_at="2026-03-02T00:00:00Z"),
    _task(
        "3",
        TaskStatus.COMPLETED,
        created_by="2",
        started_by="2",
        completed_by="1",
        completed_at="2026-03-13T10:00:00Z",
        priority=TaskPriority.HIGH,
        due_date="2026-03-01",
    ),
    _task("4", TaskStatus.COMPLETED, project_id="p2", created_at="2026-02-20T00:00:00Z", completed_at="bad"),
]


def test_task_stats_counts_by_status() -> None:
    s = task_stats(TASKS)
    assert (s.total, s.pending, s.in_progress, s.completed) == (4, 1, 1, 2)


def test_personal_stats() -> None:
    projects = [
        Project("p1", "A", "", ProjectStatus.ACTIVE, "1", "2026-03-01T00:00:00Z"),
        Project("p2", "B", "", ProjectStatus.ACTIVE, "2", "2026-03-01T00:00:00Z"),
    ]
    p = personal_stats(projects, TASKS, "2")
    assert (p.projects_created, p.tasks_created, p.tasks_started, p.tasks_completed) == (1, 1, 2, 0)


def test_project_analytics_rounds_completion_rate() -> None:
    project = Project("p1", "A", "", ProjectStatus.ACTIVE, "1", "2026-03-01T00:00:00Z")
    a = project_analytics(project, TASKS)
    assert (a.total, a.completed, a.completion_rate) == (3, 1, 33)

    empty = Project("p9", "E", "", ProjectStatus.ACTIVE, "1", "2026-03-01T00:00:00Z")
    assert project_analytics(empty, TASKS).completion_rate == 0


def test_overall_analytics_windows() -> None:
    o = overall_analytics(TASKS, now=NOW)
    assert o.tasks_this_week == 2
    assert o.tasks_this_month == 3
    assert o.completed_this_week == 1
    assert o.open_high_priority == 1
    assert o.overdue == 1


def test_overall_analytics_accepts_naive_now() -> None:
    assert overall_analytics(TASKS, now=NOW.replace(tzinfo=None)) == overall_analytics(TASKS, now=NOW)
