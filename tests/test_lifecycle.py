# tests/test_lifecycle.py

from __future__ import annotations

import pytest

from collab_tracker.core.errors import ValidationFailure
from collab_tracker.core.models import Task, TaskPriority, TaskStatus
from collab_tracker.tracker.lifecycle import assign_patch, check_generic_update, complete_patch, start_patch

NOW = "2026-02-01T09:00:00.000Z"


def _task(status: TaskStatus) -> Task:
    return Task(
        id="t1",
        title="T",
        description="",
        project_id="p1",
        created_by="1",
        status=status,
        priority=TaskPriority.MEDIUM,
        created_at="2026-01-01T00:00:00.000Z",
    )


def test_start_only_from_pending() -> None:
    assert start_patch(_task(TaskStatus.PENDING), "2", now=NOW) == {
        "status": TaskStatus.IN_PROGRESS,
        "started_by": "2",
        "started_at": NOW,
    }
    assert start_patch(_task(TaskStatus.IN_PROGRESS), "2") is None
    assert start_patch(_task(TaskStatus.COMPLETED), "2") is None


def test_complete_only_from_in_progress() -> None:
    patch = complete_patch(_task(TaskStatus.IN_PROGRESS), "1")
    assert patch is not None
    assert patch["status"] == TaskStatus.COMPLETED
    assert patch["completed_by"] == "1"
    assert patch["completed_at"].endswith("Z")

    assert complete_patch(_task(TaskStatus.PENDING), "1") is None
    assert complete_patch(_task(TaskStatus.COMPLETED), "1") is None


def test_assign_touches_only_assignee() -> None:
    assert assign_patch("2") == {"assigned_to": "2"}


def test_generic_update_cannot_move_status() -> None:
    check_generic_update({"title": "x", "priority": "high"})
    with pytest.raises(ValidationFailure, match="started_at, status"):
        check_generic_update({"status": "completed", "started_at": NOW})
