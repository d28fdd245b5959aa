# src/collab_tracker/tracker/lifecycle.py

"""
Task lifecycle rules.

start/complete/assign are constrained partial updates of a task; they go
through the regular task update path. A patch builder returns None when the
transition is not allowed from the task's current status.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..core.errors import ValidationFailure
from ..core.models import Task, TaskStatus, utc_now_iso

LIFECYCLE_FIELDS = frozenset({"status", "started_by", "started_at", "completed_by", "completed_at"})


def can_start(task: Task) -> bool:
    return task.status == TaskStatus.PENDING


def can_complete(task: Task) -> bool:
    return task.status == TaskStatus.IN_PROGRESS


def start_patch(task: Task, user_id: str, now: str | None = None) -> dict[str, Any] | None:
    """pending -> in-progress; any user may start any pending task."""
    if not can_start(task):
        return None
    return {
        "status": TaskStatus.IN_PROGRESS,
        "started_by": user_id,
        "started_at": now or utc_now_iso(),
    }


def complete_patch(task: Task, user_id: str, now: str | None = None) -> dict[str, Any] | None:
    """in-progress -> completed; any user may complete any in-progress task."""
    if not can_complete(task):
        return None
    return {
        "status": TaskStatus.COMPLETED,
        "completed_by": user_id,
        "completed_at": now or utc_now_iso(),
    }


def assign_patch(assigned_user_id: str) -> dict[str, Any]:
    # Allowed in any status; touches nothing but the assignee.
    return {"assigned_to": assigned_user_id}


def check_generic_update(updates: Mapping[str, Any]) -> None:
    """Plain edits may not move status or rewrite its stamps."""
    touched = sorted(LIFECYCLE_FIELDS.intersection(updates))
    if touched:
        raise ValidationFailure(f"use start/complete to change {', '.join(touched)}")
