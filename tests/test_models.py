# tests/test_models.py

from __future__ import annotations

from datetime import UTC

import pytest

from collab_tracker.core.errors import NetworkFailure, ValidationFailure, describe
from collab_tracker.core.models import (
    Project,
    Task,
    TaskPriority,
    TaskStatus,
    fields_to_wire,
    parse_ts,
    utc_now_iso,
    validate_fields,
)


def test_task_record_uses_wire_names_and_lenient_enums() -> None:
    task = Task.from_record(
        {
            "id": "t1",
            "title": "Write docs",
            "description": None,
            "projectId": "p1",
            "createdBy": "1",
            "status": "archived",
            "priority": None,
            "createdAt": "2026-01-01T00:00:00Z",
            "assignedTo": "",
        }
    )

    assert task.status == TaskStatus.PENDING
    assert task.priority == TaskPriority.MEDIUM
    assert task.description == ""
    assert task.assigned_to is None

    record = task.to_record()
    assert record["projectId"] == "p1"
    assert record["status"] == "pending"
    assert "project_id" not in record


def test_record_without_required_key_is_rejected() -> None:
    with pytest.raises(ValidationFailure):
        Project.from_record({"id": "p1", "description": "no name"})


def test_fields_to_wire_renames_and_flattens_enums() -> None:
    wire = fields_to_wire({"project_id": "p1", "status": TaskStatus.IN_PROGRESS, "title": "x"})
    assert wire == {"projectId": "p1", "status": "in-progress", "title": "x"}


def test_validate_create_requires_fields_and_coerces_enums() -> None:
    out = validate_fields(
        Task,
        {"title": "T", "project_id": "p1", "created_by": "1", "priority": "high"},
        creating=True,
    )
    assert out["priority"] is TaskPriority.HIGH

    with pytest.raises(ValidationFailure, match="project_id is required"):
        validate_fields(Task, {"title": "T", "created_by": "1"}, creating=True)

    with pytest.raises(ValidationFailure, match="name must not be empty"):
        validate_fields(Project, {"name": "   "}, creating=False)


@pytest.mark.parametrize("key", ["id", "created_at", "created_by"])
def test_validate_update_rejects_immutable_fields(key: str) -> None:
    with pytest.raises(ValidationFailure, match="cannot be changed"):
        validate_fields(Project, {key: "x"}, creating=False)


def test_validate_rejects_unknown_field_and_bad_enum() -> None:
    with pytest.raises(ValidationFailure, match="unknown field"):
        validate_fields(Project, {"color": "red"}, creating=False)
    with pytest.raises(ValidationFailure, match="invalid status"):
        validate_fields(Project, {"status": "paused"}, creating=False)


def test_timestamps_are_utc_iso() -> None:
    stamp = utc_now_iso()
    assert stamp.endswith("Z")
    parsed = parse_ts(stamp)
    assert parsed is not None and parsed.tzinfo is not None

    naive = parse_ts("2026-03-01T10:00:00")
    assert naive is not None and naive.tzinfo == UTC
    assert parse_ts("not a date") is None
    assert parse_ts(None) is None


def test_describe_prefixes_error_kind() -> None:
    assert describe(NetworkFailure("timed out")) == "Remote store unreachable: timed out"
    assert describe(RuntimeError()) == "Unexpected error"
