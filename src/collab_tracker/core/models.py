# src/collab_tracker/core/models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from .errors import ValidationFailure

PROJECTS_TABLE = "projects"
TASKS_TABLE = "tasks"

# Python attribute -> wire column. Shared by the remote tables and the mirror JSON.
_WIRE_NAMES: dict[str, str] = {
    "created_by": "createdBy",
    "created_at": "createdAt",
    "project_id": "projectId",
    "assigned_to": "assignedTo",
    "started_by": "startedBy",
    "started_at": "startedAt",
    "completed_by": "completedBy",
    "completed_at": "completedAt",
    "due_date": "dueDate",
}

IMMUTABLE_FIELDS = frozenset({"id", "created_at", "created_by"})


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_ts(raw: str | None) -> datetime | None:
    """Parse an ISO timestamp (with or without 'Z'); naive values are taken as UTC."""
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _opt(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"

    @classmethod
    def from_db(cls, raw: str | None) -> ProjectStatus:
        if not raw:
            return cls.ACTIVE
        try:
            return cls(raw)
        except ValueError:
            return cls.ACTIVE


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Transitions only move forward: pending -> in-progress -> completed.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


@dataclass(slots=True)
class User:
    id: str
    username: str
    display_name: str
    password_secret: str
    created_at: str


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    project_id: str
    created_by: str
    status: TaskStatus
    priority: TaskPriority
    created_at: str

    assigned_to: str | None = None
    started_by: str | None = None
    started_at: str | None = None
    completed_by: str | None = None
    completed_at: str | None = None
    due_date: str | None = None

    EDITABLE: ClassVar[frozenset[str]] = frozenset(
        {
            "title",
            "description",
            "project_id",
            "priority",
            "due_date",
            "assigned_to",
            "status",
            "started_by",
            "started_at",
            "completed_by",
            "completed_at",
        }
    )
    REQUIRED: ClassVar[tuple[str, ...]] = ("title", "project_id", "created_by")
    ENUMS: ClassVar[dict[str, type[StrEnum]]] = {"status": TaskStatus, "priority": TaskPriority}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Task:
        try:
            return cls(
                id=str(record["id"]),
                title=str(record["title"]),
                description=str(record.get("description") or ""),
                project_id=str(record.get("projectId") or ""),
                created_by=str(record.get("createdBy") or ""),
                status=TaskStatus.from_db(record.get("status")),
                priority=TaskPriority.from_db(record.get("priority")),
                created_at=str(record.get("createdAt") or ""),
                assigned_to=_opt(record.get("assignedTo")),
                started_by=_opt(record.get("startedBy")),
                started_at=_opt(record.get("startedAt")),
                completed_by=_opt(record.get("completedBy")),
                completed_at=_opt(record.get("completedAt")),
                due_date=_opt(record.get("dueDate")),
            )
        except KeyError as e:
            raise ValidationFailure(f"task record is missing {e.args[0]!r}") from e

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "projectId": self.project_id,
            "createdBy": self.created_by,
            "assignedTo": self.assigned_to,
            "startedBy": self.started_by,
            "completedBy": self.completed_by,
            "createdAt": self.created_at,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "status": str(self.status),
            "priority": str(self.priority),
            "dueDate": self.due_date,
        }


@dataclass(slots=True)
class Project:
    id: str
    name: str
    description: str
    status: ProjectStatus
    created_by: str
    created_at: str
    # Derived for the UI; never stored.
    tasks: list[Task] = field(default_factory=list, compare=False)

    EDITABLE: ClassVar[frozenset[str]] = frozenset({"name", "description", "status"})
    REQUIRED: ClassVar[tuple[str, ...]] = ("name", "created_by")
    ENUMS: ClassVar[dict[str, type[StrEnum]]] = {"status": ProjectStatus}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Project:
        try:
            return cls(
                id=str(record["id"]),
                name=str(record["name"]),
                description=str(record.get("description") or ""),
                status=ProjectStatus.from_db(record.get("status")),
                created_by=str(record.get("createdBy") or ""),
                created_at=str(record.get("createdAt") or ""),
            )
        except KeyError as e:
            raise ValidationFailure(f"project record is missing {e.args[0]!r}") from e

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "status": str(self.status),
        }


Entity = Project | Task


def fields_to_wire(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a partial-field mapping (attribute names) to wire column names."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        out[_WIRE_NAMES.get(key, key)] = str(value) if isinstance(value, StrEnum) else value
    return out


def validate_fields(
    model: type[Project] | type[Task],
    fields: Mapping[str, Any],
    *,
    creating: bool,
) -> dict[str, Any]:
    """
    Check a create payload or a partial update for `model`.

    Returns a copy with enum values coerced. Raises ValidationFailure on
    unknown keys, immutable keys, missing/blank required keys or bad enum values.
    """
    allowed = model.EDITABLE | ({"created_by"} if creating else frozenset())
    for key in fields:
        if key in allowed:
            continue
        if key in IMMUTABLE_FIELDS:
            raise ValidationFailure(f"{key} cannot be changed")
        raise ValidationFailure(f"unknown field {key!r} for {model.__name__.lower()}")

    out = dict(fields)

    if creating:
        for key in model.REQUIRED:
            value = out.get(key)
            if value is None or not str(value).strip():
                raise ValidationFailure(f"{key} is required")

    for key in ("name", "title"):
        if key in out and (out[key] is None or not str(out[key]).strip()):
            raise ValidationFailure(f"{key} must not be empty")

    for key, enum_cls in model.ENUMS.items():
        if key not in out:
            continue
        try:
            out[key] = enum_cls(out[key])
        except ValueError as e:
            raise ValidationFailure(f"invalid {key}: {out[key]!r}") from e

    return out
