# src/collab_tracker/services/data_access.py

"""
Data access services.

One façade per entity. Every operation tries the remote store first and falls
back to the local mirror when the remote call fails. Callers always receive an
OpResult; no exception crosses this boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..core.errors import NotFound, StorageError, ValidationFailure, describe
from ..core.models import Project, ProjectStatus, Task, TaskPriority, TaskStatus, validate_fields
from ..core.ports import EntityBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")
EntityT = TypeVar("EntityT", Project, Task)


@dataclass(slots=True, frozen=True)
class OpResult(Generic[T]):
    """
    Outcome of a façade operation.

    - ok=False: nothing was stored; `error` says why.
    - ok=True, degraded=True: the remote call failed and the local mirror
      served the operation; `error` explains the degradation.
    """

    ok: bool
    value: T | None = None
    degraded: bool = False
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> OpResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> OpResult[T]:
        return cls(ok=False, error=error)


class EntityService(Generic[EntityT]):
    defaults: dict[str, Any] = {}

    def __init__(
        self,
        model: type[EntityT],
        local: EntityBackend,
        remote: EntityBackend | None = None,
    ) -> None:
        self._model = model
        self._local = local
        self._remote = remote
        self._name = model.__name__.lower()

    async def _run(
        self,
        op: str,
        call: Callable[[EntityBackend], Awaitable[Any]],
        *,
        missing_ok: bool = False,
    ) -> OpResult[Any]:
        reason: str | None = None

        if self._remote is not None:
            try:
                return OpResult.success(await call(self._remote))
            except StorageError as e:
                reason = describe(e)
                logger.warning("%s %s: remote failed, using local mirror (%s)", self._name, op, e)
            except Exception as e:
                reason = describe(e)
                logger.exception("%s %s: remote crashed, using local mirror", self._name, op)

        try:
            value = await call(self._local)
        except NotFound as e:
            if missing_ok:
                logger.info("%s %s: %s (skipped)", self._name, op, e)
                value = None
            else:
                return OpResult.failure(describe(e))
        except Exception as e:
            logger.exception("%s %s: local mirror failed", self._name, op)
            head = f"{reason}; " if reason else ""
            return OpResult.failure(f"{head}local mirror failed: {describe(e)}")

        if reason is None:
            return OpResult.success(value)
        return OpResult(ok=True, value=value, degraded=True, error=f"{reason}. Saved to local mirror.")

    async def get_all(self) -> OpResult[list[EntityT]]:
        return await self._run("get_all", lambda b: b.get_all())

    async def create(self, fields: dict[str, Any]) -> OpResult[EntityT]:
        try:
            payload = validate_fields(self._model, {**self.defaults, **fields}, creating=True)
        except ValidationFailure as e:
            return OpResult.failure(describe(e))
        return await self._run("create", lambda b: b.create(payload))

    async def update(self, entity_id: str, fields: dict[str, Any]) -> OpResult[EntityT]:
        try:
            payload = validate_fields(self._model, fields, creating=False)
        except ValidationFailure as e:
            return OpResult.failure(describe(e))
        if not payload:
            return OpResult.failure(f"nothing to update for {self._name} {entity_id}")
        # A record absent from the mirror is skipped, as for delete.
        return await self._run("update", lambda b: b.update(entity_id, payload), missing_ok=True)

    async def delete(self, entity_id: str) -> OpResult[None]:
        return await self._run("delete", lambda b: b.delete(entity_id), missing_ok=True)


class TaskService(EntityService[Task]):
    defaults = {
        "description": "",
        "status": TaskStatus.PENDING,
        "priority": TaskPriority.MEDIUM,
    }

    def __init__(self, local: EntityBackend, remote: EntityBackend | None = None) -> None:
        super().__init__(Task, local, remote)


class ProjectService(EntityService[Project]):
    defaults = {
        "description": "",
        "status": ProjectStatus.ACTIVE,
    }

    def __init__(
        self,
        tasks: TaskService,
        local: EntityBackend,
        remote: EntityBackend | None = None,
    ) -> None:
        super().__init__(Project, local, remote)
        self._tasks = tasks

    async def delete(self, entity_id: str) -> OpResult[None]:
        """
        Delete the project's tasks through the task service, then the project.

        A task that cannot be removed from either backend does not stop the
        project deletion; the failures are reported in `error`.
        """
        listed = await self._tasks.get_all()
        problems: list[str] = []
        degraded = False

        if not listed.ok:
            problems.append(f"could not list tasks: {listed.error}")
        for task in listed.value or []:
            if task.project_id != entity_id:
                continue
            res = await self._tasks.delete(task.id)
            degraded = degraded or res.degraded
            if not res.ok:
                problems.append(f"task {task.id}: {res.error}")

        result = await super().delete(entity_id)
        if not result.ok:
            return result

        errors = [e for e in (result.error, *problems) if e]
        if not errors and not degraded:
            return OpResult.success()
        return OpResult(
            ok=True,
            degraded=result.degraded or degraded,
            error="; ".join(errors) if errors else "Some tasks were removed from the local mirror only.",
        )
