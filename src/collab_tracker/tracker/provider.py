# src/collab_tracker/tracker/provider.py

"""
State synchronization provider.

Holds the in-memory snapshot of projects and tasks for the logged-in session
and mediates between the UI, the data-access services and the local mirror.

Rules:
- The snapshot is changed only after a backend call has resolved.
- A failed call sets `error` and leaves the snapshot untouched.
- A change notification triggers a full refetch of that table; the result
  replaces the collection (last write wins).
- Once bootstrap is done, every collection change is mirrored locally.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..core.errors import StorageError, ValidationFailure, describe
from ..core.models import PROJECTS_TABLE, TASKS_TABLE, Project, ProjectStatus, Task, TaskPriority, TaskStatus, User
from ..core.ports import ChangeSource
from ..services.data_access import OpResult, ProjectService, TaskService
from ..storage.change_feed import ChangePoller, Subscription
from ..storage.local_mirror import LocalMirror
from .lifecycle import assign_patch, check_generic_update, complete_patch, start_patch

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Project, Task)


@dataclass(slots=True)
class TrackerSession:
    """Everything that lives between login and logout."""

    user: User
    projects: list[Project] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    loading: bool = True
    error: str | None = None
    bootstrapped: bool = False
    subscriptions: list[Subscription] = field(default_factory=list)
    consumers: list[asyncio.Task[None]] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class Snapshot:
    projects: tuple[Project, ...] = ()
    tasks: tuple[Task, ...] = ()
    loading: bool = False
    error: str | None = None


def _upsert(items: list[EntityT], entity: EntityT) -> list[EntityT]:
    """Replace by id in place; unknown ids go to the front (newest first)."""
    out = list(items)
    for idx, item in enumerate(out):
        if item.id == entity.id:
            out[idx] = entity
            return out
    return [entity, *out]


class SyncProvider:
    def __init__(
        self,
        projects: ProjectService,
        tasks: TaskService,
        mirror: LocalMirror,
        *,
        changes: ChangeSource | None = None,
        poller: ChangePoller | None = None,
    ) -> None:
        self._project_service = projects
        self._task_service = tasks
        self._mirror = mirror
        self._changes = changes
        self._poller = poller
        self._session: TrackerSession | None = None
        self._version = 0

    # ---- read surface ----

    @property
    def session(self) -> TrackerSession | None:
        return self._session

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def projects(self) -> list[Project]:
        return list(self._session.projects) if self._session else []

    @property
    def tasks(self) -> list[Task]:
        return list(self._session.tasks) if self._session else []

    @property
    def loading(self) -> bool:
        return self._session.loading if self._session else False

    @property
    def error(self) -> str | None:
        return self._session.error if self._session else None

    @property
    def version(self) -> int:
        """Bumped on every snapshot change; cheap re-render check for UIs."""
        return self._version

    def snapshot(self) -> Snapshot:
        s = self._session
        if s is None:
            return Snapshot()
        return Snapshot(tuple(s.projects), tuple(s.tasks), s.loading, s.error)

    def find_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def tasks_for_project(self, project_id: str) -> list[Task]:
        return [t for t in self.tasks if t.project_id == project_id]

    def clear_error(self) -> None:
        if self._session is not None:
            self._session.error = None

    # ---- session lifecycle ----

    async def open(self, user: User) -> TrackerSession:
        """Start a session for `user`: subscribe, start polling, then load everything."""
        if self._session is not None:
            await self.close()

        session = TrackerSession(user=user)
        self._session = session
        self._version += 1
        logger.info("Session opened user=%s", user.id)

        self._subscribe(session)
        if self._poller is not None:
            self._poller.start()

        await self._bootstrap(session)
        return session

    async def close(self) -> None:
        """Tear down the session: cancel subscriptions, stop polling, clear collections."""
        session, self._session = self._session, None
        if session is None:
            return

        for sub in session.subscriptions:
            sub.cancel()
        for task in session.consumers:
            task.cancel()
        for task in session.consumers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        session.subscriptions.clear()
        session.consumers.clear()

        if self._poller is not None:
            await self._poller.stop()

        session.projects = []
        session.tasks = []
        session.loading = False
        self._version += 1
        logger.info("Session closed user=%s", session.user.id)

    async def refresh(self) -> None:
        """Refetch both collections (same path as a change notification)."""
        session = self._session
        if session is None:
            return
        await asyncio.gather(self._refresh(session, PROJECTS_TABLE), self._refresh(session, TASKS_TABLE))

    async def _bootstrap(self, session: TrackerSession) -> None:
        p_res, t_res = await asyncio.gather(
            self._project_service.get_all(),
            self._task_service.get_all(),
        )
        if self._session is not session:
            return

        projects = self._loaded(session, p_res, self._mirror.read_projects, PROJECTS_TABLE)
        tasks = self._loaded(session, t_res, self._mirror.read_tasks, TASKS_TABLE)

        session.loading = False
        session.bootstrapped = True
        # An unreadable snapshot is left on disk rather than overwritten with [].
        self._set_projects(session, projects or [], backup=projects is not None)
        self._set_tasks(session, tasks or [], backup=tasks is not None)
        logger.info("Bootstrap done projects=%s tasks=%s", len(projects or []), len(tasks or []))

    def _loaded(
        self,
        session: TrackerSession,
        result: OpResult[Any],
        read_mirror: Callable[[], list[Any]],
        table: str,
    ) -> list[Any] | None:
        """Rows from the service result, else from the mirror; None when the mirror is unreadable too."""
        if result.ok:
            if result.degraded:
                session.error = result.error
            return list(result.value or [])

        session.error = result.error
        logger.warning("Loading %s failed (%s); reading local mirror directly", table, result.error)
        try:
            return read_mirror()
        except StorageError:
            logger.exception("Local mirror read of %s failed", table)
            return None

    def _subscribe(self, session: TrackerSession) -> None:
        if self._changes is None:
            return
        for table in (PROJECTS_TABLE, TASKS_TABLE):
            sub = self._changes.subscribe(table)
            session.subscriptions.append(sub)
            session.consumers.append(
                asyncio.create_task(self._consume(session, sub), name=f"changes-{table}")
            )

    async def _consume(self, session: TrackerSession, sub: Subscription) -> None:
        async for event in sub:
            dropped = sub.drain()
            logger.debug("Change on %s (%s id=%s, +%s coalesced)", sub.table, event.kind, event.record_id, dropped)
            if self._session is not session:
                break
            try:
                await self._refresh(session, sub.table)
            except Exception:
                logger.exception("Refresh of %s after change notification failed", sub.table)

    async def _refresh(self, session: TrackerSession, table: str) -> None:
        service = self._project_service if table == PROJECTS_TABLE else self._task_service
        res = await service.get_all()
        if self._session is not session:
            return
        if not res.ok:
            session.error = res.error
            return
        if res.degraded:
            session.error = res.error
        if table == PROJECTS_TABLE:
            self._set_projects(session, list(res.value or []))
        else:
            self._set_tasks(session, list(res.value or []))

    # ---- snapshot writes ----

    def _set_projects(self, session: TrackerSession, projects: list[Project], *, backup: bool = True) -> None:
        session.projects = projects
        self._version += 1
        if backup and session.bootstrapped:
            self._backup(self._mirror.write_projects, projects, PROJECTS_TABLE)

    def _set_tasks(self, session: TrackerSession, tasks: list[Task], *, backup: bool = True) -> None:
        session.tasks = tasks
        self._version += 1
        if backup and session.bootstrapped:
            self._backup(self._mirror.write_tasks, tasks, TASKS_TABLE)

    @staticmethod
    def _backup(write: Callable[[list[Any]], None], items: list[Any], table: str) -> None:
        try:
            write(items)
        except StorageError:
            logger.warning("Local mirror backup of %s failed", table, exc_info=True)

    # ---- mutations ----

    def _active(self, action: str) -> TrackerSession | None:
        if self._session is None:
            logger.warning("%s ignored: nobody is logged in", action)
        return self._session

    def _denied(self, session: TrackerSession, created_by: str, what: str) -> bool:
        """Edit and delete are reserved to the creator; start/complete/assign are not."""
        if created_by == session.user.id:
            return False
        session.error = f"Only the creator can change {what}"
        logger.warning("User %s may not change %s (created by %s)", session.user.id, what, created_by)
        return True

    def _accept(self, session: TrackerSession, result: OpResult[Any], action: str) -> bool:
        if self._session is not session:
            logger.info("%s resolved after logout; result discarded", action)
            return False
        if not result.ok:
            session.error = result.error or f"{action} failed"
            logger.warning("%s failed: %s", action, session.error)
            return False
        if result.degraded:
            session.error = result.error
        return True

    async def add_project(
        self,
        *,
        name: str,
        description: str = "",
        status: ProjectStatus | str = ProjectStatus.ACTIVE,
    ) -> Project | None:
        session = self._active("add_project")
        if session is None:
            return None
        res = await self._project_service.create(
            {"name": name, "description": description, "status": status, "created_by": session.user.id}
        )
        if not self._accept(session, res, "add_project") or res.value is None:
            return None
        project = res.value
        self._set_projects(session, [project, *(p for p in session.projects if p.id != project.id)])
        return project

    async def update_project(self, project_id: str, updates: Mapping[str, Any]) -> Project | None:
        session = self._active("update_project")
        if session is None:
            return None
        project = self.find_project(project_id)
        if project is not None and self._denied(session, project.created_by, f"project {project_id}"):
            return None
        res = await self._project_service.update(project_id, dict(updates))
        if not self._accept(session, res, "update_project") or res.value is None:
            return None
        self._set_projects(session, _upsert(session.projects, res.value))
        return res.value

    async def delete_project(self, project_id: str) -> bool:
        session = self._active("delete_project")
        if session is None:
            return False
        project = self.find_project(project_id)
        if project is not None and self._denied(session, project.created_by, f"project {project_id}"):
            return False
        res = await self._project_service.delete(project_id)
        if not self._accept(session, res, "delete_project"):
            return False
        self._set_projects(session, [p for p in session.projects if p.id != project_id])
        self._set_tasks(session, [t for t in session.tasks if t.project_id != project_id])
        return True

    async def add_task(
        self,
        *,
        title: str,
        project_id: str,
        description: str = "",
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        due_date: str | None = None,
        assigned_to: str | None = None,
    ) -> Task | None:
        session = self._active("add_task")
        if session is None:
            return None
        if all(p.id != project_id for p in session.projects):
            session.error = f"Record not found: project {project_id}"
            return None
        res = await self._task_service.create(
            {
                "title": title,
                "description": description,
                "project_id": project_id,
                "priority": priority,
                "due_date": due_date,
                "assigned_to": assigned_to,
                "status": TaskStatus.PENDING,
                "created_by": session.user.id,
            }
        )
        if not self._accept(session, res, "add_task") or res.value is None:
            return None
        task = res.value
        self._set_tasks(session, [task, *(t for t in session.tasks if t.id != task.id)])
        return task

    async def update_task(self, task_id: str, updates: Mapping[str, Any]) -> Task | None:
        session = self._active("update_task")
        if session is None:
            return None
        task = self.find_task(task_id)
        if task is not None and self._denied(session, task.created_by, f"task {task_id}"):
            return None
        try:
            check_generic_update(updates)
        except ValidationFailure as e:
            session.error = describe(e)
            return None
        return await self._patch_task(session, task_id, dict(updates), "update_task")

    async def delete_task(self, task_id: str) -> bool:
        session = self._active("delete_task")
        if session is None:
            return False
        task = self.find_task(task_id)
        if task is not None and self._denied(session, task.created_by, f"task {task_id}"):
            return False
        res = await self._task_service.delete(task_id)
        if not self._accept(session, res, "delete_task"):
            return False
        self._set_tasks(session, [t for t in session.tasks if t.id != task_id])
        return True

    async def start_task(self, task_id: str, user_id: str) -> Task | None:
        """pending -> in-progress. A task in any other status is left alone (returns None)."""
        return await self._transition(task_id, "start_task", lambda t: start_patch(t, user_id))

    async def complete_task(self, task_id: str, user_id: str) -> Task | None:
        """in-progress -> completed. A task in any other status is left alone (returns None)."""
        return await self._transition(task_id, "complete_task", lambda t: complete_patch(t, user_id))

    async def assign_task(self, task_id: str, assigned_user_id: str) -> Task | None:
        return await self._transition(task_id, "assign_task", lambda _t: assign_patch(assigned_user_id))

    async def _transition(
        self,
        task_id: str,
        action: str,
        build: Callable[[Task], dict[str, Any] | None],
    ) -> Task | None:
        session = self._active(action)
        if session is None:
            return None
        task = next((t for t in session.tasks if t.id == task_id), None)
        if task is None:
            session.error = f"Record not found: task {task_id}"
            return None
        patch = build(task)
        if patch is None:
            logger.info("%s %s ignored: status is %s", action, task_id, task.status)
            return None
        return await self._patch_task(session, task_id, patch, action)

    async def _patch_task(
        self,
        session: TrackerSession,
        task_id: str,
        patch: dict[str, Any],
        action: str,
    ) -> Task | None:
        res = await self._task_service.update(task_id, patch)
        if not self._accept(session, res, action) or res.value is None:
            return None
        self._set_tasks(session, _upsert(session.tasks, res.value))
        return res.value

