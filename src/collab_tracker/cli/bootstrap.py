# src/collab_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the local mirror, the remote store (only when configured), the
  data-access services and the sync provider into AppState.
"""

from __future__ import annotations

import contextlib
import logging

from ..config import get_settings
from ..core.auth import Authenticator
from ..core.models import PROJECTS_TABLE, TASKS_TABLE, Project, Task
from ..core.ports import KeyValueStore
from ..core.state import AppState
from ..services.data_access import ProjectService, TaskService
from ..storage.change_feed import ChangeFeed, ChangePoller
from ..storage.kv_store import SqliteKeyValueStore
from ..storage.local_mirror import ClientIdGenerator, LocalMirror
from ..storage.remote_store import RemoteStore
from ..tracker.provider import SyncProvider

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.mirror_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_provider(
    mirror: LocalMirror,
    remote: RemoteStore | None = None,
    *,
    poll_interval_seconds: float = 0.0,
) -> SyncProvider:
    """Wire services + provider. Without a remote store everything runs on the mirror."""
    ids = ClientIdGenerator()
    local_tasks = mirror.table(TASKS_TABLE, Task, ids)
    local_projects = mirror.table(PROJECTS_TABLE, Project, ids)

    if remote is None:
        tasks = TaskService(local_tasks)
        return SyncProvider(ProjectService(tasks, local_projects), tasks, mirror)

    remote_tasks = remote.tasks()
    remote_projects = remote.projects()
    tasks = TaskService(local_tasks, remote_tasks)
    projects = ProjectService(tasks, local_projects, remote_projects)

    poller = None
    if poll_interval_seconds > 0:
        poller = ChangePoller(
            {PROJECTS_TABLE: remote_projects, TASKS_TABLE: remote_tasks},
            remote.changes,
            interval_seconds=poll_interval_seconds,
        )
    return SyncProvider(projects, tasks, mirror, changes=remote, poller=poller)


def create_initial_state(*, settings=None, kv: KeyValueStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if kv is None:
        _ensure_local_dirs(settings)
        kv = SqliteKeyValueStore(settings.mirror_db_path)
    mirror = LocalMirror(kv, key_prefix=settings.mirror_key_prefix)

    remote: RemoteStore | None = None
    if settings.remote_configured:
        remote = RemoteStore(
            settings.remote_url,
            settings.remote_api_key,
            timeout_seconds=settings.remote_timeout_seconds,
            changes=ChangeFeed(),
        )
        logger.info("Remote store configured url=%s", settings.remote_url)
    else:
        logger.warning(
            "Remote store not configured; using the local mirror only. "
            "Set TRACKER_REMOTE_URL and TRACKER_REMOTE_API_KEY to enable it."
        )

    provider = build_provider(mirror, remote, poll_interval_seconds=settings.poll_interval_seconds)
    return AppState(settings=settings, auth=Authenticator(), provider=provider, kv=kv, remote=remote)


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.provider.close()
    except Exception:
        logger.exception("Failed to close the tracker session.")
    state.auth.logout()

    if state.remote is not None:
        try:
            await state.remote.aclose()
        except Exception:
            logger.debug("Remote client close failed.", exc_info=True)

    with contextlib.suppress(Exception):
        close = getattr(state.kv, "close", None)
        if close is not None:
            close()
