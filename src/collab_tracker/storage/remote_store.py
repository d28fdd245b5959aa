# src/collab_tracker/storage/remote_store.py

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

import httpx

from ..core.errors import ConfigurationFailure, NetworkFailure, NotFound, StorageError, ValidationFailure
from ..core.models import PROJECTS_TABLE, TASKS_TABLE, Project, Task, fields_to_wire
from .change_feed import ChangeEvent, ChangeFeed, ChangeKind, Subscription

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Project, Task)

# Operator-facing DDL for the hosted backend (run once in its SQL editor).
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS projects (
  id UUID DEFAULT gen_random_uuid() PRIMARY KEY,
  name TEXT NOT NULL,
  description TEXT,
  "createdBy" TEXT NOT NULL,
  "createdAt" TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
  status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed', 'on-hold'))
);

CREATE TABLE IF NOT EXISTS tasks (
  id UUID DEFAULT gen_random_uuid() PRIMARY KEY,
  title TEXT NOT NULL,
  description TEXT,
  "projectId" UUID REFERENCES projects(id) ON DELETE CASCADE,
  "createdBy" TEXT NOT NULL,
  "assignedTo" TEXT,
  "startedBy" TEXT,
  "completedBy" TEXT,
  "createdAt" TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
  "startedAt" TIMESTAMP WITH TIME ZONE,
  "completedAt" TIMESTAMP WITH TIME ZONE,
  status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'in-progress', 'completed')),
  priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
  "dueDate" TIMESTAMP WITH TIME ZONE
);

-- Shared collaboration: every authenticated caller may read and write every row.
ALTER TABLE projects ENABLE ROW LEVEL SECURITY;
ALTER TABLE tasks ENABLE ROW LEVEL SECURITY;
CREATE POLICY "Allow all operations for everyone" ON projects FOR ALL USING (true) WITH CHECK (true);
CREATE POLICY "Allow all operations for everyone" ON tasks FOR ALL USING (true) WITH CHECK (true);

CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects("createdAt" DESC);
CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks("createdAt" DESC);
CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks("projectId");
"""


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("hint") or body.get("code") or body)
    return str(body)[:200]


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    code = resp.status_code
    if code < 400:
        return
    detail = f"{what}: HTTP {code} {_error_detail(resp)}"
    if code in (400, 409, 422):
        raise ValidationFailure(detail)
    if code in (401, 403, 404):
        raise ConfigurationFailure(detail)
    raise NetworkFailure(detail)


class RemoteStore:
    """
    Client for the hosted relational backend (PostgREST / Supabase REST API).

    IMPORTANT:
    - No secrets required at construction: an unconfigured store raises
      ConfigurationFailure on every call without touching the network.
    - Successful mutations are echoed to the change feed.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
        changes: ChangeFeed | None = None,
    ) -> None:
        self._base_url = (base_url or "").strip().rstrip("/")
        self._api_key = (api_key or "").strip()
        self._changes = changes if changes is not None else ChangeFeed()
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )

    @property
    def is_configured(self) -> bool:
        return self._base_url.startswith(("http://", "https://")) and bool(self._api_key)

    @property
    def changes(self) -> ChangeFeed:
        return self._changes

    def subscribe(self, table: str) -> Subscription:
        return self._changes.subscribe(table)

    def projects(self) -> RemoteTable[Project]:
        return RemoteTable(self, PROJECTS_TABLE, Project)

    def tasks(self) -> RemoteTable[Task]:
        return RemoteTable(self, TASKS_TABLE, Task)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one request to /rest/v1/<table> and return the decoded body (None when empty)."""
        if not self.is_configured:
            raise ConfigurationFailure("remote URL or API key is not set")

        what = f"{method} {table}"
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}/rest/v1/{table}",
                params=params,
                json=json_body,
                headers=self._headers(prefer=prefer),
            )
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{what}: timed out") from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"{what}: {e.__class__.__name__} {e}") from e

        _raise_for_status(resp, what)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkFailure(f"{what}: response is not JSON") from e

    def notify(self, table: str, kind: ChangeKind, record_id: str | None) -> None:
        self._changes.publish(ChangeEvent(table, kind, record_id))

    async def check_connection(self) -> bool:
        """Probe the projects table; never raises."""
        try:
            await self.request("GET", PROJECTS_TABLE, params={"select": "id", "limit": "1"})
        except StorageError as e:
            logger.warning("Remote store connection failed: %s", e)
            return False
        logger.info("Remote store connection ok url=%s", self._base_url)
        return True


class RemoteTable(Generic[EntityT]):
    """EntityBackend over one remote table."""

    def __init__(self, store: RemoteStore, table: str, model: type[EntityT]) -> None:
        self._store = store
        self._table = table
        self._model = model

    @property
    def table(self) -> str:
        return self._table

    def _rows(self, body: Any, what: str) -> list[dict[str, Any]]:
        if body is None:
            return []
        if not isinstance(body, list):
            raise NetworkFailure(f"{what} {self._table}: expected a JSON array")
        return [r for r in body if isinstance(r, dict)]

    async def get_all(self) -> list[EntityT]:
        body = await self._store.request("GET", self._table, params={"select": "*", "order": "createdAt.desc"})
        return [self._model.from_record(r) for r in self._rows(body, "select")]

    async def create(self, fields: dict[str, Any]) -> EntityT:
        body = await self._store.request(
            "POST",
            self._table,
            params={"select": "*"},
            json_body=[fields_to_wire(fields)],
            prefer="return=representation",
        )
        rows = self._rows(body, "insert")
        if not rows:
            raise NetworkFailure(f"insert {self._table}: server returned no row")
        entity = self._model.from_record(rows[0])
        logger.debug("Remote %s created id=%s", self._table, entity.id)
        self._store.notify(self._table, ChangeKind.INSERT, entity.id)
        return entity

    async def update(self, entity_id: str, fields: dict[str, Any]) -> EntityT:
        body = await self._store.request(
            "PATCH",
            self._table,
            params={"id": f"eq.{entity_id}", "select": "*"},
            json_body=fields_to_wire(fields),
            prefer="return=representation",
        )
        rows = self._rows(body, "update")
        if not rows:
            raise NotFound(f"{self._table} {entity_id} does not exist remotely")
        entity = self._model.from_record(rows[0])
        self._store.notify(self._table, ChangeKind.UPDATE, entity.id)
        return entity

    async def delete(self, entity_id: str) -> None:
        # Deleting a missing id is not an error.
        await self._store.request(
            "DELETE",
            self._table,
            params={"id": f"eq.{entity_id}"},
            prefer="return=minimal",
        )
        self._store.notify(self._table, ChangeKind.DELETE, entity_id)
