# tests/fakes.py

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from collab_tracker.core.errors import NetworkFailure, StorageError
from collab_tracker.storage.change_feed import ChangeFeed
from collab_tracker.storage.remote_store import RemoteStore

REMOTE_URL = "http://remote.test"

_DEFAULTS: dict[str, dict[str, Any]] = {
    "projects": {"description": None, "status": "active"},
    "tasks": {
        "description": None,
        "assignedTo": None,
        "startedBy": None,
        "completedBy": None,
        "startedAt": None,
        "completedAt": None,
        "status": "pending",
        "priority": "medium",
        "dueDate": None,
    },
}


class FakePostgrest:
    """
    In-memory PostgREST server for httpx.MockTransport.

    Supports what RemoteStore uses: select with createdAt ordering, insert with
    return=representation, PATCH/DELETE filtered by id=eq.<id>, the
    tasks.projectId foreign key (409) and cascading project deletes.

    Switches:
    - offline: every request raises httpx.ConnectError
    - fail_status: every request answers with this HTTP status
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"projects": [], "tasks": []}
        self.offline = False
        self.fail_status: int | None = None
        self.requests: list[tuple[str, str]] = []
        self._seq = 0

    def _next_created_at(self) -> str:
        self._seq += 1
        ts = datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=self._seq)
        return ts.isoformat()

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Server-side insert (also used by tests to play 'another client')."""
        full = {**_DEFAULTS[table], **row}
        full.setdefault("id", str(uuid.uuid4()))
        full["createdAt"] = full.get("createdAt") or self._next_created_at()
        self.tables[table].append(full)
        return full

    def handler(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        self.requests.append((request.method, table))

        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"code": "XX000", "message": "forced failure"})
        if request.headers.get("apikey") != "test-key":
            return httpx.Response(401, json={"message": "Invalid API key"})
        if table not in self.tables:
            return httpx.Response(404, json={"code": "PGRST205", "message": f"Could not find the table {table}"})

        rows = self.tables[table]
        id_filter = request.url.params.get("id")
        wanted = id_filter[3:] if id_filter and id_filter.startswith("eq.") else None

        if request.method == "GET":
            ordered = sorted(rows, key=lambda r: r["createdAt"], reverse=True)
            return httpx.Response(200, json=ordered)

        if request.method == "POST":
            payload = json.loads(request.content)
            created = []
            for item in payload:
                if table == "tasks" and not any(p["id"] == item.get("projectId") for p in self.tables["projects"]):
                    return httpx.Response(
                        409,
                        json={"code": "23503", "message": "insert or update on table \"tasks\" violates foreign key"},
                    )
                created.append(self.insert(table, {k: v for k, v in item.items() if k not in ("id", "createdAt")}))
            return httpx.Response(201, json=created)

        if request.method == "PATCH":
            payload = json.loads(request.content)
            matched = [r for r in rows if r["id"] == wanted]
            for r in matched:
                r.update(payload)
            return httpx.Response(200, json=matched)

        if request.method == "DELETE":
            self.tables[table] = [r for r in rows if r["id"] != wanted]
            if table == "projects":
                self.tables["tasks"] = [t for t in self.tables["tasks"] if t["projectId"] != wanted]
            return httpx.Response(204)

        return httpx.Response(405)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_remote(fake: FakePostgrest, *, api_key: str = "test-key", base_url: str = REMOTE_URL) -> RemoteStore:
    return RemoteStore(
        base_url,
        api_key,
        client=httpx.AsyncClient(transport=fake.transport()),
        changes=ChangeFeed(),
    )


class FailingBackend:
    """EntityBackend whose every call raises `exc`."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or NetworkFailure("backend down")
        self.calls: list[str] = []

    async def get_all(self) -> list[Any]:
        self.calls.append("get_all")
        raise self.exc

    async def create(self, fields: dict[str, Any]) -> Any:
        self.calls.append("create")
        raise self.exc

    async def update(self, entity_id: str, fields: dict[str, Any]) -> Any:
        self.calls.append("update")
        raise self.exc

    async def delete(self, entity_id: str) -> None:
        self.calls.append("delete")
        raise self.exc


class BrokenKeyValueStore:
    """KeyValueStore that fails on every access."""

    def get(self, key: str) -> str | None:
        raise StorageError("disk unavailable")

    def set(self, key: str, value: str) -> None:
        raise StorageError("disk unavailable")

    def remove(self, key: str) -> None:
        raise StorageError("disk unavailable")


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
