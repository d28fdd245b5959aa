# src/collab_tracker/storage/local_mirror.py

"""
Local mirror.

Whole-collection JSON snapshots of projects and tasks kept in a synchronous
key-value store. There is no per-record addressing: every write rewrites the
full collection under its fixed key.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

from ..core.errors import NotFound, StorageError, ValidationFailure
from ..core.models import PROJECTS_TABLE, TASKS_TABLE, Project, Task, utc_now_iso
from ..core.ports import KeyValueStore

logger = logging.getLogger(__name__)

PROJECTS_KEY = "shared_projects"
TASKS_KEY = "shared_tasks"

EntityT = TypeVar("EntityT", Project, Task)


class ClientIdGenerator:
    """
    Millisecond-timestamp ids, strictly increasing within the process.

    Two ids requested in the same millisecond still differ.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def next_id(self) -> str:
        now_ms = int(self._clock() * 1000)
        self._last = max(now_ms, self._last + 1)
        return str(self._last)


class LocalMirror:
    def __init__(self, kv: KeyValueStore, *, key_prefix: str = "") -> None:
        self._kv = kv
        self._prefix = key_prefix

    def key_for(self, table: str) -> str:
        if table == PROJECTS_TABLE:
            return f"{self._prefix}{PROJECTS_KEY}"
        if table == TASKS_TABLE:
            return f"{self._prefix}{TASKS_KEY}"
        raise ValueError(f"unknown table {table!r}")

    def _read_records(self, table: str) -> list[dict[str, Any]]:
        key = self.key_for(table)
        raw = self._kv.get(key)
        if raw is None or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"mirror snapshot {key!r} is not valid JSON") from e
        if not isinstance(data, list):
            raise StorageError(f"mirror snapshot {key!r} is not a list")
        return [r for r in data if isinstance(r, dict)]

    def _write_records(self, table: str, records: list[dict[str, Any]]) -> None:
        self._kv.set(self.key_for(table), json.dumps(records, ensure_ascii=False))

    def load(self, table: str, model: type[EntityT]) -> list[EntityT]:
        out: list[EntityT] = []
        for record in self._read_records(table):
            try:
                out.append(model.from_record(record))
            except ValidationFailure:
                logger.warning("Skipping undecodable %s record in mirror: %r", table, record.get("id"))
        return out

    def save(self, table: str, items: list[EntityT]) -> None:
        self._write_records(table, [item.to_record() for item in items])
        logger.debug("Mirror saved %s count=%s", table, len(items))

    def read_projects(self) -> list[Project]:
        return self.load(PROJECTS_TABLE, Project)

    def write_projects(self, projects: list[Project]) -> None:
        self.save(PROJECTS_TABLE, projects)

    def read_tasks(self) -> list[Task]:
        return self.load(TASKS_TABLE, Task)

    def write_tasks(self, tasks: list[Task]) -> None:
        self.save(TASKS_TABLE, tasks)

    def table(self, table: str, model: type[EntityT], ids: ClientIdGenerator) -> LocalTable[EntityT]:
        return LocalTable(self, table, model, ids)


class LocalTable(Generic[EntityT]):
    """EntityBackend over one mirror collection."""

    def __init__(
        self,
        mirror: LocalMirror,
        table: str,
        model: type[EntityT],
        ids: ClientIdGenerator,
    ) -> None:
        self._mirror = mirror
        self._table = table
        self._model = model
        self._ids = ids

    @property
    def table(self) -> str:
        return self._table

    async def get_all(self) -> list[EntityT]:
        return self._mirror.load(self._table, self._model)

    async def create(self, fields: dict[str, Any]) -> EntityT:
        items = self._mirror.load(self._table, self._model)
        entity = self._model(id=self._ids.next_id(), created_at=utc_now_iso(), **fields)
        items.insert(0, entity)
        self._mirror.save(self._table, items)
        logger.info("Mirror %s created id=%s", self._table, entity.id)
        return entity

    async def update(self, entity_id: str, fields: dict[str, Any]) -> EntityT:
        items = self._mirror.load(self._table, self._model)
        for idx, item in enumerate(items):
            if item.id == entity_id:
                merged = replace(item, **fields)
                items[idx] = merged
                self._mirror.save(self._table, items)
                return merged
        raise NotFound(f"{self._table} {entity_id} is not in the local mirror")

    async def delete(self, entity_id: str) -> None:
        items = self._mirror.load(self._table, self._model)
        kept = [item for item in items if item.id != entity_id]
        if len(kept) == len(items):
            raise NotFound(f"{self._table} {entity_id} is not in the local mirror")
        self._mirror.save(self._table, kept)
