# src/collab_tracker/storage/change_feed.py

from __future__ import annotations

"""
Change notifications.

A ChangeFeed fans events out to per-table subscriptions. Each Subscription is
an async iterator over an asyncio.Queue and doubles as the cancellation token.

Events carry no payload beyond the record id: a subscriber reacts by
refetching the whole table.

The ChangePoller detects writes made by other clients: it periodically
fetches every watched table, fingerprints the rows and publishes one event
per inserted/updated/deleted record.
"""

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import EntityBackend

logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    record_id: str | None = None


class Subscription:
    def __init__(self, feed: ChangeFeed, table: str) -> None:
        self.table = table
        self._feed = feed
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Unregister from the feed and end iteration. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        self._feed._remove(self)
        self._queue.put_nowait(None)

    def drain(self) -> int:
        """Discard queued events; returns how many were dropped."""
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            if item is None:
                # Keep the end-of-stream marker.
                self._queue.put_nowait(None)
                return dropped
            dropped += 1

    def _deliver(self, event: ChangeEvent) -> None:
        if not self._cancelled:
            self._queue.put_nowait(event)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item


class ChangeFeed:
    def __init__(self) -> None:
        self._subs: dict[str, list[Subscription]] = {}

    def subscribe(self, table: str) -> Subscription:
        sub = Subscription(self, table)
        self._subs.setdefault(table, []).append(sub)
        logger.debug("Subscribed to %s (live=%s)", table, len(self._subs[table]))
        return sub

    def subscriber_count(self, table: str) -> int:
        return len(self._subs.get(table, []))

    def publish(self, event: ChangeEvent) -> None:
        subs = list(self._subs.get(event.table, []))
        logger.debug("Change %s %s id=%s -> %s subscriber(s)", event.table, event.kind, event.record_id, len(subs))
        for sub in subs:
            sub._deliver(event)

    def _remove(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.table)
        if subs and sub in subs:
            subs.remove(sub)


def _fingerprint(rows: list[Any]) -> dict[str, str]:
    out: dict[str, str] = {}
    for row in rows:
        out[str(row.id)] = json.dumps(row.to_record(), sort_keys=True)
    return out


class ChangePoller:
    """
    Polling change detector.

    Every interval_seconds:
    - fetch each watched table
    - diff against the previous fingerprint
    - publish insert/update/delete events to the feed

    Fetch errors are logged and the table is retried next round.
    """

    def __init__(
        self,
        tables: dict[str, EntityBackend],
        feed: ChangeFeed,
        *,
        interval_seconds: float = 15.0,
    ) -> None:
        self._tables = tables
        self._feed = feed
        self._interval = max(0.01, float(interval_seconds))
        self._seen: dict[str, dict[str, str]] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> list[ChangeEvent]:
        events: list[ChangeEvent] = []
        for name, backend in self._tables.items():
            try:
                rows = await backend.get_all()
            except Exception:
                logger.warning("Change poll failed for %s", name, exc_info=True)
                continue

            current = _fingerprint(rows)
            previous = self._seen.get(name)
            self._seen[name] = current
            if previous is None:
                continue

            for rid, fp in current.items():
                if rid not in previous:
                    events.append(ChangeEvent(name, ChangeKind.INSERT, rid))
                elif previous[rid] != fp:
                    events.append(ChangeEvent(name, ChangeKind.UPDATE, rid))
            for rid in previous.keys() - current.keys():
                events.append(ChangeEvent(name, ChangeKind.DELETE, rid))

        for event in events:
            self._feed.publish(event)
        return events

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._seen.clear()
        self._task = asyncio.create_task(self._run(), name="change-poller")
        logger.info("Change poller started interval=%.1fs tables=%s", self._interval, sorted(self._tables))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Change poller stopped")
