# src/collab_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Services and the provider depend on Protocols instead of concrete stores.
Both persistence backends implement the same EntityBackend capability, so the
data-access façade composes them without shape checks.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..storage.change_feed import Subscription


class EntityBackend(Protocol):
    """CRUD over one entity collection. Field names are model attribute names."""

    async def get_all(self) -> list[Any]: ...
    async def create(self, fields: dict[str, Any]) -> Any: ...
    async def update(self, entity_id: str, fields: dict[str, Any]) -> Any: ...
    async def delete(self, entity_id: str) -> None: ...


class KeyValueStore(Protocol):
    """Synchronous string-keyed store (the local mirror's medium)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class ChangeSource(Protocol):
    """Push-based change notifications, one channel per table."""

    def subscribe(self, table: str) -> Subscription: ...
