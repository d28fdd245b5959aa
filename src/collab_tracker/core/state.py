# src/collab_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..storage.remote_store import RemoteStore
from ..tracker.provider import SyncProvider
from .auth import Authenticator
from .ports import KeyValueStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    auth: Authenticator
    provider: SyncProvider
    kv: KeyValueStore
    remote: RemoteStore | None = None
