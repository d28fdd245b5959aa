# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from collab_tracker.cli.bootstrap import create_initial_state
from collab_tracker.core.auth import Authenticator
from collab_tracker.core.models import User
from collab_tracker.core.state import AppState
from collab_tracker.storage.kv_store import MemoryKeyValueStore
from collab_tracker.storage.local_mirror import LocalMirror

from .fakes import FakePostgrest


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    A SimpleNamespace rather than the real config keeps tests independent of
    the developer's environment and .env file.
    """
    return SimpleNamespace(
        app_name="collab-tracker-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        mirror_db_path=tmp_path / "mirror.sqlite3",
        mirror_key_prefix="task_manager_",
        remote_url="",
        remote_api_key="",
        remote_timeout_seconds=1.0,
        poll_interval_seconds=0.0,
        remote_configured=False,
    )


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def mirror(kv: MemoryKeyValueStore) -> LocalMirror:
    return LocalMirror(kv, key_prefix="task_manager_")


@pytest.fixture()
def server() -> FakePostgrest:
    return FakePostgrest()


@pytest.fixture()
def ravali() -> User:
    user = Authenticator().get_user("1")
    assert user is not None
    return user


@pytest.fixture()
def vinay() -> User:
    user = Authenticator().get_user("2")
    assert user is not None
    return user


@pytest.fixture()
def state(settings: SimpleNamespace, kv: MemoryKeyValueStore) -> AppState:
    """Local-mirror-only AppState over an in-memory key-value store."""
    return create_initial_state(settings=settings, kv=kv)
