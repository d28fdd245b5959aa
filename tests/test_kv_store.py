# tests/test_kv_store.py

from __future__ import annotations

from pathlib import Path

from collab_tracker.storage.kv_store import MemoryKeyValueStore, SqliteKeyValueStore


def test_sqlite_store_set_get_overwrite_remove(tmp_path: Path) -> None:
    store = SqliteKeyValueStore(tmp_path / "kv.sqlite3")

    assert store.get("missing") is None

    store.set("a", "1")
    store.set("a", "2")
    store.set("b", "[]")
    assert store.get("a") == "2"
    assert store.keys() == ["a", "b"]

    store.remove("a")
    store.remove("a")
    assert store.get("a") is None


def test_sqlite_store_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "kv.sqlite3"
    SqliteKeyValueStore(path).set("task_manager_shared_projects", '[{"id": "1"}]')

    reopened = SqliteKeyValueStore(path)
    assert reopened.get("task_manager_shared_projects") == '[{"id": "1"}]'


def test_memory_store_copies_initial_data() -> None:
    initial = {"k": "v"}
    store = MemoryKeyValueStore(initial)
    store.set("k", "changed")

    assert initial["k"] == "v"
    assert store.get("k") == "changed"
