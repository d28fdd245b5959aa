# tests/test_remote_store.py

from __future__ import annotations

import httpx
import pytest

from collab_tracker.core.errors import ConfigurationFailure, NetworkFailure, NotFound, ValidationFailure
from collab_tracker.core.models import ProjectStatus, TaskPriority
from collab_tracker.storage.change_feed import ChangeKind
from collab_tracker.storage.remote_store import RemoteStore

from .fakes import FakePostgrest, make_remote


@pytest.mark.asyncio
async def test_unconfigured_store_never_touches_network(server: FakePostgrest) -> None:
    store = RemoteStore("", "", client=httpx.AsyncClient(transport=server.transport()))
    assert not store.is_configured

    with pytest.raises(ConfigurationFailure):
        await store.projects().get_all()
    assert server.requests == []
    assert await store.check_connection() is False
    await store.aclose()


@pytest.mark.asyncio
async def test_create_returns_server_row_and_notifies(server: FakePostgrest) -> None:
    store = make_remote(server)
    sub = store.subscribe("projects")

    project = await store.projects().create(
        {"name": "Site", "description": "", "status": ProjectStatus.ACTIVE, "created_by": "1"}
    )

    assert project.id == server.tables["projects"][0]["id"]
    assert server.tables["projects"][0]["createdBy"] == "1"
    assert project.created_at

    event = await sub.__anext__()
    assert (event.table, event.kind, event.record_id) == ("projects", ChangeKind.INSERT, project.id)
    await store.aclose()


@pytest.mark.asyncio
async def test_get_all_is_newest_first(server: FakePostgrest) -> None:
    store = make_remote(server)
    server.insert("projects", {"name": "old", "createdBy": "1"})
    server.insert("projects", {"name": "new", "createdBy": "2"})

    assert [p.name for p in await store.projects().get_all()] == ["new", "old"]
    await store.aclose()


@pytest.mark.asyncio
async def test_update_and_delete_by_id(server: FakePostgrest) -> None:
    store = make_remote(server)
    row = server.insert("projects", {"name": "P", "createdBy": "1"})
    server.insert("tasks", {"title": "T", "projectId": row["id"], "createdBy": "1", "priority": "high"})

    updated = await store.projects().update(row["id"], {"status": ProjectStatus.ON_HOLD})
    assert updated.status == ProjectStatus.ON_HOLD

    with pytest.raises(NotFound):
        await store.projects().update("missing", {"name": "x"})

    await store.projects().delete(row["id"])
    await store.projects().delete(row["id"])
    assert server.tables["projects"] == []
    assert server.tables["tasks"] == []
    await store.aclose()


@pytest.mark.asyncio
async def test_foreign_key_violation_is_a_validation_failure(server: FakePostgrest) -> None:
    store = make_remote(server)
    with pytest.raises(ValidationFailure, match="409"):
        await store.tasks().create(
            {
                "title": "orphan",
                "description": "",
                "project_id": "nope",
                "created_by": "1",
                "status": "pending",
                "priority": TaskPriority.LOW,
            }
        )
    await store.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected"),
    [(401, ConfigurationFailure), (404, ConfigurationFailure), (422, ValidationFailure), (503, NetworkFailure)],
)
async def test_http_status_mapping(server: FakePostgrest, status: int, expected: type[Exception]) -> None:
    store = make_remote(server)
    server.fail_status = status
    with pytest.raises(expected):
        await store.projects().get_all()
    await store.aclose()


@pytest.mark.asyncio
async def test_transport_errors_become_network_failures(server: FakePostgrest) -> None:
    store = make_remote(server)
    server.offline = True
    with pytest.raises(NetworkFailure, match="ConnectError"):
        await store.tasks().get_all()
    assert await store.check_connection() is False
    await store.aclose()


@pytest.mark.asyncio
async def test_wrong_key_is_rejected(server: FakePostgrest) -> None:
    store = make_remote(server, api_key="other-key")
    with pytest.raises(ConfigurationFailure, match="401"):
        await store.projects().get_all()
    await store.aclose()
