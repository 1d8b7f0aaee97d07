"""Tests for workspace CRUD and the cross-store workspace delete."""
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.database_models import TaskStub, WorkspaceInvite, WorkspaceMember
from app.services.exceptions import WorkspaceAlreadyExists
from app.services.users import get_user_by_uid
from app.services.workspaces import create_private_workspace
from tests.conftest import (
    AUTH_HEADERS,
    AUTH_HEADERS_USER2,
    add_member,
    create_workspace,
    touch_user,
)
from tests.fakes import FailingDocumentStore


@pytest.mark.asyncio
async def test_create_workspace(client: AsyncClient):
    data = await create_workspace(client, "My Team", description="Team space")
    assert data["name"] == "My Team"
    assert data["description"] == "Team space"
    assert data["is_public"] is True
    assert data["owner_uid"] == "test-user-1"
    assert data["members"] == 1
    assert isinstance(data["id"], int)


@pytest.mark.asyncio
async def test_creator_is_admin_member(client: AsyncClient):
    ws = await create_workspace(client)
    resp = await client.get(f"/api/workspaces/{ws['id']}/members", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    members = resp.json()
    assert len(members) == 1
    assert members[0]["user_id"] == "test-user-1"
    assert members[0]["role"] == "admin"


@pytest.mark.asyncio
async def test_create_workspace_rejects_empty_name(client: AsyncClient):
    resp = await client.post("/api/workspaces", json={"name": ""}, headers=AUTH_HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_workspaces_returns_only_memberships(client: AsyncClient):
    """Each user should only see the workspaces they belong to, ordered by name."""
    await create_workspace(client, "Beta")
    await create_workspace(client, "Alpha")
    await create_workspace(client, "Gamma", headers=AUTH_HEADERS_USER2)

    resp = await client.get("/api/workspaces", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    workspaces = resp.json()
    assert [w["name"] for w in workspaces] == ["Alpha", "Beta"]
    assert all(w["is_owner"] for w in workspaces)
    assert all(w["user_role"] == "admin" for w in workspaces)

    resp = await client.get("/api/workspaces", headers=AUTH_HEADERS_USER2)
    assert [w["name"] for w in resp.json()] == ["Gamma"]


@pytest.mark.asyncio
async def test_get_public_workspace_as_non_member(client: AsyncClient):
    ws = await create_workspace(client, "Open")
    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 200
    assert resp.json()["members"] == 1


@pytest.mark.asyncio
async def test_get_private_workspace_as_non_member_returns_403(client: AsyncClient):
    ws = await create_workspace(client, "Closed", is_public=False)
    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_nonexistent_workspace_returns_404(client: AsyncClient):
    resp = await client.get("/api/workspaces/999999", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_workspace_owner_only(client: AsyncClient):
    ws = await create_workspace(client, "Before")
    await touch_user(client, AUTH_HEADERS_USER2)
    await add_member(client, ws["id"], "test2@example.com", role="admin")

    resp = await client.put(
        f"/api/workspaces/{ws['id']}",
        json={"name": "Hijacked"},
        headers=AUTH_HEADERS_USER2,
    )
    assert resp.status_code == 403

    resp = await client.put(
        f"/api/workspaces/{ws['id']}",
        json={"name": "After", "description": "updated", "is_public": False},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "After"
    assert data["description"] == "updated"
    assert data["is_public"] is False
    assert data["members"] == 2


@pytest.mark.asyncio
async def test_delete_workspace_removes_both_stores(client: AsyncClient, db_session, document_store):
    ws = await create_workspace(client, "Doomed")
    resp = await client.post(
        f"/api/workspaces/{ws['id']}/tasks", json={"title": "Task"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 201
    await client.post(f"/api/workspaces/{ws['id']}/invites", json={}, headers=AUTH_HEADERS)
    await document_store.add_ai_history(ws["id"], {"user_id": "test-user-1"})

    resp = await client.delete(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 204

    assert ws["id"] not in document_store.workspaces
    for model in (TaskStub, WorkspaceInvite, WorkspaceMember):
        rows = (await db_session.execute(select(model).where(model.workspace_id == ws["id"]))).all()
        assert rows == []

    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_workspace_by_non_owner_touches_nothing(client: AsyncClient, document_store):
    ws = await create_workspace(client, "Guarded")
    await client.post(f"/api/workspaces/{ws['id']}/tasks", json={"title": "Keep me"}, headers=AUTH_HEADERS)
    await touch_user(client, AUTH_HEADERS_USER2)
    await add_member(client, ws["id"], "test2@example.com", role="admin")

    resp = await client.delete(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403

    assert len(await document_store.list_tasks(ws["id"])) == 1
    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_workspace_aborts_when_document_store_fails(client: AsyncClient, db_session):
    from app.dependencies.services import get_document_store
    from app.main import app

    failing = FailingDocumentStore(fail_on={"delete_workspace_tree"})
    app.dependency_overrides[get_document_store] = lambda: failing

    ws = await create_workspace(client, "Survivor")
    resp = await client.post(f"/api/workspaces/{ws['id']}/tasks", json={"title": "Task"}, headers=AUTH_HEADERS)
    assert resp.status_code == 201

    resp = await client.delete(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 500

    stubs = (await db_session.execute(select(TaskStub).where(TaskStub.workspace_id == ws["id"]))).all()
    assert len(stubs) == 1
    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_workspace_relational_failure_after_document_cascade(
    client: AsyncClient, db_session, document_store, monkeypatch
):
    ws = await create_workspace(client, "Half gone")
    resp = await client.post(f"/api/workspaces/{ws['id']}/tasks", json={"title": "Task"}, headers=AUTH_HEADERS)
    assert resp.status_code == 201

    async def _unavailable(db, workspace_id):
        raise RuntimeError("relational store unavailable")

    monkeypatch.setattr("app.services.workspaces.delete_workspace_rows", _unavailable)

    resp = await client.delete(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 500
    assert "failed to delete records" in resp.json()["detail"]

    assert ws["id"] not in document_store.workspaces
    stubs = (await db_session.execute(select(TaskStub).where(TaskStub.workspace_id == ws["id"]))).all()
    assert len(stubs) == 1
    resp = await client.get(f"/api/workspaces/{ws['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_private_workspace_cannot_be_created_twice(client: AsyncClient, db_session):
    await touch_user(client, AUTH_HEADERS)
    user = await get_user_by_uid(db_session, "test-user-1")

    workspace = await create_private_workspace(db_session, user)
    assert workspace.name == "test-user-1"
    assert workspace.is_public is False

    with pytest.raises(WorkspaceAlreadyExists):
        await create_private_workspace(db_session, user)
