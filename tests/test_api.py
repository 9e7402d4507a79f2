"""Test the HTTP surface with FastAPI's TestClient."""
import json
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from starlette.requests import Request

from api.main import app, storage_error_handler
from core.database import build_session_factory, get_session, init_db
from verticals.tasks.config import TaskConfig
from verticals.tasks.service import get_task_config


@pytest.fixture
def client():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    factory = build_session_factory(engine)
    ready = False

    async def override_session():
        nonlocal ready
        if not ready:
            await init_db(engine)
            ready = True
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_task_config] = lambda: TaskConfig(
        admin_user_ids=frozenset({"admin"}),
        watermark_backend="receipts",
    )
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def as_user(user_id: str, **headers) -> dict:
    return {"X-User-ID": user_id, **headers}


def _create(client, **overrides):
    body = {"title": "Order toner", "assigned_to": ["u1", "u2"]}
    body.update(overrides)
    resp = client.post("/api/tasks", json=body, headers=as_user("boss"))
    assert resp.status_code == 201
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_missing_identity_is_401(client):
    resp = client.get("/api/tasks")
    assert resp.status_code == 401


def test_create_and_list_board(client):
    task = _create(client)
    resp = client.get("/api/tasks", headers=as_user("u1"))
    assert resp.status_code == 200
    board = resp.json()
    assert [v["task"]["id"] for v in board["assigned_to_me"]] == [task["id"]]
    assert board["all_tasks"] is None


def test_admin_board_includes_all_tasks(client):
    _create(client)
    board = client.get("/api/tasks", headers=as_user("admin")).json()
    assert len(board["all_tasks"]) == 1


def test_blank_title_is_422(client):
    resp = client.post("/api/tasks", json={"title": " "}, headers=as_user("boss"))
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_malformed_month_is_422(client):
    resp = client.get("/api/tasks", params={"month": "2024-13"}, headers=as_user("u1"))
    assert resp.status_code == 422


def test_invisible_task_is_404(client):
    task = _create(client)
    resp = client.get(f"/api/tasks/{task['id']}", headers=as_user("stranger"))
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_edit_by_non_creator_is_403(client):
    task = _create(client)
    resp = client.patch(f"/api/tasks/{task['id']}", json={"title": "Mine now"}, headers=as_user("u1"))
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_toggle_complete_and_nudge(client):
    task = _create(client)
    resp = client.post(f"/api/tasks/{task['id']}/toggle-complete", headers=as_user("u1"))
    assert resp.json()["completed_by"] == ["u1"]

    resp = client.post(f"/api/tasks/{task['id']}/nudge", headers=as_user("u1"))
    assert resp.status_code == 200
    assert resp.json()["pending_assignees"] == ["u2"]

    inbox = client.get("/api/notifications", headers=as_user("u2")).json()
    assert [n["kind"] for n in inbox].count("shock") == 1


def test_toggle_priority_by_outsider_is_403(client):
    task = _create(client, tags=["ops"])
    resp = client.post(f"/api/tasks/{task['id']}/toggle-priority", headers=as_user("admin"))
    assert resp.status_code == 403
    view = client.get(f"/api/tasks/{task['id']}", headers=as_user("boss")).json()
    assert view["task"]["tags"] == ["ops"]
    assert view["is_priority"] is False


def test_comment_flow(client):
    task = _create(client)
    key = str(uuid.uuid4())
    for _ in range(2):
        resp = client.post(
            f"/api/tasks/{task['id']}/comments",
            json={"text": "Toner is on backorder"},
            headers=as_user("u2", **{"Idempotency-Key": key}),
        )
        assert resp.status_code == 201
    assert len(resp.json()["comments"]) == 1

    inbox = client.get("/api/notifications", headers=as_user("u1")).json()
    assert any(n["kind"] == "comment" for n in inbox)

    view = client.post(f"/api/tasks/{task['id']}/comments/seen", headers=as_user("u1")).json()
    assert view["unread_count"] == 0


def test_delete(client):
    task = _create(client)
    assert client.delete(f"/api/tasks/{task['id']}", headers=as_user("u1")).status_code == 403
    assert client.delete(f"/api/tasks/{task['id']}", headers=as_user("boss")).status_code == 204
    assert client.get(f"/api/tasks/{task['id']}", headers=as_user("boss")).status_code == 404


@pytest.mark.asyncio
async def test_storage_failure_outside_repository_is_503():
    request = Request({"type": "http", "method": "POST", "path": "/api/tasks", "headers": []})
    exc = OperationalError("COMMIT", {}, Exception("database is locked"))
    resp = await storage_error_handler(request, exc)
    assert resp.status_code == 503
    assert json.loads(resp.body) == {"detail": "Task store unavailable", "code": "storage_unavailable"}
