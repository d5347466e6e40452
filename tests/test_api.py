"""Tests for API endpoints."""

import pytest
import yaml
from fastapi.testclient import TestClient

from taskflow.__main__ import create_app
from taskflow.store import TaskStore

from .fakes import FakeClock


@pytest.fixture
def test_client(store: TaskStore, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Create test client backed by the in-memory store fixture."""
    # Override factory store
    monkeypatch.setattr("taskflow.factory._store", store)

    app = create_app()

    return TestClient(app)


def _create(client: TestClient, title: str, **fields: object) -> dict:
    response = client.post("/api/tasks", json={"title": title, **fields})
    assert response.status_code == 201
    return response.json()


def test_create_and_list_tasks(test_client: TestClient) -> None:
    """Test POST /api/tasks and GET /api/tasks."""
    parent = _create(test_client, "Parent", description="Top level")
    child = _create(test_client, "Child", parent_id=parent["id"])

    response = test_client.get("/api/tasks")

    assert response.status_code == 200
    tasks = {task["id"]: task for task in response.json()}
    assert tasks[parent["id"]]["child_ids"] == [child["id"]]
    assert tasks[child["id"]]["depth"] == 1
    assert tasks[child["id"]]["status"] == "Open"
    assert tasks[child["id"]]["time_tracking"]["total_time_spent"] == 0


def test_create_task_validation(test_client: TestClient) -> None:
    assert test_client.post("/api/tasks", json={"title": "  "}).status_code == 422
    response = test_client.post("/api/tasks", json={"title": "Orphan", "parent_id": "nope"})
    assert response.status_code == 422


def test_list_tasks_with_filters(test_client: TestClient) -> None:
    """Test GET /api/tasks with status and search filters."""
    _create(test_client, "Write docs")
    _create(test_client, "Ship release", status="Done")

    done = test_client.get("/api/tasks", params={"status": "Done"}).json()
    docs = test_client.get("/api/tasks", params={"search": "DOCS"}).json()

    assert [task["title"] for task in done] == ["Ship release"]
    assert [task["title"] for task in docs] == ["Write docs"]


def test_tree_filter_keeps_ancestors(test_client: TestClient) -> None:
    root = _create(test_client, "Root")
    leaf = _create(test_client, "Leaf", parent_id=root["id"])
    test_client.post(f"/api/tasks/{leaf['id']}/move", json={"status": "Done"})

    response = test_client.get("/api/tasks/tree", params={"status": "Done"})

    assert response.status_code == 200
    forest = response.json()
    assert [node["id"] for node in forest] == [root["id"]]
    assert [node["id"] for node in forest[0]["children"]] == [leaf["id"]]


def test_get_task_not_found(test_client: TestClient) -> None:
    assert test_client.get("/api/tasks/missing").status_code == 404
    assert test_client.get("/api/tasks/missing/ancestry").status_code == 404


def test_ancestry_endpoint(test_client: TestClient) -> None:
    root = _create(test_client, "Root")
    child = _create(test_client, "Child", parent_id=root["id"])

    response = test_client.get(f"/api/tasks/{child['id']}/ancestry")

    assert [task["id"] for task in response.json()] == [root["id"]]


def test_update_task_endpoint(test_client: TestClient) -> None:
    task = _create(test_client, "Old title")

    response = test_client.patch(f"/api/tasks/{task['id']}", json={"title": "New title"})

    assert response.status_code == 200
    assert response.json()["title"] == "New title"
    assert response.json()["description"] == ""


def test_update_status_blocked_by_subtasks(test_client: TestClient) -> None:
    """Test PATCH rejects completing a task whose subtasks are open."""
    parent = _create(test_client, "Parent")
    child = _create(test_client, "Child", parent_id=parent["id"])

    response = test_client.patch(f"/api/tasks/{parent['id']}", json={"status": "Done"})

    assert response.status_code == 409
    assert response.json() == {
        "detail": "Cannot complete task: subtasks incomplete",
        "incomplete_child_ids": [child["id"]],
    }
    assert test_client.get("/api/error").json() == {
        "error": "Cannot complete task: subtasks incomplete"
    }

    test_client.delete("/api/error")
    assert test_client.get("/api/error").json() == {"error": None}


def test_move_task_endpoint(test_client: TestClient) -> None:
    parent = _create(test_client, "Parent")
    child = _create(test_client, "Child", parent_id=parent["id"])

    blocked = test_client.post(f"/api/tasks/{parent['id']}/move", json={"status": "Done"})
    assert blocked.status_code == 409

    test_client.post(f"/api/tasks/{child['id']}/move", json={"status": "Done"})
    response = test_client.post(f"/api/tasks/{parent['id']}/move", json={"status": "Done"})

    assert response.status_code == 200
    assert response.json()["status"] == "Done"


def test_move_task_invalid_status(test_client: TestClient) -> None:
    task = _create(test_client, "Task")

    response = test_client.post(f"/api/tasks/{task['id']}/move", json={"status": "Later"})

    assert response.status_code == 422


def test_delete_task_endpoint(test_client: TestClient) -> None:
    parent = _create(test_client, "Parent")
    child = _create(test_client, "Child", parent_id=parent["id"])

    response = test_client.delete(f"/api/tasks/{parent['id']}")

    assert response.status_code == 200
    assert set(response.json()["deleted"]) == {parent["id"], child["id"]}
    assert test_client.get("/api/tasks").json() == []
    assert test_client.delete(f"/api/tasks/{parent['id']}").status_code == 404


def test_timer_endpoints(test_client: TestClient, clock: FakeClock) -> None:
    """Test start, elapsed, and pause of a task timer."""
    task = _create(test_client, "Timed")

    started = test_client.post(f"/api/tasks/{task['id']}/timer/start")
    assert started.status_code == 200
    assert started.json()["status"] == "In Progress"
    assert started.json()["time_tracking"]["is_active"] is True

    clock.advance(2500)
    elapsed = test_client.get(f"/api/tasks/{task['id']}/elapsed").json()
    assert elapsed == {"task_id": task["id"], "elapsed_ms": 2500, "is_active": True}

    paused = test_client.post(f"/api/tasks/{task['id']}/timer/pause")
    tracking = paused.json()["time_tracking"]
    assert tracking["total_time_spent"] == 2500
    assert tracking["is_active"] is False
    assert len(tracking["time_entries"]) == 1


def test_timer_unknown_task(test_client: TestClient) -> None:
    assert test_client.post("/api/tasks/missing/timer/start").status_code == 404
    assert test_client.post("/api/tasks/missing/timer/pause").status_code == 404
    assert test_client.get("/api/tasks/missing/elapsed").status_code == 404


def test_expanded_nodes_endpoints(test_client: TestClient) -> None:
    response = test_client.post("/api/expanded/abc/toggle")

    assert response.json() == {"node_id": "abc", "expanded": True}
    assert test_client.get("/api/expanded").json() == {"expanded": ["abc"]}


def test_stats_endpoint(test_client: TestClient, clock: FakeClock) -> None:
    task = _create(test_client, "Counted")
    test_client.post(f"/api/tasks/{task['id']}/timer/start")
    clock.advance(60_000)
    test_client.post(f"/api/tasks/{task['id']}/timer/pause")

    response = test_client.get("/api/stats", params={"period": "day"})

    assert response.status_code == 200
    data = response.json()
    assert data["period"] == "day"
    assert data["total_time"] == 60_000
    assert data["task_stats"][0]["task_id"] == task["id"]


def test_stats_custom_requires_range(test_client: TestClient) -> None:
    response = test_client.get("/api/stats", params={"period": "custom"})

    assert response.status_code == 422


def test_export_and_import(test_client: TestClient) -> None:
    parent = _create(test_client, "Parent")
    _create(test_client, "Child", parent_id=parent["id"])

    exported = test_client.get("/api/export")
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("application/x-yaml")
    assert len(yaml.safe_load(exported.text)["tasks"]) == 2

    response = test_client.post("/api/import", json={"content": exported.text})

    assert response.status_code == 200
    assert len(response.json()["imported_ids"]) == 2
    assert len(test_client.get("/api/tasks").json()) == 4


def test_import_rejects_malformed_yaml(test_client: TestClient) -> None:
    response = test_client.post("/api/import", json={"content": "tasks: [broken"})

    assert response.status_code == 422


def test_websocket_ping(test_client: TestClient) -> None:
    with test_client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_text() == "pong"


def test_websocket_sends_pending_error(test_client: TestClient) -> None:
    """Test that a client joining after a failure still sees it."""
    parent = _create(test_client, "Parent")
    _create(test_client, "Child", parent_id=parent["id"])
    test_client.post(f"/api/tasks/{parent['id']}/move", json={"status": "Done"})

    with test_client.websocket_connect("/ws") as websocket:
        assert websocket.receive_json() == {
            "type": "error",
            "message": "Cannot complete task: subtasks incomplete",
        }


def test_import_with_malformed_time_tracking(test_client: TestClient) -> None:
    content = "tasks:\n  - id: a\n    title: A\n    timeTracking: oops\n"

    response = test_client.post("/api/import", json={"content": content})

    assert response.status_code == 200
    assert len(response.json()["imported_ids"]) == 1
