"""
Tests for the FastAPI endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketDisconnect

from actionflow.config import settings
from actionflow.engine.executor import ExecutionStatus, RunMode, RunReport
from actionflow.main import app
from actionflow.storage.memory import RunStorage, workflow_storage


@pytest.fixture(scope="module")
def client():
    """Client with the app lifespan running, so the demo workflow is registered."""
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(settings, "GEMINI_API_KEY", None)
        mp.setattr(settings, "RETRY_BASE_DELAY", 0.0)
        with TestClient(app) as test_client:
            yield test_client


def create_workflow(client, nodes, edges=(), name="test_workflow") -> str:
    response = client.post("/workflows/create", json={
        "name": name,
        "nodes": nodes,
        "edges": list(edges),
    })
    assert response.status_code == 201, response.text
    return response.json()["graph_id"]


def router_workflow(client, value: str) -> str:
    return create_workflow(
        client,
        nodes=[
            {"id": "t", "kind": "trigger"},
            {"id": "c", "kind": "conditional", "config": {"operator": "contains", "value": value}},
            {"id": "yes", "kind": "log"},
            {"id": "no", "kind": "log"},
        ],
        edges=[
            {"source": "t", "target": "c"},
            {"source": "c", "target": "yes", "branchLabel": "true"},
            {"source": "c", "target": "no", "branchLabel": "false"},
        ],
    )


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == settings.APP_NAME
        assert "endpoints" in data
        assert data["demo_workflow"] == "story-generator-demo"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["workflows_count"] >= 1


class TestActionsEndpoints:
    """Tests for the node library endpoints."""

    def test_list_actions(self, client):
        response = client.get("/actions/")
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 6
        kinds = [a["kind"] for a in data["actions"]]
        assert "ai_generate" in kinds
        assert "conditional" in kinds

    def test_get_action(self, client):
        response = client.get("/actions/conditional")
        assert response.status_code == 200

        data = response.json()
        assert data["label"] == "Condition"
        field_ids = [f["id"] for f in data["fields"]]
        assert "operator" in field_ids
        assert "continueOnError" in field_ids

    def test_get_nonexistent_action(self, client):
        response = client.get("/actions/teleport")
        assert response.status_code == 404


class TestWorkflowEndpoints:
    """Tests for workflow CRUD endpoints."""

    def test_get_demo_workflow(self, client):
        response = client.get("/workflows/story-generator-demo")
        assert response.status_code == 200

        data = response.json()
        assert data["node_count"] == 3
        assert [n["id"] for n in data["nodes"]] == ["node-1", "node-2", "node-3"]
        assert data["is_running"] is False
        assert "node-1 --> node-2" in data["mermaid_diagram"]

    def test_list_workflows(self, client):
        response = client.get("/workflows/")
        assert response.status_code == 200

        data = response.json()
        ids = [w["graph_id"] for w in data["workflows"]]
        assert "story-generator-demo" in ids
        assert data["total"] == len(ids)

    def test_create_workflow(self, client):
        response = client.post("/workflows/create", json={
            "name": "simple",
            "nodes": [
                {"id": "t", "kind": "trigger", "label": "Start"},
                {"id": "log", "kind": "log", "config": {"prefix": "Out:"}},
                {"id": "orphan", "kind": "action"},
            ],
            "edges": [{"source": "t", "target": "log"}],
        })
        assert response.status_code == 201

        data = response.json()
        assert data["node_count"] == 3
        assert data["warnings"] == ["Nodes without input: ['orphan']"]

    def test_create_with_invalid_config(self, client):
        response = client.post("/workflows/create", json={
            "name": "bad",
            "nodes": [{"id": "c", "kind": "conditional", "config": {"operator": "regex"}}],
        })
        assert response.status_code == 400
        assert "Invalid conditional config" in response.json()["detail"]

    def test_create_with_unknown_kind(self, client):
        response = client.post("/workflows/create", json={
            "name": "bad",
            "nodes": [{"id": "x", "kind": "teleport"}],
        })
        assert response.status_code == 422

    def test_create_with_rejected_edge(self, client):
        response = client.post("/workflows/create", json={
            "name": "bad",
            "nodes": [
                {"id": "t", "kind": "trigger"},
                {"id": "log", "kind": "log"},
            ],
            "edges": [{"source": "log", "target": "t"}],
        })
        assert response.status_code == 400
        assert "Trigger nodes cannot receive input" in response.json()["detail"]

    def test_create_with_missing_edge_endpoint(self, client):
        response = client.post("/workflows/create", json={
            "name": "bad",
            "nodes": [{"id": "t", "kind": "trigger"}],
            "edges": [{"source": "t", "target": "ghost"}],
        })
        assert response.status_code == 404

    def test_connections(self, client):
        graph_id = create_workflow(client, nodes=[
            {"id": "t", "kind": "trigger"},
            {"id": "log", "kind": "log"},
            {"id": "ai", "kind": "ai_generate"},
        ])

        accepted = client.post(f"/workflows/{graph_id}/connections",
                               json={"source": "t", "target": "log"})
        assert accepted.status_code == 200
        assert accepted.json() == {"accepted": True, "message": None, "edge_count": 1}

        declined = client.post(f"/workflows/{graph_id}/connections",
                               json={"source": "log", "target": "ai"})
        assert declined.status_code == 200
        assert declined.json()["accepted"] is False
        assert "cannot feed" in declined.json()["message"]
        assert declined.json()["edge_count"] == 1

        duplicate = client.post(f"/workflows/{graph_id}/connections",
                                json={"source": "t", "target": "log"})
        assert duplicate.json()["message"] == "These nodes are already connected"

        missing = client.post(f"/workflows/{graph_id}/connections",
                              json={"source": "t", "target": "ghost"})
        assert missing.status_code == 404

    def test_delete_workflow(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])

        assert client.delete(f"/workflows/{graph_id}").status_code == 204
        assert client.get(f"/workflows/{graph_id}").status_code == 404
        assert client.delete(f"/workflows/{graph_id}").status_code == 404

    def test_get_nonexistent_workflow(self, client):
        assert client.get("/workflows/nonexistent").status_code == 404
        assert client.get("/workflows/nonexistent/nodes").status_code == 404


class TestExecutionEndpoints:
    """Tests for running workflows."""

    def test_run_branching_workflow(self, client):
        graph_id = router_workflow(client, "manual")

        response = client.post(f"/workflows/{graph_id}/run")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["mode"] == "workflow"
        assert data["nodes"]["yes"]["status"] == "success"
        assert data["nodes"]["no"]["status"] == "idle"
        assert [s["node"] for s in data["execution_log"]] == ["t", "c", "yes"]
        assert data["execution_log"][1]["branch_taken"] == "true"

        statuses = client.get(f"/workflows/{graph_id}/nodes").json()
        assert {n["id"]: n["status"] for n in statuses} == {
            "t": "success", "c": "success", "yes": "success", "no": "idle",
        }

    def test_continue_on_error(self, client):
        graph_id = create_workflow(
            client,
            nodes=[
                {"id": "t", "kind": "trigger"},
                {"id": "http", "kind": "http_request",
                 "config": {"url": "https://example.test/fail", "continueOnError": "true"}},
                {"id": "log", "kind": "log"},
            ],
            edges=[
                {"source": "t", "target": "http"},
                {"source": "http", "target": "log"},
            ],
        )

        data = client.post(f"/workflows/{graph_id}/run").json()

        assert data["status"] == "completed"
        assert data["nodes"]["http"]["status"] == "warning"
        assert data["nodes"]["log"]["status"] == "success"
        assert data["nodes"]["log"]["result"]["failed"] is True
        assert data["nodes"]["log"]["result"]["failingNodeId"] == "http"

    def test_run_demo_without_api_key(self, client):
        response = client.post("/workflows/story-generator-demo/run")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "failed"
        assert data["failed_node"] == "node-2"
        assert data["nodes"]["node-2"]["attempts"] == 2
        assert "API Key not found" in data["nodes"]["node-2"]["error"]
        assert data["nodes"]["node-3"]["status"] == "idle"

    def test_retry_node(self, client):
        graph_id = create_workflow(
            client,
            nodes=[
                {"id": "t", "kind": "trigger"},
                {"id": "log", "kind": "log"},
            ],
            edges=[{"source": "t", "target": "log"}],
        )
        client.post(f"/workflows/{graph_id}/run")

        response = client.post(f"/workflows/{graph_id}/nodes/log/retry")
        assert response.status_code == 200

        data = response.json()
        assert data["mode"] == "retry_node"
        assert data["start_node"] == "log"
        assert [s["node"] for s in data["execution_log"]] == ["log"]
        assert data["nodes"]["log"]["result"]["event"] == "manual"

        missing = client.post(f"/workflows/{graph_id}/nodes/ghost/retry")
        assert missing.status_code == 404

    def test_busy_workflow_rejects_runs(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])
        executor = workflow_storage._workflows[graph_id].executor

        executor._running = True
        try:
            assert client.post(f"/workflows/{graph_id}/run").status_code == 409
            assert client.post(f"/workflows/{graph_id}/nodes/t/retry").status_code == 409
            assert client.get(f"/workflows/{graph_id}").json()["is_running"] is True
        finally:
            executor._running = False

    def test_run_lookup(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])
        run_id = client.post(f"/workflows/{graph_id}/run").json()["run_id"]

        response = client.get(f"/workflows/runs/{run_id}")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        runs = client.get("/workflows/runs", params={"graph_id": graph_id}).json()
        assert runs["total"] == 1
        assert runs["runs"][0]["run_id"] == run_id

        assert client.get("/workflows/runs/nonexistent").status_code == 404

    def test_async_execution(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])

        response = client.post(f"/workflows/{graph_id}/run", json={"async_execution": True})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "pending"

        # TestClient runs background tasks before returning
        run = client.get(f"/workflows/runs/{data['run_id']}").json()
        assert run["status"] == "completed"
        assert run["nodes"]["t"]["status"] == "success"

    def test_run_nonexistent_workflow(self, client):
        assert client.post("/workflows/nonexistent/run").status_code == 404


class TestWebSocket:
    """Tests for the streaming run endpoint."""

    def test_stream_run(self, client):
        graph_id = create_workflow(
            client,
            nodes=[
                {"id": "t", "kind": "trigger"},
                {"id": "log", "kind": "log"},
            ],
            edges=[{"source": "t", "target": "log"}],
        )

        with client.websocket_connect(f"/ws/workflows/{graph_id}/run") as ws:
            ws.send_json({"action": "start"})

            started = ws.receive_json()
            assert started["type"] == "started"

            updates = [ws.receive_json() for _ in range(4)]
            assert [(u["node"], u["status"]) for u in updates] == [
                ("t", "running"),
                ("t", "success"),
                ("log", "running"),
                ("log", "success"),
            ]

            assert all(u["run_id"] == started["run_id"] for u in updates)

            completed = ws.receive_json()
            assert completed["type"] == "completed"
            assert completed["status"] == "completed"
            assert completed["run_id"] == started["run_id"]

        stored = client.get(f"/workflows/runs/{started['run_id']}").json()
        assert stored["status"] == "completed"

    def test_stream_retry_unknown_node(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])

        with client.websocket_connect(f"/ws/workflows/{graph_id}/run") as ws:
            ws.send_json({"action": "retry", "node_id": "ghost"})
            message = ws.receive_json()
            assert message["type"] == "error"
            assert "ghost" in message["error"]

            # The socket stays open for further commands
            ws.send_json({"action": "retry", "node_id": "t"})
            assert ws.receive_json()["mode"] == "retry_node"
            assert ws.receive_json()["node"] == "t"

    def test_invalid_action(self, client):
        with client.websocket_connect("/ws/workflows/story-generator-demo/run") as ws:
            ws.send_json({"action": "stop"})
            message = ws.receive_json()
            assert message["type"] == "error"

    @pytest.mark.parametrize("command", [["start"], "start", 42, None])
    def test_non_object_command_keeps_session(self, client, command):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])

        with client.websocket_connect(f"/ws/workflows/{graph_id}/run") as ws:
            ws.send_json(command)
            message = ws.receive_json()
            assert message == {"type": "error", "error": "Commands must be JSON objects"}

            ws.send_json({"action": "start"})
            assert ws.receive_json()["type"] == "started"
            assert ws.receive_json()["node"] == "t"

    def test_non_string_retry_node(self, client):
        graph_id = create_workflow(client, nodes=[{"id": "t", "kind": "trigger"}])

        with client.websocket_connect(f"/ws/workflows/{graph_id}/run") as ws:
            ws.send_json({"action": "retry", "node_id": ["t"]})
            message = ws.receive_json()
            assert message["type"] == "error"
            assert "not found" in message["error"]

    def test_unknown_workflow(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/workflows/nonexistent/run") as ws:
                ws.receive_json()

        assert exc_info.value.code == 4004


class TestRunStorage:
    """Tests for the in-memory run store."""

    @pytest.mark.asyncio
    async def test_pending_then_finished(self):
        storage = RunStorage()
        await storage.create("run-1", "g-1", RunMode.WORKFLOW.value)
        await storage.mark_running("run-1")
        assert (await storage.get("run-1")).status == ExecutionStatus.RUNNING

        report = RunReport(
            run_id="run-1",
            graph_id="g-1",
            mode=RunMode.WORKFLOW,
            start_node="t",
            status=ExecutionStatus.COMPLETED,
        )
        stored = await storage.finish(report)

        assert stored.status == ExecutionStatus.COMPLETED
        assert stored.report["start_node"] == "t"
        assert stored.completed_at is not None
        assert len(storage) == 1

    @pytest.mark.asyncio
    async def test_fail_and_filter(self):
        storage = RunStorage()
        await storage.create("run-1", "g-1", RunMode.WORKFLOW.value)
        await storage.create("run-2", "g-2", RunMode.WORKFLOW.value)

        failed = await storage.fail("run-1", "boom")

        assert failed.status == ExecutionStatus.FAILED
        assert failed.to_dict()["error"] == "boom"
        assert [r.run_id for r in await storage.list_by_graph("g-2")] == ["run-2"]
        assert await storage.fail("missing", "boom") is None
        assert await storage.delete("run-2") is True


# ============================================================
# Async Tests (for async endpoints)
# ============================================================

@pytest.mark.asyncio
async def test_create_and_run_async_client():
    """Create and run a workflow through the ASGI transport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/workflows/create", json={
            "name": "async_workflow",
            "nodes": [
                {"id": "t", "kind": "trigger"},
                {"id": "act", "kind": "action"},
            ],
            "edges": [{"source": "t", "target": "act"}],
        })
        assert response.status_code == 201
        graph_id = response.json()["graph_id"]

        response = await ac.post(f"/workflows/{graph_id}/run")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["nodes"]["act"]["result"] == "No action defined"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
