"""
WebSocket Routes for Real-time Execution Streaming.

Every client connected to a workflow watches it: node status changes
from any run started over the socket are published to all of them.
"""

from typing import Any, Dict, Optional, Set
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from uuid import uuid4
import logging

from actionflow.engine.executor import RunMode, RunReport
from actionflow.engine.state import NodeState
from actionflow.storage.memory import StoredWorkflow, run_storage, workflow_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


class WorkflowWatchers:
    """Tracks the WebSocket clients watching each workflow."""

    def __init__(self):
        self.watchers: Dict[str, Set[WebSocket]] = {}

    async def join(self, graph_id: str, websocket: WebSocket):
        await websocket.accept()
        self.watchers.setdefault(graph_id, set()).add(websocket)
        logger.info(f"WebSocket watching workflow: {graph_id}")

    def leave(self, graph_id: str, websocket: WebSocket):
        sockets = self.watchers.get(graph_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.watchers[graph_id]
        logger.info(f"WebSocket stopped watching workflow: {graph_id}")

    async def publish(self, graph_id: str, message: Dict[str, Any]):
        """Send a message to every watcher of a workflow, dropping dead sockets."""
        for websocket in list(self.watchers.get(graph_id, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping watcher of {graph_id}: {e}")
                self.leave(graph_id, websocket)


watchers = WorkflowWatchers()


@router.websocket("/ws/workflows/{graph_id}/run")
async def websocket_run(websocket: WebSocket, graph_id: str):
    """
    WebSocket endpoint for watching and running a workflow.

    Send a start (or retry) command at any time; every watcher of the
    workflow receives a message for each node status change.

    Message format (client -> server):
    ```json
    {"action": "start"}
    {"action": "retry", "node_id": "node-2"}
    ```

    Message format (server -> client):
    ```json
    {"type": "started", "run_id": "...", "graph_id": "...", "mode": "workflow"}
    {
        "type": "node",
        "run_id": "...",
        "node": "node-2",
        "status": "running",
        "last_result": null,
        "error_details": null,
        "attempts": 0
    }
    {"type": "completed", "run_id": "...", "status": "failed", ...}
    {"type": "error", "error": "..."}
    ```
    """
    stored = await workflow_storage.get(graph_id)
    if not stored:
        await websocket.close(code=4004, reason=f"Workflow '{graph_id}' not found")
        return

    await watchers.join(graph_id, websocket)
    try:
        while True:
            command = await websocket.receive_json()
            error = await _run_command(stored, command)
            if error:
                await websocket.send_json({"type": "error", "error": error})

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from workflow {graph_id}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        try:
            await websocket.send_json({"type": "error", "error": str(e)})
        except Exception:
            logger.debug("Could not report error to a closed WebSocket")
    finally:
        watchers.leave(graph_id, websocket)


async def _run_command(stored: StoredWorkflow, command: Any) -> Optional[str]:
    """
    Execute one client command.

    Returns:
        An error message for the sender, or None once the run was published
    """
    graph_id = stored.graph_id
    if not isinstance(command, dict):
        return "Commands must be JSON objects"
    action = command.get("action")

    if action not in ("start", "retry"):
        return "Expected 'start' or 'retry' action"
    if stored.executor.is_running:
        return f"Workflow '{graph_id}' is already running"

    mode = RunMode.WORKFLOW if action == "start" else RunMode.RETRY_NODE
    node_id = command.get("node_id", "")
    if mode == RunMode.RETRY_NODE and (not isinstance(node_id, str) or node_id not in stored.graph):
        return f"Node '{node_id}' not found"

    run_id = str(uuid4())
    await watchers.publish(graph_id, {
        "type": "started",
        "run_id": run_id,
        "graph_id": graph_id,
        "mode": mode.value,
    })

    async def on_step(step_node_id: str, state: NodeState):
        await watchers.publish(graph_id, {
            "type": "node",
            "run_id": run_id,
            "node": step_node_id,
            **state.to_dict(),
        })

    report: Optional[RunReport]
    if mode == RunMode.WORKFLOW:
        report = await stored.executor.run_workflow(run_id, on_step=on_step)
    else:
        report = await stored.executor.retry_node(node_id, run_id, on_step=on_step)

    if report is None:
        return f"Workflow '{graph_id}' is already running"

    await run_storage.finish(report)
    await watchers.publish(graph_id, {"type": "completed", **report.to_dict()})
    return None
