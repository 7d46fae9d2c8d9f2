"""
Run State for Actionflow.

A RunContext owns a private copy of every node's status for the duration
of one run. Each transition is written back to the graph through a
checkpoint, so observers only ever see whole node states.
"""

from typing import Any, Callable, Dict, Optional
from pydantic import BaseModel
from datetime import datetime
from copy import deepcopy
import inspect
import logging
import uuid

from actionflow.engine.graph import Graph
from actionflow.engine.node import Node, NodeStatus


logger = logging.getLogger(__name__)


class NodeState(BaseModel):
    """Mutable execution state of one node within a run."""

    status: NodeStatus = NodeStatus.IDLE
    last_result: Any = None
    error_details: Optional[str] = None
    attempts: int = 0

    @classmethod
    def of(cls, node: Node) -> "NodeState":
        return cls(
            status=node.status,
            last_result=deepcopy(node.last_result),
            error_details=node.error_details,
        )

    def apply_to(self, node: Node) -> None:
        node.status = self.status
        node.last_result = self.last_result
        node.error_details = self.error_details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "last_result": self.last_result,
            "error_details": self.error_details,
            "attempts": self.attempts,
        }


Observer = Callable[[str, NodeState], Any]


class RunContext:
    """
    Ephemeral per-run state, exclusively owned by the executor.

    Attributes:
        graph: The graph being run; only written through checkpoints
        run_id: Identifier of this run
        states: Node id -> private NodeState copy
        visits: Number of node visits made so far
    """

    def __init__(
        self,
        graph: Graph,
        run_id: Optional[str] = None,
        on_step: Optional[Observer] = None,
        reset: bool = False,
    ):
        self.graph = graph
        self.run_id = run_id or str(uuid.uuid4())
        self.on_step = on_step
        self.visits = 0
        self.started_at = datetime.now()
        if reset:
            self.states = {node_id: NodeState() for node_id in graph.nodes}
        else:
            self.states = {
                node_id: NodeState.of(node) for node_id, node in graph.nodes.items()
            }

    def result_of(self, node_id: str) -> Any:
        return self.states[node_id].last_result

    def commit_all(self) -> None:
        """Write every node state back to the graph."""
        for node_id in self.states:
            self._write_back(node_id)

    async def checkpoint(self, node_id: str) -> None:
        """Write one node's state back to the graph and notify the observer."""
        self._write_back(node_id)
        state = self.states[node_id]

        if self.on_step:
            try:
                result = self.on_step(node_id, state.model_copy())
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Step callback failed: {e}")

    def _write_back(self, node_id: str) -> None:
        node = self.graph.nodes.get(node_id)
        if node is not None:
            self.states[node_id].apply_to(node)

    async def mark_running(self, node_id: str) -> None:
        state = self.states[node_id]
        state.status = NodeStatus.RUNNING
        state.error_details = None
        state.attempts = 0
        await self.checkpoint(node_id)

    async def mark_success(self, node_id: str, result: Any, attempts: int) -> None:
        state = self.states[node_id]
        state.status = NodeStatus.SUCCESS
        state.last_result = result
        state.attempts = attempts
        await self.checkpoint(node_id)

    async def mark_warning(self, node_id: str, sentinel: Any, message: str, attempts: int) -> None:
        state = self.states[node_id]
        state.status = NodeStatus.WARNING
        state.last_result = sentinel
        state.error_details = message
        state.attempts = attempts
        await self.checkpoint(node_id)

    async def mark_error(self, node_id: str, message: str, attempts: int) -> None:
        state = self.states[node_id]
        state.status = NodeStatus.ERROR
        state.error_details = message
        state.attempts = attempts
        await self.checkpoint(node_id)
