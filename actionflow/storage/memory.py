"""
In-Memory Storage for Actionflow.

Holds the live workflows (graph plus its executor, which owns the busy
flag) and the reports of finished runs. Can be replaced with a database
implementation that persists workflow documents.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field

from actionflow.engine.executor import ExecutionStatus, Executor, RunReport
from actionflow.engine.graph import Graph


@dataclass
class StoredWorkflow:
    """A stored workflow with its executor."""
    graph: Graph
    executor: Executor
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def graph_id(self) -> str:
        return self.graph.graph_id

    @property
    def name(self) -> str:
        return self.graph.name


@dataclass
class StoredRun:
    """A stored execution run."""
    run_id: str
    graph_id: str
    status: ExecutionStatus
    mode: str
    start_node: Optional[str] = None
    report: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "graph_id": self.graph_id,
            "status": self.status.value,
            "mode": self.mode,
            "start_node": self.start_node,
            "report": self.report,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


class WorkflowStorage:
    """
    In-memory storage for workflows.

    The stored Graph is the canonical one: executors write node
    statuses into it and observers read them from it.
    """

    def __init__(self):
        self._workflows: Dict[str, StoredWorkflow] = {}
        self._lock = asyncio.Lock()

    async def save(self, graph: Graph, executor: Executor) -> StoredWorkflow:
        """
        Save a workflow.

        Args:
            graph: The workflow graph
            executor: Executor bound to the graph

        Returns:
            The stored workflow
        """
        async with self._lock:
            stored = StoredWorkflow(graph=graph, executor=executor)
            self._workflows[graph.graph_id] = stored
            return stored

    async def get(self, graph_id: str) -> Optional[StoredWorkflow]:
        """Get a workflow by ID."""
        async with self._lock:
            return self._workflows.get(graph_id)

    async def touch(self, graph_id: str) -> Optional[StoredWorkflow]:
        """Record that a workflow's graph was edited."""
        async with self._lock:
            stored = self._workflows.get(graph_id)
            if stored:
                stored.updated_at = datetime.now()
            return stored

    async def delete(self, graph_id: str) -> bool:
        """Delete a workflow."""
        async with self._lock:
            if graph_id in self._workflows:
                del self._workflows[graph_id]
                return True
            return False

    async def list_all(self) -> List[StoredWorkflow]:
        """List all stored workflows."""
        async with self._lock:
            return list(self._workflows.values())

    def __len__(self) -> int:
        return len(self._workflows)


class RunStorage:
    """
    In-memory storage for execution runs.

    Background runs are created as pending and completed with their
    report once the executor returns.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        run_id: str,
        graph_id: str,
        mode: str,
        start_node: Optional[str] = None,
    ) -> StoredRun:
        """Create a pending run."""
        async with self._lock:
            stored = StoredRun(
                run_id=run_id,
                graph_id=graph_id,
                status=ExecutionStatus.PENDING,
                mode=mode,
                start_node=start_node,
            )
            self._runs[run_id] = stored
            return stored

    async def mark_running(self, run_id: str) -> Optional[StoredRun]:
        async with self._lock:
            stored = self._runs.get(run_id)
            if stored:
                stored.status = ExecutionStatus.RUNNING
            return stored

    async def finish(self, report: RunReport) -> StoredRun:
        """Store the report of a finished run, creating the run if needed."""
        async with self._lock:
            stored = self._runs.get(report.run_id)
            if stored is None:
                stored = StoredRun(
                    run_id=report.run_id,
                    graph_id=report.graph_id,
                    status=report.status,
                    mode=report.mode.value,
                    start_node=report.start_node,
                )
                self._runs[report.run_id] = stored
            stored.status = report.status
            stored.start_node = report.start_node
            stored.report = report.to_dict()
            stored.error = report.error
            stored.completed_at = report.completed_at or datetime.now()
            return stored

    async def fail(self, run_id: str, error: str) -> Optional[StoredRun]:
        """Mark a run as failed without a report."""
        async with self._lock:
            stored = self._runs.get(run_id)
            if stored is None:
                return None
            stored.status = ExecutionStatus.FAILED
            stored.error = error
            stored.completed_at = datetime.now()
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def list_all(self) -> List[StoredRun]:
        async with self._lock:
            return list(self._runs.values())

    async def list_by_graph(self, graph_id: str) -> List[StoredRun]:
        """List all runs for a specific workflow."""
        async with self._lock:
            return [r for r in self._runs.values() if r.graph_id == graph_id]

    async def delete(self, run_id: str) -> bool:
        async with self._lock:
            if run_id in self._runs:
                del self._runs[run_id]
                return True
            return False

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instances
workflow_storage = WorkflowStorage()
run_storage = RunStorage()
