"""
Async Workflow Executor.

The executor runs a workflow graph from its trigger: it visits nodes
depth-first, retries failed actions, follows conditional branches and
applies each node's error policy. Every status change is checkpointed
onto the graph so observers can follow the run.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import asyncio
import logging
import time

from actionflow.config import settings
from actionflow.engine.graph import Edge, Graph
from actionflow.engine.node import Node, NodeKind, NodeStatus
from actionflow.engine.retry import run_with_retry
from actionflow.engine.state import Observer, RunContext

if TYPE_CHECKING:
    from actionflow.actions.registry import ActionRegistry


logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunMode(str, Enum):
    """How a run was started."""
    WORKFLOW = "workflow"
    RETRY_NODE = "retry_node"


def failure_payload(node_id: str, message: str) -> Dict[str, Any]:
    """Input handed to the successors of a node that failed but continues."""
    return {"failed": True, "failingNodeId": node_id, "errorMessage": message}


@dataclass
class ExecutionStep:
    """A single node visit in the execution log."""
    step: int
    node: str
    kind: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    attempts: int = 0
    result: str = NodeStatus.RUNNING.value
    error: Optional[str] = None
    branch_taken: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node": self.node,
            "kind": self.kind,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "result": self.result,
            "error": self.error,
            "branch_taken": self.branch_taken,
        }


@dataclass
class NodeReport:
    """Final state of one node after a run."""
    status: NodeStatus
    result: Any = None
    error: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "attempts": self.attempts,
        }


@dataclass
class RunReport:
    """Aggregate outcome of a run, consumed by callers for display."""
    run_id: str
    graph_id: str
    mode: RunMode
    start_node: Optional[str]
    status: ExecutionStatus
    nodes: Dict[str, NodeReport] = field(default_factory=dict)
    execution_log: List[ExecutionStep] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None
    failed_node: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "graph_id": self.graph_id,
            "mode": self.mode.value,
            "start_node": self.start_node,
            "status": self.status.value,
            "nodes": {node_id: r.to_dict() for node_id, r in self.nodes.items()},
            "execution_log": [step.to_dict() for step in self.execution_log],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
            "error": self.error,
            "failed_node": self.failed_node,
        }


@dataclass
class _Visit:
    """Outcome of visiting one node."""
    output: Any
    branch: Optional[str] = None
    halted: bool = False
    error: Optional[str] = None


class Executor:
    """
    Async workflow executor.

    Runs a graph strictly sequentially: one action is in flight at a time
    and a node's successors run one subtree after another, in edge order.
    The traversal keeps its own stack, so deep graphs do not grow the
    Python call stack.

    Usage:
        executor = Executor(graph)
        report = await executor.run_workflow()
        report = await executor.retry_node("node-2")
    """

    def __init__(
        self,
        graph: Graph,
        registry: Optional["ActionRegistry"] = None,
        on_step: Optional[Observer] = None,
        retry_delay: Optional[float] = None,
        max_visits: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the executor.

        Args:
            graph: The workflow graph to execute
            registry: Action registry (the global one if not provided)
            on_step: Optional callback for each node state change
            retry_delay: Base backoff between attempts, in seconds
            max_visits: Maximum node visits per run (bounds cyclic graphs)
            sleep: Awaitable sleep used for backoff
        """
        if registry is None:
            # Imported here to avoid a circular import with the actions package
            from actionflow.actions.registry import get_action_registry
            registry = get_action_registry()

        self.graph = graph
        self.registry = registry
        self.on_step = on_step
        self.retry_delay = settings.RETRY_BASE_DELAY if retry_delay is None else retry_delay
        self.max_visits = settings.MAX_NODE_VISITS if max_visits is None else max_visits
        self.sleep = sleep
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether a full workflow run is in flight."""
        return self._running

    async def run_workflow(
        self,
        run_id: Optional[str] = None,
        on_step: Optional[Observer] = None,
    ) -> Optional[RunReport]:
        """
        Run the whole graph from its trigger.

        All nodes are reset to idle first. A call made while another run
        is in flight does nothing and returns None.

        Args:
            run_id: Optional run ID (generated if not provided)
            on_step: Observer for this run only, instead of the executor's

        Returns:
            RunReport, or None if a run was already active
        """
        if self._running:
            logger.info(f"Run requested for graph '{self.graph.graph_id}' while busy; ignored")
            return None

        self._running = True
        try:
            context = RunContext(self.graph, run_id, on_step or self.on_step, reset=True)
            context.commit_all()

            triggers = self.graph.triggers()
            if not triggers:
                logger.warning(f"Graph '{self.graph.graph_id}' has no trigger node")
                return self._report(
                    context, RunMode.WORKFLOW, None, [], time.time(),
                    error="No Trigger node found",
                )
            if len(triggers) > 1:
                logger.warning(
                    f"Graph '{self.graph.graph_id}' has {len(triggers)} trigger nodes; "
                    f"running from '{triggers[0].id}'"
                )

            return await self._run_from(context, RunMode.WORKFLOW, triggers[0].id, None)
        finally:
            self._running = False

    async def retry_node(
        self,
        node_id: str,
        run_id: Optional[str] = None,
        on_step: Optional[Observer] = None,
    ) -> RunReport:
        """
        Re-run one node (and what follows it) without resetting the graph.

        The node's input is the last result of the source of its first
        incoming edge, or None when it has no incoming edge.

        Raises:
            GraphError: If the node does not exist
        """
        self.graph.get_node(node_id)
        context = RunContext(self.graph, run_id, on_step or self.on_step)

        incoming = self.graph.incoming(node_id)
        input_data = context.result_of(incoming[0].source) if incoming else None

        return await self._run_from(context, RunMode.RETRY_NODE, node_id, input_data)

    async def _run_from(
        self,
        context: RunContext,
        mode: RunMode,
        start_id: str,
        initial_input: Any,
    ) -> RunReport:
        """Depth-first traversal from `start_id`."""
        start_time = time.time()
        steps: List[ExecutionStep] = []
        stack: List[Tuple[str, Any]] = [(start_id, initial_input)]

        logger.info(f"Run {context.run_id} ({mode.value}) starting at node '{start_id}'")

        while stack:
            node_id, input_data = stack.pop()

            if context.visits >= self.max_visits:
                return self._report(
                    context, mode, start_id, steps, start_time,
                    error=(
                        f"Visit limit ({self.max_visits}) exceeded at node '{node_id}'; "
                        f"the workflow may contain a cycle"
                    ),
                    failed_node=node_id,
                )
            context.visits += 1

            node = self.graph.get_node(node_id)
            step = ExecutionStep(
                step=len(steps) + 1,
                node=node.id,
                kind=node.kind.value,
                started_at=datetime.now(),
            )
            steps.append(step)

            visit = await self._visit(context, node, input_data, step)
            if visit.halted:
                return self._report(
                    context, mode, start_id, steps, start_time,
                    error=f"Node '{node.id}' failed: {visit.error}",
                    failed_node=node.id,
                )

            # Pushed in reverse so the first edge's subtree runs first
            for edge in reversed(self._select_edges(node, visit.branch)):
                stack.append((edge.target, visit.output))

        return self._report(context, mode, start_id, steps, start_time)

    async def _visit(
        self,
        context: RunContext,
        node: Node,
        input_data: Any,
        step: ExecutionStep,
    ) -> _Visit:
        """Run one node's action with retries and apply its error policy."""
        node_start_time = time.time()
        await context.mark_running(node.id)
        logger.info(f"Executing node: {node.id} ({node.kind.value}, step {step.step})")

        outcome = await run_with_retry(
            lambda: self.registry.execute(node.kind, node.config, input_data),
            max_attempts=node.config.max_attempts,
            delay=self.retry_delay,
            sleep=self.sleep,
        )

        step.attempts = outcome.attempts
        step.completed_at = datetime.now()
        step.duration_ms = (time.time() - node_start_time) * 1000

        if outcome.succeeded:
            result = outcome.output
            await context.mark_success(node.id, result.output, outcome.attempts)
            step.result = NodeStatus.SUCCESS.value
            step.branch_taken = result.branch
            if result.branch is not None:
                logger.debug(f"Node {node.id} took branch '{result.branch}'")
            return _Visit(output=result.output, branch=result.branch)

        message = outcome.last_error.message
        step.error = message

        if node.config.continue_on_error:
            logger.warning(f"Node {node.id} failed, continuing: {message}")
            sentinel = failure_payload(node.id, message)
            await context.mark_warning(node.id, sentinel, message, outcome.attempts)
            step.result = NodeStatus.WARNING.value
            return _Visit(output=sentinel, error=message)

        logger.error(f"Node {node.id} failed: {message}")
        await context.mark_error(node.id, message, outcome.attempts)
        step.result = NodeStatus.ERROR.value
        return _Visit(output=None, halted=True, error=message)

    def _select_edges(self, node: Node, branch: Optional[str]) -> List[Edge]:
        """
        Outgoing edges to follow after a visit.

        Conditional nodes follow only the edges labelled with their branch
        decision (none at all if they failed); every other node fans out
        to all of its edges.
        """
        edges = self.graph.outgoing(node.id)
        if node.kind == NodeKind.CONDITIONAL:
            return [e for e in edges if branch is not None and e.branch_label == branch]
        return edges

    def _report(
        self,
        context: RunContext,
        mode: RunMode,
        start_node: Optional[str],
        steps: List[ExecutionStep],
        start_time: float,
        error: Optional[str] = None,
        failed_node: Optional[str] = None,
    ) -> RunReport:
        """Build the run report from the context's node states."""
        status = ExecutionStatus.FAILED if error else ExecutionStatus.COMPLETED
        if error:
            logger.error(f"Run {context.run_id} failed: {error}")
        else:
            logger.info(f"Run {context.run_id} completed after {len(steps)} steps")

        return RunReport(
            run_id=context.run_id,
            graph_id=self.graph.graph_id,
            mode=mode,
            start_node=start_node,
            status=status,
            nodes={
                node_id: NodeReport(
                    status=state.status,
                    result=state.last_result,
                    error=state.error_details,
                    attempts=state.attempts,
                )
                for node_id, state in context.states.items()
            },
            execution_log=steps,
            started_at=context.started_at,
            completed_at=datetime.now(),
            total_duration_ms=(time.time() - start_time) * 1000,
            error=error,
            failed_node=failed_node,
        )


async def execute_graph(
    graph: Graph,
    registry: Optional["ActionRegistry"] = None,
    run_id: Optional[str] = None,
    on_step: Optional[Observer] = None,
) -> RunReport:
    """Convenience function to run a graph once from its trigger."""
    executor = Executor(graph, registry, on_step)
    return await executor.run_workflow(run_id)
