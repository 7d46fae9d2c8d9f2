"""
Engine package - Graph model and workflow execution.
"""

from actionflow.engine.node import (
    GraphError,
    Node,
    NodeConfig,
    NodeKind,
    NodeStatus,
)
from actionflow.engine.graph import Edge, Graph
from actionflow.engine.state import NodeState, RunContext
from actionflow.engine.retry import RetryOutcome, run_with_retry
from actionflow.engine.executor import (
    ExecutionStatus,
    Executor,
    RunReport,
    execute_graph,
)

__all__ = [
    "GraphError",
    "Node",
    "NodeConfig",
    "NodeKind",
    "NodeStatus",
    "Edge",
    "Graph",
    "NodeState",
    "RunContext",
    "RetryOutcome",
    "run_with_retry",
    "ExecutionStatus",
    "Executor",
    "RunReport",
    "execute_graph",
]
