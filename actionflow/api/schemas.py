"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from actionflow.engine.executor import ExecutionStatus
from actionflow.engine.node import NodeKind, NodeStatus


# ============================================================
# Node Schemas
# ============================================================

class NodeDefinition(BaseModel):
    """Definition of a node in the workflow."""
    id: str = Field(..., description="Unique id of the node within the workflow")
    kind: NodeKind = Field(..., description="Node kind, selects the action")
    label: str = Field("", description="Display label")
    config: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific configuration")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "node-2",
                "kind": "ai_generate",
                "label": "Gemini AI",
                "config": {
                    "prompt": "Summarize: {{input}}",
                    "retryCount": 1,
                    "continueOnError": "false",
                }
            }
        }


class NodeStatusInfo(BaseModel):
    """Live status of a node."""
    id: str
    kind: NodeKind
    label: str
    status: NodeStatus
    last_result: Any = None
    error_details: Optional[str] = None


# ============================================================
# Edge Schemas
# ============================================================

class EdgeDefinition(BaseModel):
    """An edge between two nodes."""
    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    branchLabel: Optional[str] = Field(
        None,
        description="'true' or 'false' when the source is a conditional node"
    )


class ConnectionResponse(BaseModel):
    """Outcome of a proposed connection."""
    accepted: bool
    message: Optional[str] = None
    edge_count: int


# ============================================================
# Workflow Schemas
# ============================================================

class WorkflowCreateRequest(BaseModel):
    """Request to create a new workflow."""
    name: str = Field(..., description="Name of the workflow")
    description: Optional[str] = Field(None, description="Description of what this workflow does")
    nodes: List[NodeDefinition] = Field(..., description="Nodes in the workflow")
    edges: List[EdgeDefinition] = Field(default_factory=list, description="Edges, in fan-out order")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "keyword_router",
                "description": "Routes on whether the request mentions cats",
                "nodes": [
                    {"id": "start", "kind": "trigger"},
                    {"id": "check", "kind": "conditional",
                     "config": {"operator": "contains", "value": "cat"}},
                    {"id": "yes", "kind": "log", "config": {"prefix": "Cat:"}},
                    {"id": "no", "kind": "log", "config": {"prefix": "No cat:"}}
                ],
                "edges": [
                    {"source": "start", "target": "check"},
                    {"source": "check", "target": "yes", "branchLabel": "true"},
                    {"source": "check", "target": "no", "branchLabel": "false"}
                ]
            }
        }


class WorkflowCreateResponse(BaseModel):
    """Response after creating a workflow."""
    graph_id: str = Field(..., description="Unique identifier for the created workflow")
    name: str
    message: str = Field(default="Workflow created successfully")
    node_count: int
    warnings: List[str] = Field(default_factory=list)


class WorkflowInfoResponse(BaseModel):
    """Response with workflow information."""
    graph_id: str
    name: str
    description: Optional[str]
    node_count: int
    nodes: List[NodeStatusInfo]
    edges: List[EdgeDefinition]
    is_running: bool
    created_at: str
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the workflow")


class WorkflowListResponse(BaseModel):
    """Response listing all workflows."""
    workflows: List[WorkflowInfoResponse]
    total: int


# ============================================================
# Run Schemas
# ============================================================

class WorkflowRunRequest(BaseModel):
    """Request to run a workflow."""
    async_execution: bool = Field(
        False,
        description="If true, run in background and return immediately"
    )


class ExecutionLogEntry(BaseModel):
    """A single node visit in the execution log."""
    step: int
    node: str
    kind: str
    started_at: str
    completed_at: Optional[str]
    duration_ms: Optional[float]
    attempts: int
    result: str
    error: Optional[str]
    branch_taken: Optional[str]


class NodeReportEntry(BaseModel):
    """Final state of a node after a run."""
    status: NodeStatus
    result: Any = None
    error: Optional[str] = None
    attempts: int = 0


class RunReportResponse(BaseModel):
    """Response after running a workflow."""
    run_id: str = Field(..., description="Unique identifier for this run")
    graph_id: str
    mode: str
    start_node: Optional[str] = None
    status: ExecutionStatus
    nodes: Dict[str, NodeReportEntry] = Field(default_factory=dict)
    execution_log: List[ExecutionLogEntry] = Field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None
    failed_node: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "run-xyz789",
                "graph_id": "story-generator-demo",
                "mode": "workflow",
                "start_node": "node-1",
                "status": "failed",
                "nodes": {
                    "node-1": {"status": "success", "result": {"event": "manual"}, "attempts": 1},
                    "node-2": {"status": "error", "error": "API Key not found", "attempts": 2},
                    "node-3": {"status": "idle", "attempts": 0}
                },
                "execution_log": [],
                "error": "Node 'node-2' failed: API Key not found",
                "failed_node": "node-2"
            }
        }


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[RunReportResponse]
    total: int


# ============================================================
# Action Schemas
# ============================================================

class ConfigFieldInfo(BaseModel):
    id: str
    type: str
    default: Any = None


class ActionInfo(BaseModel):
    """Node library entry for one node kind."""
    kind: NodeKind
    label: str
    description: str
    registered: bool
    fields: List[ConfigFieldInfo]


class ActionListResponse(BaseModel):
    actions: List[ActionInfo]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
