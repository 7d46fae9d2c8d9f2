"""
Workflow API Routes.

Endpoints for creating, editing, and executing workflows.
"""

from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, status
from uuid import uuid4
import logging

from actionflow.api.schemas import (
    ConnectionResponse,
    EdgeDefinition,
    ErrorResponse,
    NodeStatusInfo,
    RunListResponse,
    RunReportResponse,
    WorkflowCreateRequest,
    WorkflowCreateResponse,
    WorkflowInfoResponse,
    WorkflowListResponse,
    WorkflowRunRequest,
)
from actionflow.engine.executor import ExecutionStatus, Executor, RunMode, RunReport
from actionflow.engine.graph import Graph
from actionflow.engine.node import GraphError, Node
from actionflow.storage.memory import StoredRun, StoredWorkflow, run_storage, workflow_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# ============================================================
# Workflow CRUD Endpoints
# ============================================================

@router.post(
    "/create",
    response_model=WorkflowCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid node or rejected edge"},
        404: {"model": ErrorResponse, "description": "Edge endpoint not found"},
    }
)
async def create_workflow(request: WorkflowCreateRequest) -> WorkflowCreateResponse:
    """
    Create a new workflow.

    Nodes are validated against their kind's configuration; every edge
    must pass the connection rules.
    """
    graph = Graph(
        graph_id=str(uuid4()),
        name=request.name,
        description=request.description or "",
    )

    for node_def in request.nodes:
        try:
            graph.add_node(Node(
                id=node_def.id,
                kind=node_def.kind,
                label=node_def.label,
                config=node_def.config,
            ))
        except GraphError as e:
            raise HTTPException(status_code=400, detail=str(e))

    for edge_def in request.edges:
        try:
            reason = graph.check_connection(edge_def.source, edge_def.target, edge_def.branchLabel)
        except GraphError as e:
            raise HTTPException(status_code=404, detail=str(e))
        if reason:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot connect '{edge_def.source}' to '{edge_def.target}': {reason}"
            )
        graph.add_edge(edge_def.source, edge_def.target, edge_def.branchLabel)

    await workflow_storage.save(graph, Executor(graph))

    logger.info(f"Created workflow: {graph.graph_id} ({request.name})")

    return WorkflowCreateResponse(
        graph_id=graph.graph_id,
        name=request.name,
        node_count=len(graph.nodes),
        warnings=graph.validate(),
    )


# ============================================================
# Run State Endpoints
# ============================================================

@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(graph_id: Optional[str] = None) -> RunListResponse:
    """List all runs, optionally filtered by graph_id."""
    if graph_id:
        runs = await run_storage.list_by_graph(graph_id)
    else:
        runs = await run_storage.list_all()

    reports = [_stored_run_to_response(stored) for stored in runs]
    return RunListResponse(runs=reports, total=len(reports))


@router.get(
    "/runs/{run_id}",
    response_model=RunReportResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(run_id: str) -> RunReportResponse:
    """
    Get the report of a run.

    Use this to poll the status of async executions.
    """
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return _stored_run_to_response(stored)


@router.get(
    "/",
    response_model=WorkflowListResponse,
)
async def list_workflows() -> WorkflowListResponse:
    """List all available workflows."""
    workflows = await workflow_storage.list_all()
    infos = [_workflow_info(stored, with_diagram=False) for stored in workflows]
    return WorkflowListResponse(workflows=infos, total=len(infos))


@router.get(
    "/{graph_id}",
    response_model=WorkflowInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_workflow(graph_id: str) -> WorkflowInfoResponse:
    """Get a workflow with its live node statuses."""
    stored = await _get_workflow_or_404(graph_id)
    return _workflow_info(stored, with_diagram=True)


@router.delete(
    "/{graph_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_workflow(graph_id: str):
    """Delete a workflow."""
    deleted = await workflow_storage.delete(graph_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Workflow '{graph_id}' not found")
    logger.info(f"Deleted workflow: {graph_id}")


@router.post(
    "/{graph_id}/connections",
    response_model=ConnectionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def connect_nodes(graph_id: str, edge: EdgeDefinition) -> ConnectionResponse:
    """
    Propose a new edge.

    A declined connection is not an error: the response says why it
    was declined so the editor can show it to the user.
    """
    stored = await _get_workflow_or_404(graph_id)
    graph = stored.graph

    try:
        reason = graph.check_connection(edge.source, edge.target, edge.branchLabel)
    except GraphError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if reason is None:
        graph.connect(edge.source, edge.target, edge.branchLabel)
        await workflow_storage.touch(graph_id)

    return ConnectionResponse(
        accepted=reason is None,
        message=reason,
        edge_count=len(graph.edges),
    )


@router.get(
    "/{graph_id}/nodes",
    response_model=List[NodeStatusInfo],
    responses={404: {"model": ErrorResponse}},
)
async def get_node_statuses(graph_id: str):
    """Live node statuses, readable at any time during a run."""
    stored = await _get_workflow_or_404(graph_id)
    return [_node_status(node) for node in stored.graph.nodes.values()]


# ============================================================
# Execution Endpoints
# ============================================================

@router.post(
    "/{graph_id}/run",
    response_model=RunReportResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "A run is already in progress"},
        500: {"model": ErrorResponse, "description": "Execution failed"},
    }
)
async def run_workflow(
    graph_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[WorkflowRunRequest] = None,
) -> RunReportResponse:
    """
    Run a workflow from its trigger.

    If `async_execution` is True, the workflow runs in the background
    and you can poll the status using GET /workflows/runs/{run_id}.
    """
    stored = await _get_workflow_or_404(graph_id)
    executor = stored.executor
    _ensure_idle(executor, graph_id)

    run_id = str(uuid4())

    if request and request.async_execution:
        await run_storage.create(run_id, graph_id, RunMode.WORKFLOW.value)
        background_tasks.add_task(_execute_in_background, executor, run_id)
        return RunReportResponse(
            run_id=run_id,
            graph_id=graph_id,
            mode=RunMode.WORKFLOW.value,
            status=ExecutionStatus.PENDING,
        )

    try:
        report = await executor.run_workflow(run_id)
    except Exception as e:
        logger.exception(f"Execution failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if report is None:
        raise HTTPException(
            status_code=409,
            detail=f"Workflow '{graph_id}' is already running"
        )

    await run_storage.finish(report)
    return _report_to_response(report)


@router.post(
    "/{graph_id}/nodes/{node_id}/retry",
    response_model=RunReportResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "A run is already in progress"},
    }
)
async def retry_node(graph_id: str, node_id: str) -> RunReportResponse:
    """
    Re-run a single node and its successors.

    The node receives the last result of its first predecessor; the
    rest of the workflow keeps its current statuses.
    """
    stored = await _get_workflow_or_404(graph_id)
    _ensure_idle(stored.executor, graph_id)

    if node_id not in stored.graph:
        raise HTTPException(status_code=404, detail=f"Node '{node_id}' not found")

    report = await stored.executor.retry_node(node_id, str(uuid4()))
    await run_storage.finish(report)
    return _report_to_response(report)


async def _execute_in_background(executor: Executor, run_id: str):
    """Execute a workflow in the background."""
    try:
        await run_storage.mark_running(run_id)
        report = await executor.run_workflow(run_id)
        if report is None:
            await run_storage.fail(run_id, "Workflow is already running")
        else:
            await run_storage.finish(report)
    except Exception as e:
        logger.exception(f"Background execution failed: {e}")
        await run_storage.fail(run_id, str(e))


# ============================================================
# Helpers
# ============================================================

async def _get_workflow_or_404(graph_id: str) -> StoredWorkflow:
    stored = await workflow_storage.get(graph_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Workflow '{graph_id}' not found")
    return stored


def _ensure_idle(executor: Executor, graph_id: str) -> None:
    if executor.is_running:
        raise HTTPException(
            status_code=409,
            detail=f"Workflow '{graph_id}' is already running"
        )


def _node_status(node: Node) -> NodeStatusInfo:
    return NodeStatusInfo(
        id=node.id,
        kind=node.kind,
        label=node.label,
        status=node.status,
        last_result=node.last_result,
        error_details=node.error_details,
    )


def _workflow_info(stored: StoredWorkflow, with_diagram: bool) -> WorkflowInfoResponse:
    graph = stored.graph
    return WorkflowInfoResponse(
        graph_id=graph.graph_id,
        name=graph.name,
        description=graph.description,
        node_count=len(graph.nodes),
        nodes=[_node_status(node) for node in graph.nodes.values()],
        edges=[EdgeDefinition(**edge.to_dict()) for edge in graph.edges],
        is_running=stored.executor.is_running,
        created_at=stored.created_at.isoformat(),
        mermaid_diagram=graph.to_mermaid() if with_diagram else None,
    )


def _report_to_response(report: RunReport) -> RunReportResponse:
    """Convert a RunReport to an API response."""
    return RunReportResponse(**report.to_dict())


def _stored_run_to_response(stored: StoredRun) -> RunReportResponse:
    if stored.report:
        return RunReportResponse(**stored.report)
    return RunReportResponse(
        run_id=stored.run_id,
        graph_id=stored.graph_id,
        mode=stored.mode,
        start_node=stored.start_node,
        status=stored.status,
        started_at=stored.started_at.isoformat(),
        completed_at=stored.completed_at.isoformat() if stored.completed_at else None,
        error=stored.error,
    )
