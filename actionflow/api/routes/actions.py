"""
Actions API Routes.

Endpoints for the node library: the node kinds and their configuration.
"""

from fastapi import APIRouter, HTTPException
import logging

from actionflow.api.schemas import (
    ActionInfo,
    ActionListResponse,
    ErrorResponse,
)
from actionflow.actions.registry import action_registry
from actionflow.engine.node import GraphError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actions", tags=["Actions"])


@router.get(
    "/",
    response_model=ActionListResponse,
)
async def list_actions() -> ActionListResponse:
    """
    List all node kinds.

    Each entry lists the configuration fields of the kind and their defaults.
    """
    actions = [ActionInfo(**info) for info in action_registry.list_actions()]
    return ActionListResponse(actions=actions, total=len(actions))


@router.get(
    "/{kind}",
    response_model=ActionInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_action(kind: str) -> ActionInfo:
    """Get information about a specific node kind."""
    try:
        info = action_registry.describe(kind)
    except GraphError:
        raise HTTPException(
            status_code=404,
            detail=f"Node kind '{kind}' not found"
        )
    return ActionInfo(**info)
