"""
Storage package - In-memory storage for workflows and runs.
"""

from actionflow.storage.memory import (
    RunStorage,
    WorkflowStorage,
    run_storage,
    workflow_storage,
)

__all__ = [
    "RunStorage",
    "WorkflowStorage",
    "run_storage",
    "workflow_storage",
]
