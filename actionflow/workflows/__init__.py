"""
Workflows package - Sample workflow implementations.
"""

from actionflow.workflows.story_generator import (
    DEMO_GRAPH_ID,
    create_story_generator_workflow,
    register_story_generator_workflow,
)

__all__ = [
    "DEMO_GRAPH_ID",
    "create_story_generator_workflow",
    "register_story_generator_workflow",
]
