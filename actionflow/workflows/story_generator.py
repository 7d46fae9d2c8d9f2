"""
Story Generator Workflow.

The default workflow: a manual trigger feeds a Gemini prompt whose
story is written to the workflow log.

    On Click -> Gemini AI -> Log Output
"""

import logging

from actionflow.engine.graph import Graph
from actionflow.engine.node import NodeKind


logger = logging.getLogger(__name__)

DEMO_GRAPH_ID = "story-generator-demo"


def create_story_generator_workflow(graph_id: str = DEMO_GRAPH_ID) -> Graph:
    """
    Build the story generator graph.

    The AI node retries once before failing the run.
    """
    graph = Graph(
        graph_id=graph_id,
        name="Gemini Story Generator",
        description="Generates a short robot story and logs it",
    )

    graph.add_node("node-1", NodeKind.TRIGGER, "On Click", {
        "outputSchema": '{"event": "string"}',
        "description": "Starts the workflow when manually triggered.",
    })
    graph.add_node("node-2", NodeKind.AI_GENERATE, "Gemini AI", {
        "prompt": "Generate a short creative story about a robot. Previous input: {{input}}",
        "retryCount": 1,
        "inputSchema": '{"text": "string"}',
        "outputSchema": '{"story": "string"}',
        "description": "Uses Gemini Flash to generate creative text based on context.",
    })
    graph.add_node("node-3", NodeKind.LOG, "Log Output", {
        "inputSchema": "any",
        "outputSchema": "any",
        "description": "Writes the node result to the workflow log.",
    })

    graph.add_edge("node-1", "node-2")
    graph.add_edge("node-2", "node-3")
    return graph


async def register_story_generator_workflow() -> Graph:
    """
    Register the story generator in workflow storage.

    This makes the demo available through the API
    without needing to create it first.
    """
    from actionflow.engine.executor import Executor
    from actionflow.storage.memory import workflow_storage

    workflow = create_story_generator_workflow()
    await workflow_storage.save(workflow, Executor(workflow))

    logger.info(f"Registered Story Generator workflow with ID: {DEMO_GRAPH_ID}")
    return workflow
