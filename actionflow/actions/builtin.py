"""
Built-in actions, one per node kind.
"""

from typing import Any
import json
import logging

import httpx

from actionflow.actions.errors import ActionError
from actionflow.actions.registry import ActionRegistry, ActionResult, builtin_action
from actionflow.engine.graph import BRANCH_FALSE, BRANCH_TRUE
from actionflow.engine.node import (
    ActionConfig,
    AiGenerateConfig,
    ConditionalConfig,
    HttpRequestConfig,
    LogConfig,
    NodeKind,
    TriggerConfig,
)


# Observer side channel for Log nodes
workflow_logger = logging.getLogger("actionflow.workflow")

INPUT_TOKEN = "{{input}}"
DEFAULT_PROMPT = "Hello"


def stringify(value: Any) -> str:
    """String form of a node input: strings as-is, everything else as compact JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


@builtin_action(NodeKind.TRIGGER, label="Trigger")
def trigger_action(config: TriggerConfig, input_data: Any, registry: ActionRegistry):
    """Starts the workflow when manually triggered."""
    return {
        "triggeredAt": registry.clock().isoformat(),
        "event": config.event,
    }


@builtin_action(NodeKind.AI_GENERATE, label="Gemini AI")
async def ai_generate_action(config: AiGenerateConfig, input_data: Any, registry: ActionRegistry):
    """Generates text from a prompt; {{input}} is replaced by the upstream output."""
    if registry.provider is None:
        raise ActionError("No generation provider configured")

    prompt = (config.prompt or DEFAULT_PROMPT).replace(INPUT_TOKEN, stringify(input_data))
    try:
        return await registry.provider.generate(prompt, config.model)
    except Exception as e:
        raise ActionError(str(e) or "Generation failed") from e


@builtin_action(NodeKind.HTTP_REQUEST, label="HTTP Request")
async def http_request_action(config: HttpRequestConfig, input_data: Any, registry: ActionRegistry):
    """Calls an HTTP endpoint and returns its status and body."""
    if registry.mock_http:
        if "fail" in config.url:
            raise ActionError(f"HTTP 500: Internal Server Error ({config.url})")
        return {
            "status": 200,
            "url": config.url,
            "method": config.method,
            "message": "Request successful (Mocked)",
        }

    if not config.url:
        raise ActionError("No URL configured")

    kwargs = {}
    if config.method in ("POST", "PUT", "PATCH") and input_data is not None:
        kwargs["json"] = input_data

    async with registry.http_client() as client:
        try:
            response = await client.request(config.method, config.url, **kwargs)
        except httpx.HTTPError as e:
            raise ActionError(f"Request to {config.url} failed: {e}") from e

    if response.status_code >= 400:
        raise ActionError(
            f"HTTP {response.status_code}: {response.reason_phrase} ({config.url})"
        )

    try:
        body = response.json()
    except ValueError:
        body = response.text

    return {
        "status": response.status_code,
        "url": config.url,
        "method": config.method,
        "body": body,
    }


@builtin_action(NodeKind.LOG, label="Log")
def log_action(config: LogConfig, input_data: Any, registry: ActionRegistry):
    """Writes the input to the workflow log and passes it through."""
    workflow_logger.info(f"{config.prefix} {stringify(input_data)}")
    return input_data


@builtin_action(NodeKind.CONDITIONAL, label="Condition")
def conditional_action(config: ConditionalConfig, input_data: Any, registry: ActionRegistry):
    """Routes to the true or false branch by comparing the input with a value."""
    subject = stringify(input_data).lower()
    expected = config.value.lower()

    if config.operator == "contains":
        matched = expected in subject
    elif config.operator == "not_contains":
        matched = expected not in subject
    else:
        matched = subject == expected

    return ActionResult(
        output=input_data,
        branch=BRANCH_TRUE if matched else BRANCH_FALSE,
    )


@builtin_action(NodeKind.ACTION, label="Action")
def generic_action(config: ActionConfig, input_data: Any, registry: ActionRegistry):
    """Placeholder action with no behaviour."""
    return "No action defined"
