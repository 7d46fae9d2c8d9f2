"""
Node Definition for Actionflow.

Nodes are the building blocks of a workflow. Each node has a kind that
selects its action, a typed configuration validated when the node is
created, and the live status fields the engine writes during a run.
"""

from typing import Any, Dict, List, Literal, Optional, Type, Union
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, ValidationError, field_validator

from actionflow.config import settings


class GraphError(ValueError):
    """Raised for structurally impossible graph operations."""


class NodeKind(str, Enum):
    """Kinds of nodes in the workflow."""
    TRIGGER = "trigger"
    ACTION = "action"
    AI_GENERATE = "ai_generate"
    HTTP_REQUEST = "http_request"
    LOG = "log"
    CONDITIONAL = "conditional"


class NodeStatus(str, Enum):
    """Status of a node within the current or last run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# ============================================================
# Per-kind configuration
# ============================================================

class NodeConfig(BaseModel):
    """
    Settings shared by every node kind.

    Field aliases match the camelCase keys used in workflow documents,
    so both `retryCount` and `retry_count` are accepted.
    """

    description: str = ""
    input_schema: str = Field("", alias="inputSchema")
    output_schema: str = Field("", alias="outputSchema")
    retry_count: int = Field(0, alias="retryCount", ge=0)
    continue_on_error: bool = Field(False, alias="continueOnError")

    class Config:
        populate_by_name = True
        extra = "ignore"

    @property
    def max_attempts(self) -> int:
        return self.retry_count + 1

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class TriggerConfig(NodeConfig):
    event: Literal["manual"] = "manual"


class ActionConfig(NodeConfig):
    pass


class AiGenerateConfig(NodeConfig):
    prompt: str = ""
    model: str = Field(default_factory=lambda: settings.DEFAULT_MODEL)


class HttpRequestConfig(NodeConfig):
    url: str = ""
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value):
        return value.upper() if isinstance(value, str) else value


class LogConfig(NodeConfig):
    prefix: str = "Result:"


class ConditionalConfig(NodeConfig):
    operator: Literal["contains", "not_contains", "equals"] = "contains"
    value: str = ""


CONFIG_MODELS: Dict[NodeKind, Type[NodeConfig]] = {
    NodeKind.TRIGGER: TriggerConfig,
    NodeKind.ACTION: ActionConfig,
    NodeKind.AI_GENERATE: AiGenerateConfig,
    NodeKind.HTTP_REQUEST: HttpRequestConfig,
    NodeKind.LOG: LogConfig,
    NodeKind.CONDITIONAL: ConditionalConfig,
}


def parse_kind(kind: Union[str, NodeKind]) -> NodeKind:
    """Coerce a kind name into a NodeKind."""
    try:
        return NodeKind(kind)
    except ValueError:
        raise GraphError(
            f"Unknown node kind '{kind}'. "
            f"Available kinds: {[k.value for k in NodeKind]}"
        )


def parse_config(
    kind: NodeKind,
    raw: Optional[Union[Dict[str, Any], NodeConfig]] = None
) -> NodeConfig:
    """
    Validate a raw configuration mapping against the model for `kind`.

    Raises:
        GraphError: If the configuration is invalid for the kind
    """
    model = CONFIG_MODELS[kind]
    if isinstance(raw, model):
        return raw
    if isinstance(raw, NodeConfig):
        raw = raw.model_dump()
    try:
        return model.model_validate(raw or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise GraphError(f"Invalid {kind.value} config: {problems}") from e


def describe_config_fields(kind: NodeKind) -> List[Dict[str, Any]]:
    """List the configuration fields of a kind with their defaults."""
    model = CONFIG_MODELS[kind]
    defaults = model().model_dump(by_alias=True)
    fields = []
    for name, info in model.model_fields.items():
        key = info.alias or name
        fields.append({
            "id": key,
            "type": getattr(info.annotation, "__name__", str(info.annotation)),
            "default": defaults.get(key),
        })
    return fields


# ============================================================
# Node
# ============================================================

@dataclass
class Node:
    """
    A node in the workflow graph.

    Attributes:
        id: Unique identifier within the graph
        kind: The node kind, selects the action that runs
        label: Display string, no semantic role
        config: Typed configuration for the kind (dicts are validated)
        status: Status within the current or last run
        last_result: Output of the last successful or partial action
        error_details: Failure message when status is error or warning
    """

    id: str
    kind: NodeKind
    label: str = ""
    config: Optional[NodeConfig] = None
    status: NodeStatus = NodeStatus.IDLE
    last_result: Any = None
    error_details: Optional[str] = None

    def __post_init__(self):
        """Validate the node after initialization."""
        if not self.id:
            raise GraphError("Node id cannot be empty")
        self.kind = parse_kind(self.kind)
        self.config = parse_config(self.kind, self.config)
        self.status = NodeStatus(self.status)
        if not self.label:
            self.label = self.kind.value.replace("_", " ").title()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node definition (statuses are not persisted)."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "label": self.label,
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        kind = data.get("kind") or data.get("type")
        if kind is None:
            raise GraphError(f"Node '{data.get('id')}' has no kind")
        return cls(
            id=data.get("id", ""),
            kind=kind,
            label=data.get("label", ""),
            config=data.get("config") or {},
        )
