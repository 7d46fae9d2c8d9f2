"""
Action Registry for Actionflow.

Maps each node kind to the action that runs it. Actions receive the
node's typed config, the upstream input and the registry itself (for
shared collaborators such as the generation provider and the clock),
and return an output or raise ActionError.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from dataclasses import dataclass
from datetime import datetime, timezone
import inspect
import logging

import httpx

from actionflow.actions.errors import ActionError
from actionflow.actions.providers import GenerationProvider, GeminiProvider
from actionflow.config import settings
from actionflow.engine.node import (
    NodeConfig,
    NodeKind,
    describe_config_fields,
    parse_config,
    parse_kind,
)


logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """
    Output of one action.

    Attributes:
        output: Value passed to the node's successors
        branch: Branch decision ("true"/"false") for conditional nodes
    """
    output: Any = None
    branch: Optional[str] = None


Action = Callable[[NodeConfig, Any, "ActionRegistry"], Union[Any, Awaitable[Any]]]


@dataclass
class ActionInfo:
    """Display metadata for a node kind in the node library."""
    label: str
    description: str = ""


# Handlers registered with @builtin_action, shared by every registry
_builtin_actions: Dict[NodeKind, Action] = {}
_builtin_info: Dict[NodeKind, ActionInfo] = {}


def builtin_action(kind: NodeKind, label: str = "", description: str = "") -> Callable:
    """
    Decorator to register a built-in action for a node kind.

    Usage:
        @builtin_action(NodeKind.LOG, label="Log")
        async def log_action(config, input_data, registry):
            return input_data
    """
    def decorator(func: Action) -> Action:
        _builtin_actions[kind] = func
        _builtin_info[kind] = ActionInfo(
            label=label or kind.value.replace("_", " ").title(),
            description=(description or func.__doc__ or "").strip(),
        )
        logger.debug(f"Registered builtin action: {kind.value}")
        return func
    return decorator


class ActionRegistry:
    """
    Dispatch table from node kind to action.

    Built-in actions are always available; `register` overrides them per
    registry instance, which keeps tests and alternative deployments from
    touching the shared table.

    Usage:
        registry = ActionRegistry(provider=my_provider)

        @registry.register(NodeKind.ACTION)
        async def custom(config, input_data, registry):
            return {"handled": input_data}

        result = await registry.execute(NodeKind.ACTION, {}, "hello")
    """

    def __init__(
        self,
        provider: Optional[GenerationProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
        mock_http: Optional[bool] = None,
        http_timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.mock_http = settings.HTTP_MOCK_REQUESTS if mock_http is None else mock_http
        self.http_timeout = settings.HTTP_TIMEOUT if http_timeout is None else http_timeout
        self.http_transport = http_transport
        self._actions: Dict[NodeKind, Action] = {}

    def register(self, kind: Union[NodeKind, str]) -> Callable:
        """Decorator to register or override the action for a kind."""
        def decorator(func: Action) -> Action:
            self.add(kind, func)
            return func
        return decorator

    def add(self, kind: Union[NodeKind, str], func: Action) -> None:
        """Directly add an action (non-decorator version)."""
        kind = parse_kind(kind)
        self._actions[kind] = func
        logger.debug(f"Added action for kind: {kind.value}")

    def get(self, kind: Union[NodeKind, str]) -> Optional[Action]:
        kind = parse_kind(kind)
        return self._actions.get(kind) or _builtin_actions.get(kind)

    def has(self, kind: Union[NodeKind, str]) -> bool:
        return self.get(kind) is not None

    def http_client(self) -> httpx.AsyncClient:
        """Create an HTTP client for live requests."""
        return httpx.AsyncClient(
            timeout=self.http_timeout,
            transport=self.http_transport,
        )

    async def execute(
        self,
        kind: Union[NodeKind, str],
        config: Union[NodeConfig, Dict[str, Any], None],
        input_data: Any,
    ) -> ActionResult:
        """
        Run the action for `kind`.

        Failures of any kind are normalized into ActionError.

        Raises:
            ActionError: If the action fails or no action is registered
        """
        kind = parse_kind(kind)
        action = self.get(kind)
        if action is None:
            raise ActionError(f"No action registered for node kind '{kind.value}'")

        config = parse_config(kind, config)
        try:
            result = action(config, input_data, self)
            if inspect.isawaitable(result):
                result = await result
        except ActionError:
            raise
        except Exception as e:
            logger.warning(f"Action '{kind.value}' raised {type(e).__name__}: {e}")
            raise ActionError(str(e) or type(e).__name__) from e

        if isinstance(result, ActionResult):
            return result
        return ActionResult(output=result)

    def list_actions(self) -> List[Dict[str, Any]]:
        """Describe every node kind for the node library."""
        return [self.describe(kind) for kind in NodeKind]

    def describe(self, kind: Union[NodeKind, str]) -> Dict[str, Any]:
        kind = parse_kind(kind)
        info = _builtin_info.get(kind) or ActionInfo(label=kind.value)
        return {
            "kind": kind.value,
            "label": info.label,
            "description": info.description,
            "registered": self.has(kind),
            "fields": describe_config_fields(kind),
        }


# Global action registry instance
action_registry = ActionRegistry(provider=GeminiProvider())


def get_action_registry() -> ActionRegistry:
    """Get the global action registry."""
    return action_registry
