"""
Actions package - Node action registry, built-in actions and providers.
"""

from actionflow.actions.errors import ActionError
from actionflow.actions.registry import (
    ActionRegistry,
    ActionResult,
    action_registry,
    builtin_action,
    get_action_registry,
)
from actionflow.actions.providers import GenerationProvider, GeminiProvider, ProviderError

# Import builtin actions to register them
import actionflow.actions.builtin  # noqa: F401

__all__ = [
    "ActionError",
    "ActionRegistry",
    "ActionResult",
    "action_registry",
    "builtin_action",
    "get_action_registry",
    "GenerationProvider",
    "GeminiProvider",
    "ProviderError",
]
