"""
Retry Controller.

Runs one action with a bounded number of sequential attempts and a
linear backoff between them. Knows nothing about graphs.
"""

from typing import Any, Awaitable, Callable, Optional
from dataclasses import dataclass
import asyncio
import logging

from actionflow.actions.errors import ActionError


logger = logging.getLogger(__name__)


@dataclass
class RetryOutcome:
    """Result of a retried action."""
    output: Any
    attempts: int
    last_error: Optional[ActionError] = None

    @property
    def succeeded(self) -> bool:
        return self.last_error is None


async def run_with_retry(
    action: Callable[[], Awaitable[Any]],
    max_attempts: int,
    delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryOutcome:
    """
    Run `action` until it succeeds or `max_attempts` is used up.

    Before attempt n (n > 1) the controller waits (n - 1) * delay seconds.
    Only ActionError counts as a failed attempt; anything else propagates.

    Args:
        action: Zero-argument coroutine function performing one attempt
        max_attempts: Total attempts allowed (retry count + 1)
        delay: Base backoff in seconds
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        RetryOutcome with the output or the most recent error
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    last_error: Optional[ActionError] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            wait = (attempt - 1) * delay
            logger.debug(f"Retrying in {wait:.1f}s (attempt {attempt}/{max_attempts})")
            await sleep(wait)
        try:
            output = await action()
            return RetryOutcome(output=output, attempts=attempt)
        except ActionError as e:
            last_error = e
            logger.info(f"Attempt {attempt}/{max_attempts} failed: {e.message}")

    return RetryOutcome(output=None, attempts=max_attempts, last_error=last_error)
