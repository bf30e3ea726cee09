"""Deadline guard for hook operations.

run_with_deadline races an operation against a deadline and returns
whichever settles first.

Limitation: the guard stops *waiting* for an operation that misses its
deadline; it does not cancel or kill it. The abandoned task keeps running
on the event loop until it finishes on its own. Hook and rule authors must
make their work safe to abandon: no unguarded side effects after the
deadline. Synchronous callables cannot be preempted at all: they run to
completion, and a result that arrives after the deadline is discarded and
reported as a timeout.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from hookguard.exceptions import HookTimeoutError

logger = logging.getLogger(__name__)

# A zero-argument callable returning a value or an awaitable
Operation = Callable[[], Any]


def _consume_abandoned(task: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned task so it is never reported as unhandled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned operation failed after its deadline: %r", exc)


async def run_with_deadline(operation: Operation | Awaitable[Any], deadline_ms: float) -> Any:
    """Run an operation, failing if it does not settle within the deadline.

    Args:
        operation: Zero-argument callable (sync or async) or an awaitable
        deadline_ms: Deadline in milliseconds

    Returns:
        The operation's result

    Raises:
        HookTimeoutError: If the deadline elapses first
        Exception: Whatever the operation raises, unchanged
    """
    if inspect.isawaitable(operation):
        awaitable = operation
    else:
        started = time.perf_counter()
        awaitable = operation()
        if not inspect.isawaitable(awaitable):
            if (time.perf_counter() - started) * 1000 > deadline_ms:
                raise HookTimeoutError(deadline_ms)
            return awaitable

    task = asyncio.ensure_future(awaitable)
    # asyncio.wait owns the deadline timer and releases it on return
    done, _ = await asyncio.wait({task}, timeout=deadline_ms / 1000.0)
    if task in done:
        return task.result()

    task.add_done_callback(_consume_abandoned)
    raise HookTimeoutError(deadline_ms)
