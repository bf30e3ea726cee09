"""Opt-in retry wrapper for idempotent hook operations.

The hook core never retries on its own: blind retries of non-idempotent
writes are unsafe. Callers that know an operation is idempotent wrap it
explicitly:

    executor.execute(
        HookKind.BEFORE_UPDATE,
        event,
        with_retry(lambda: lookup_league(event), attempts=config.retry_attempts),
    )
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from hookguard.exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# Deterministic failures, never retried
NON_RETRYABLE: tuple[type[BaseException], ...] = (ValidationError,)


def with_retry(
    operation: Callable[[], Any],
    attempts: int,
    *,
    base_delay: float = 0.0,
    max_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[], Any]:
    """Wrap a zero-argument operation so it is retried on failure.

    Args:
        operation: Zero-argument callable (sync or async)
        attempts: Number of retries after the first try (0 = no retry)
        base_delay: Base delay in seconds for exponential backoff
        max_delay: Maximum delay in seconds between retries
        retry_on: Exception types that trigger a retry

    Returns:
        A zero-argument async callable suitable for HookExecutor.execute
    """
    if attempts < 0:
        raise ConfigurationError("attempts must be >= 0")

    async def run() -> Any:
        for attempt in range(attempts + 1):
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except NON_RETRYABLE:
                raise
            except retry_on as e:
                if attempt >= attempts:
                    raise
                delay = min(base_delay * (2**attempt), max_delay)
                logger.warning(
                    "Operation failed (attempt %d/%d), retrying in %.2fs: %s",
                    attempt + 1,
                    attempts + 1,
                    delay,
                    e,
                )
                if delay:
                    await asyncio.sleep(delay)
        raise RuntimeError("retry loop exhausted without result")

    return run
