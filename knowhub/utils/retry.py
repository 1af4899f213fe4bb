"""
Retry-with-backoff for transient provider failures.

Delay before retry ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``.
Only exceptions listed in ``retry_on`` are retried; anything else
propagates on the first attempt.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from knowhub.core.errors import UpstreamError
from knowhub.utils.logging import get_logger

logger = get_logger("knowhub.utils.retry")

T = TypeVar("T")


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Attempt %d failed (%s); retrying in %.2fs",
        state.attempt_number,
        exc,
        state.next_action.sleep if state.next_action else 0.0,
    )


async def with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (UpstreamError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn(*args)`` up to ``max_attempts`` times with exponential backoff.

    ``fn`` may be any callable returning an awaitable (coroutine function,
    bound method, lambda or partial); the awaitable is awaited inside
    each attempt.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn(*args)
