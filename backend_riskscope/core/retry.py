"""
Bounded retry with fixed backoff and a per-attempt timeout, for external calls
(social fetch, blockchain fetch, narrative generation). Cancellation is never
retried; the last failure is re-raised once attempts run out.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SEC = 0.5


async def call_with_retries(
    fn: Callable[[], Awaitable[T]],
    *,
    operation: str,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_sec: float = DEFAULT_BACKOFF_SEC,
    timeout_sec: float | None = None,
    **log_context: Any,
) -> T:
    """
    Await fn() up to `attempts` times, sleeping `backoff_sec` between attempts.

    Each attempt is bounded by `timeout_sec` (None = unbounded). Any Exception
    (including TimeoutError) triggers a retry; asyncio.CancelledError does not.
    """

    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retry_scheduled",
            operation=operation,
            attempt=state.attempt_number,
            max_attempts=attempts,
            error=repr(exc),
            **log_context,
        )

    result: T
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_fixed(max(0.0, backoff_sec)),
        retry=retry_if_exception_type(Exception),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            if timeout_sec is None:
                result = await fn()
            else:
                result = await asyncio.wait_for(fn(), timeout=timeout_sec)
    return result
