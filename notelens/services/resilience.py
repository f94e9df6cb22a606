"""
Resilience Primitives

Provider-agnostic combinators over async operations: bounded-time
execution, retry with exponential backoff, ordered fan-out/fan-in and
bulk cancellation.

Retry is always opt-in. Provider fallback in the orchestrator never
retries implicitly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notelens.errors import ProviderTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(
    aw: Awaitable[T],
    seconds: float,
    provider: str = "unknown",
) -> T:
    """
    Await ``aw`` for at most ``seconds``.

    The losing side is cancelled: on timeout the wrapped operation is
    cancelled before ``ProviderTimeout`` is raised.
    """
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except TimeoutError as e:
        raise ProviderTimeout(f"Timed out after {seconds:g}s", provider=provider) from e


async def retry_with_backoff(
    op: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[BaseException] | tuple[type[BaseException], ...] = Exception,
) -> T:
    """
    Call ``op`` until it succeeds or ``max_attempts`` calls have failed.

    Delays grow exponentially from ``initial_delay`` (1s, 2s, 4s, ...)
    and are capped at ``max_delay``. The last error is re-raised.

    Args:
        op: Zero-argument factory returning a fresh awaitable per attempt.
        max_attempts: Total number of calls, including the first.
        initial_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for a single delay.
        retry_on: Exception types that trigger another attempt.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=initial_delay, max=max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await op()
    raise AssertionError("unreachable: tenacity re-raises after the last attempt")


async def run_parallel(
    aws: Iterable[Awaitable[T]],
    *,
    limit: int | None = None,
    return_exceptions: bool = False,
) -> list[Any]:
    """
    Run awaitables concurrently and collect results in input order.

    Args:
        aws: Awaitables to run. Result ``i`` belongs to awaitable ``i``
            regardless of completion order.
        limit: Maximum number running at once (None = unbounded).
        return_exceptions: Put exceptions in the result list instead of
            raising. When False, the first failure cancels the rest.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    semaphore = asyncio.Semaphore(limit) if limit is not None else None

    async def _run(aw: Awaitable[T]) -> T:
        if semaphore is None:
            return await aw
        async with semaphore:
            return await aw

    tasks = [asyncio.ensure_future(_run(aw)) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks, return_exceptions=return_exceptions))
    except BaseException:
        await cancel_all(tasks)
        raise


async def cancel_all(tasks: Iterable[asyncio.Future[Any]]) -> None:
    """
    Cancel every task and wait until each one has observed it.

    Already finished tasks are left alone. Never raises for the tasks'
    own errors.
    """
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
