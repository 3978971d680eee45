"""
Bounded retry with linear or exponential backoff.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from browserqa.config import RetryPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` up to ``policy.max_retries + 1`` times.

    After failed attempt ``i`` (0-indexed) with ``i < max_retries`` waits
    ``policy.delay_for(i)`` milliseconds. When every attempt fails the last
    error is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory
        policy: Retry policy to apply
        description: Label for the retry log lines
        sleep: Awaitable sleep taking seconds

    Returns:
        The first successful result of ``operation``
    """
    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_retries:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Operation failed, retrying",
                operation=description,
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                delay_ms=delay,
                error=str(e),
            )
            await sleep(delay / 1000)
    raise AssertionError("unreachable")
