"""Bounded-concurrency execution of independent async calls."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")

DEFAULT_CONCURRENCY = 5


async def gather_bounded(
    calls: Sequence[Callable[[], Awaitable[T]]],
    limit: int = DEFAULT_CONCURRENCY,
) -> list[T]:
    """Run zero-argument coroutine factories with at most ``limit`` in flight.

    Every call runs to completion.  Results keep the input order.

    Args:
        calls: Coroutine factories.
        limit: Maximum number of calls awaited concurrently.

    Returns:
        Results in the same order as ``calls``.

    Raises:
        Exception: The first (in input order) exception raised by any call.
    """
    if limit < 1:
        msg = f"limit must be at least 1, got {limit}"
        raise ValueError(msg)

    semaphore = asyncio.Semaphore(limit)

    async def _run(call: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await call()

    results = await asyncio.gather(*(_run(call) for call in calls), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results  # type: ignore[return-value]
