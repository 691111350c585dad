"""Repeating background task abstraction.

Provides a protocol for scheduling cancellable repeating coroutines keyed
by an identifier, with an in-process asyncio implementation.  Each key owns
exactly one handle, and cancelling the handle is the single way to stop it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from loguru import logger

TickFn = Callable[[], Awaitable[bool]]
DelayFn = Callable[[], float]


class TimerHandle:
    """A cancellable handle for one repeating task."""

    def __init__(self, key: str) -> None:
        self.key = key
        self.ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        """Whether the repeating task is still running."""
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        """Stop the repeating task.  Safe to call more than once."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the underlying task has finished."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class RepeatingTaskScheduler(Protocol):
    """Protocol for scheduling repeating background work."""

    def schedule(self, key: str, tick: TickFn, delay: DelayFn) -> TimerHandle:
        """Run ``tick`` after every ``delay()`` seconds until it returns False.

        Args:
            key: Identifier owning the schedule.
            tick: Coroutine function; returning False ends the schedule.
            delay: Called before each sleep to get the next interval.

        Returns:
            The handle for the new schedule.
        """
        ...

    def cancel(self, key: str) -> bool:
        """Cancel the schedule for ``key``.  Returns True if one was active."""
        ...

    def is_scheduled(self, key: str) -> bool:
        """Whether ``key`` has an active schedule."""
        ...

    async def cancel_all(self) -> None:
        """Cancel every schedule and wait for the tasks to finish."""
        ...


class InProcessScheduler:
    """In-process repeating task scheduler using asyncio.

    Each schedule is one ``asyncio.Task`` looping ``sleep(delay()) -> tick()``.
    Scheduling an already scheduled key replaces the previous schedule.
    """

    def __init__(self) -> None:
        self._handles: dict[str, TimerHandle] = {}

    def schedule(self, key: str, tick: TickFn, delay: DelayFn) -> TimerHandle:
        """Run ``tick`` after every ``delay()`` seconds until it returns False.

        Args:
            key: Identifier owning the schedule.
            tick: Coroutine function; returning False ends the schedule.
            delay: Called before each sleep to get the next interval.

        Returns:
            The handle for the new schedule.
        """
        self.cancel(key)
        handle = TimerHandle(key)

        async def _run() -> None:
            try:
                while True:
                    await asyncio.sleep(delay())
                    handle.ticks += 1
                    try:
                        keep_going = await tick()
                    except Exception:
                        logger.exception("Repeating task {} tick failed", key)
                        continue
                    if not keep_going:
                        break
            finally:
                if self._handles.get(key) is handle:
                    del self._handles[key]

        self._handles[key] = handle
        handle._task = asyncio.create_task(_run(), name=f"repeating:{key}")
        return handle

    def cancel(self, key: str) -> bool:
        """Cancel the schedule for ``key``.

        Args:
            key: Identifier owning the schedule.

        Returns:
            True if an active schedule was cancelled.
        """
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        was_active = handle.active
        handle.cancel()
        return was_active

    def is_scheduled(self, key: str) -> bool:
        """Whether ``key`` has an active schedule."""
        handle = self._handles.get(key)
        return handle is not None and handle.active

    def get_handle(self, key: str) -> TimerHandle | None:
        """Return the handle for ``key`` if one is registered."""
        return self._handles.get(key)

    @property
    def scheduled_keys(self) -> list[str]:
        """Keys with a registered schedule."""
        return list(self._handles)

    async def cancel_all(self) -> None:
        """Cancel every schedule and wait for the tasks to finish."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await handle.wait_closed()
