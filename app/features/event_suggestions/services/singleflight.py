"""
Keyed singleflight coordination for asyncio.

At most one execution per key runs at a time; every caller that arrives
while it is pending awaits the same task and observes the same result or
exception. The registry entry is dropped from the task's done-callback, so
it disappears on success, failure and cancellation alike.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Registry of in-flight tasks keyed by an arbitrary string."""

    def __init__(self, name: str = "singleflight"):
        self.name = name
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def in_flight(self, key: str) -> bool:
        return key in self._tasks

    def get_or_start(self, key: str, factory: Callable[[], Awaitable[T]]) -> tuple[asyncio.Task[T], bool]:
        """
        Return the pending task for ``key``, starting one if none exists.

        The lookup and the insert happen without yielding to the event loop,
        so two concurrent callers can never both start work for one key.

        Returns:
            (task, started) where ``started`` is True if this call created it.
        """
        task = self._tasks.get(key)
        if task is not None:
            return task, False

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda finished: self._forget(key, finished))
        return task, True

    async def do(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory`` once per key across concurrent callers.

        Waiters are shielded: a caller that gets cancelled stops waiting, but
        the shared task keeps running for everyone else.
        """
        task, _ = self.get_or_start(key, factory)
        return await asyncio.shield(task)

    def _forget(self, key: str, finished: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is finished:
            del self._tasks[key]
        # Mark the exception retrieved.
        if not finished.cancelled():
            finished.exception()
