"""
Timer scheduling for background retries.

The delivery queue only needs ``after(delay, task)``. AsyncioScheduler runs
tasks on the running event loop; tests substitute a virtual clock.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    def after(self, delay: float, task: Task) -> None:
        """Run ``task`` once, ``delay`` seconds from now."""
        ...


class AsyncioScheduler:
    """Schedules coroutine functions with ``loop.call_later``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def after(self, delay: float, task: Task) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(max(0.0, delay), self._spawn, loop, task)

    def _spawn(self, loop: asyncio.AbstractEventLoop, task: Task) -> None:
        running = loop.create_task(task())
        # Keep a strong reference until the task finishes
        self._tasks.add(running)
        running.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Scheduled task failed: {task.exception()}")
