"""Serial task queue for worker round trips.

The worker process holds a single mutable analysis state, so it must never
see two requests at once. Commands arrive from the UI whenever the user
clicks, so this module provides a TaskQueue that runs queued coroutines one
at a time, in the order they were pushed.

Callers push a task and move on. Outcomes are never returned through the
queue; each task reports its own result (normally by signalling the UI).
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from .types import Task

logger = logging.getLogger(__name__)


class TaskQueue:
    """Runs asynchronous tasks strictly one after another.

    Dispatch is gated on an explicit busy flag that is set when a task is
    started and cleared only once the backlog has drained. Backlog length is
    never used to decide whether to start work: a task that was already
    taken off the backlog may still be pending.

    A failed task is logged and the next one starts; the queue itself never
    raises. A task that never settles stalls every task behind it, since
    nothing here applies timeouts.

    Must be used from the thread running the event loop.
    """

    def __init__(self) -> None:
        self._backlog: Deque[Task] = deque()
        self._busy = False
        self._drainer: Optional[asyncio.Task[None]] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._dispatched = 0

    def push(self, task: Task) -> None:
        """Queue a task and return immediately.

        Args:
            task: Zero-argument callable returning an awaitable.
        """
        self._backlog.append(task)
        logger.debug("Queued task (pending: %d, busy: %s)", len(self._backlog), self._busy)
        if self._busy:
            return

        self._busy = True
        self._idle.clear()
        self._drainer = asyncio.get_running_loop().create_task(
            self._drain(), name="task-queue-drain"
        )

    @property
    def pending_count(self) -> int:
        """Number of tasks waiting to be dispatched (excludes the running one)."""
        return len(self._backlog)

    @property
    def is_busy(self) -> bool:
        """Whether a task is in flight."""
        return self._busy

    @property
    def dispatched_count(self) -> int:
        """Total number of tasks started since the queue was created."""
        return self._dispatched

    async def join(self) -> None:
        """Wait until the backlog is empty and no task is in flight."""
        await self._idle.wait()

    async def _drain(self) -> None:
        """Dispatch queued tasks until the backlog is empty."""
        try:
            while self._backlog:
                task = self._backlog.popleft()
                self._dispatched += 1
                try:
                    await task()
                except Exception:
                    logger.exception("Queued task failed; continuing with the next task")
        finally:
            self._busy = False
            self._drainer = None
            self._idle.set()
