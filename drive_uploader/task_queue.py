"""
Module containing a bounded-concurrency queue for upload tasks.
"""
import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Set

from .errors import ValidationError
from .models import QueueStats

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class ConcurrencyQueue:
    """Runs submitted tasks with at most ``max_concurrency`` in flight.

    Finishing a task immediately admits the next one from the backlog. A
    failing task is counted and logged; it never stops the others.

    All methods must be called from the event loop that runs the tasks.
    """

    def __init__(self, max_concurrency: int, total_tasks: int):
        """Initialize the queue.

        Args:
            max_concurrency: Maximum number of tasks running at once
            total_tasks: Number of tasks expected, used for reporting
        """
        if max_concurrency < 1:
            raise ValidationError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.max_concurrency = max_concurrency
        self.total_tasks = total_tasks
        self._backlog: Deque[Task] = deque()
        self._running = 0
        self._success = 0
        self._failed = 0
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def running(self) -> int:
        return self._running

    @property
    def pending(self) -> int:
        return len(self._backlog)

    def submit(self, task: Task) -> None:
        """Add a task to the backlog and start it if there is capacity.

        Returns immediately; results are only visible through stats().
        """
        self._backlog.append(task)
        self._idle.clear()
        self._admit()

    def _admit(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running < self.max_concurrency and self._backlog:
            task = self._backlog.popleft()
            self._running += 1
            handle = loop.create_task(self._execute(task))
            self._tasks.add(handle)
            handle.add_done_callback(self._tasks.discard)

    async def _execute(self, task: Task) -> None:
        try:
            await task()
            self._success += 1
        except Exception as e:
            self._failed += 1
            logger.debug(f"Task failed: {e}")
        finally:
            self._running -= 1
            self._admit()
            if not self._backlog and self._running == 0:
                self._idle.set()

    async def wait_for_completion(self) -> None:
        """Wait until the backlog is empty and no task is running."""
        await self._idle.wait()

    def stats(self) -> QueueStats:
        return QueueStats(success=self._success, failed=self._failed, total=self.total_tasks)
