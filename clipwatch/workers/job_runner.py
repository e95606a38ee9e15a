"""Bounded-concurrency work queue using asyncio."""
import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Set

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]


class WorkQueue:
    """
    FIFO queue of deferred async tasks with a concurrency limit.

    Tasks are zero-argument callables returning an awaitable; nothing runs
    until the dispatcher admits it. When a running task finishes, whether it
    succeeded or raised, its slot is freed and the next queued task starts.
    """

    def __init__(self, max_concurrent: int = 1):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self._pending: Deque[TaskFactory] = deque()
        self._running: Set[asyncio.Task] = set()
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def active_count(self) -> int:
        return len(self._running)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def enqueue(self, task: TaskFactory):
        """Append a task and start it immediately if a slot is free."""
        self._pending.append(task)
        self._drained.clear()
        self._dispatch()

    def _dispatch(self):
        while len(self._running) < self.max_concurrent and self._pending:
            factory = self._pending.popleft()
            task = asyncio.create_task(self._run(factory))
            self._running.add(task)
            task.add_done_callback(self._on_done)

    async def _run(self, factory: TaskFactory):
        try:
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Queued task raised: {e}")

    def _on_done(self, task: asyncio.Task):
        self._running.discard(task)
        self._dispatch()
        if not self._running and not self._pending:
            self._drained.set()

    async def join(self):
        """Wait until every queued and running task has finished."""
        await self._drained.wait()

    async def shutdown(self):
        """Drop queued tasks and cancel running ones."""
        self._pending.clear()
        running = list(self._running)
        for task in running:
            task.cancel()

        if running:
            await asyncio.gather(*running, return_exceptions=True)

        self._running.clear()
        self._drained.set()
