"""Bookkeeping for the background tasks that drive a started chain."""

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class TaskSet:
    """Strong references to the tasks of one chain run.

    The event loop only keeps weak references to tasks, so a chain started
    with ``start()`` would risk being garbage collected mid-flight without
    an owner. TaskSet owns the tasks, forgets them once they are done and
    logs any that crash with an unexpected exception.
    """

    def __init__(self, name: str):
        """Create an empty task set bound to the running loop.

        Args:
            name: Label used in task names and logs

        Raises:
            RuntimeError: If no event loop is running
        """
        self.name = name
        self._loop = asyncio.get_running_loop()
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        """Number of tasks still running."""
        return sum(1 for task in self._tasks if not task.done())

    @property
    def done(self) -> bool:
        """True once every spawned task has finished."""
        return all(task.done() for task in self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Schedule a coroutine as a task owned by this set."""
        task = self._loop.create_task(coro, name=f"{self.name}:{name}" if name else self.name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)

        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.error("Task %s crashed", task.get_name(), exc_info=error)

    def cancel(self):
        """Cancel every task still running."""
        for task in list(self._tasks):
            task.cancel()

    async def wait(self):
        """Wait until every task has finished, cancelled ones included."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.wait(pending)
