import asyncio
import logging
from typing import Coroutine, Set

logger = logging.getLogger(__name__)


class TaskTracker:
    """Owns detached background tasks so failures are logged and tasks can be awaited."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: str = "background") -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.debug(f"Started background task {name}")
        return task

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Task {task.get_name()} was cancelled")
        elif task.exception() is not None:
            exc = task.exception()
            logger.error(f"Task {task.get_name()} failed with exception: {exc}", exc_info=exc)

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def wait_all(self):
        """Await every tracked task, including ones spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self):
        for task in list(self._tasks):
            task.cancel()
        await self.wait_all()
