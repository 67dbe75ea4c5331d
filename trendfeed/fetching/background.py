"""Fire-and-forget task runner with an observable error channel."""

import asyncio
from typing import Awaitable, List, Set, Tuple

import structlog

logger = structlog.get_logger()


class BackgroundTasks:
    """Runs side-effect coroutines without blocking the caller.

    Keeps a strong reference to every task until it settles, logs and
    records failures instead of letting them vanish with the task.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.errors: List[Tuple[str, BaseException]] = []

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.errors.append((task.get_name(), exc))
            logger.error("background_task_failed", task=task.get_name(), error=str(exc))

    async def drain(self) -> None:
        """Wait until every spawned task has settled."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        # done-callbacks run on the next loop iteration
        await asyncio.sleep(0)
