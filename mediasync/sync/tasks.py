"""Tracking of fire-and-forget background work."""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Owns every background task the engine spawns.

    Started tasks are never cancelled. ``stop_accepting`` refuses new work
    for session teardown; ``drain`` waits for what is already running.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task | None:
        """Schedule a coroutine in the background.

        Returns:
            The task, or None if new work is no longer accepted.
        """
        if not self._accepting:
            logger.debug(f"Refusing background task {name}: not accepting new work")
            coro.close()
            return None

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)

    def stop_accepting(self) -> None:
        self._accepting = False
        logger.info("Background work is no longer accepted")

    def resume(self) -> None:
        self._accepting = True

    async def drain(self) -> None:
        """Wait until every background task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
