"""Fire-and-forget execution of non-critical search side effects.

Cache writes and history recording must never block or fail a search
response. ``TaskRunner.submit`` schedules the coroutine on the running loop,
keeps a strong reference until it finishes, and logs its failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from notesearch.search.errors import SearchError

logger = logging.getLogger(__name__)


class TaskRunner:
    """Track background tasks for one process."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, SearchError):
            logger.error("Background task %s failed (%s): %s", task.get_name(), exc.kind, exc.message)
        else:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks (shutdown, tests). Failures stay logged only."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("%d background task(s) still running after drain", len(pending))
