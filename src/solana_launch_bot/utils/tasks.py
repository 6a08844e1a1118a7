"""Detached background tasks whose failures are logged, never raised."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional, Set

from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS


class TaskSupervisor:
    """Holds references to fire-and-forget tasks and reports their failures."""

    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._logger = get_logger(__name__)

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name or self._name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            METRICS.increment(f"tasks.{self._name}.failures")
            self._logger.error(
                "Background task %s failed: %s", task.get_name(), exc, exc_info=exc
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks, cancelling whatever is left after ``timeout``."""

        if not self._tasks:
            return
        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)


__all__ = ["TaskSupervisor"]
