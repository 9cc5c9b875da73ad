"""Supervised background tasks.

Work that continues after the caller has returned (audio upload, pipeline
runs) is spawned here. The supervisor holds a reference to each task until
it finishes and routes any escaped exception to an error reporter, so a
failure is written to the meeting record instead of disappearing.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()

ErrorReporter = Callable[[BaseException], Awaitable[None]]


class TaskSupervisor:
    """Tracks background tasks and reports their failures."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        name: str,
        on_error: ErrorReporter | None = None,
    ) -> asyncio.Task:
        """Run coro in the background.

        Args:
            coro: Coroutine to run
            name: Task name used in logs
            on_error: Awaited with the exception if the task fails

        Returns:
            The created task
        """
        task = asyncio.create_task(self._guard(coro, name, on_error), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(
        self,
        coro: Coroutine[Any, Any, Any],
        name: str,
        on_error: ErrorReporter | None,
    ) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning("background task cancelled", task=name)
            raise
        except Exception as e:
            logger.exception("background task failed", task=name, error=str(e))
            if on_error is None:
                return
            try:
                await on_error(e)
            except Exception as report_error:
                logger.error(
                    "failed to report background task error",
                    task=name,
                    error=str(report_error),
                )

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()
