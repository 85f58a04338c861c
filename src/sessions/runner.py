"""Supervised background execution of job coroutines."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Set

from schemas.internal.jobs import JobPhase
from sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)


class JobRunner:
    """Owns background job tasks and turns their crashes into ``phase=error``."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def submit(self, job_id: str, job: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(
            self._supervise(job_id, job), name=f"job-{job_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join(self) -> None:
        """Wait for every task submitted so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()

    async def _supervise(self, job_id: str, job: Coroutine[Any, Any, None]) -> None:
        try:
            await job
        except asyncio.CancelledError:
            self._registry.update(
                job_id,
                {"phase": JobPhase.ERROR, "message": "Job interrupted", "error": "interrupted"},
                log="Job interrupted",
            )
            raise
        except Exception as exc:
            logger.exception("Job %s crashed", job_id)
            message = str(exc) or type(exc).__name__
            self._registry.update(
                job_id,
                {"phase": JobPhase.ERROR, "message": f"Error: {message}", "error": message},
                log=f"Error: {message}",
            )


__all__ = ["JobRunner"]
