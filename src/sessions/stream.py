"""Server-sent event stream of job snapshots."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional

from schemas.internal.jobs import JobPhase
from sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]

_TERMINAL = {JobPhase.COMPLETE.value, JobPhase.ERROR.value}


def format_sse(payload: Mapping[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class ProgressStream:
    """Snapshots of one job at a fixed cadence until it reaches a terminal phase.

    The stream holds a watcher slot in the registry for its whole lifetime and
    releases it on every exit path: terminal snapshot sent, session gone,
    consumer disconnected, or generator closed by the server.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        job_id: str,
        *,
        interval: float = 0.8,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._registry = registry
        self._job_id = job_id
        self._interval = interval
        self._is_disconnected = is_disconnected

    def __aiter__(self) -> AsyncIterator[str]:
        return self.frames()

    async def frames(self) -> AsyncIterator[str]:
        with self._registry.watch(self._job_id):
            while True:
                if self._is_disconnected is not None and await self._is_disconnected():
                    logger.debug("Stream consumer for %s disconnected", self._job_id)
                    return
                snapshot = self._registry.snapshot(self._job_id)
                if snapshot is None:
                    return
                yield format_sse(snapshot)
                if snapshot["phase"] in _TERMINAL:
                    return
                await asyncio.sleep(self._interval)


__all__ = ["DisconnectCheck", "ProgressStream", "format_sse"]
