"""Process-wide job session registry.

Every mutation of a session goes through :meth:`SessionRegistry.update`,
which performs the read-modify-write under that session's own lock. Logs
are only ever appended, ``progress`` never decreases and ``phase`` only
moves forward (``queued -> running -> complete | error``). Result bytes are
kept beside the session and never appear in snapshots.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from schemas.internal.jobs import JobKind, JobPhase, JobSession, JobSummary

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"
RESULT_ARTIFACT = "result"

_PATCHABLE = frozenset(
    {"progress", "phase", "message", "stats", "cancelled", "error", "has_result"}
)


class SessionRegistry:
    """TTL-evicted store of :class:`JobSession` records keyed by job id."""

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._sessions: Dict[str, JobSession] = {}
        self._artifacts: Dict[str, Dict[str, bytes]] = {}
        self._watchers: Dict[str, int] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(
        self,
        kind: JobKind,
        *,
        job_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        file_name: Optional[str] = None,
        message: str = "Queued",
    ) -> JobSession:
        now = self._clock()
        session = JobSession(
            id=job_id or uuid.uuid4().hex,
            kind=kind,
            message=message,
            owner_id=owner_id,
            file_name=file_name,
            created_at=now,
            last_updated=now,
        )
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session already exists: {session.id}")
            self._sessions[session.id] = session
            self._key_locks[session.id] = threading.Lock()
        logger.debug("Created %s session %s", kind.value, session.id)
        return session.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[JobSession]:
        lock = self._key_lock(job_id)
        if lock is None:
            return None
        with lock:
            session = self._sessions.get(job_id)
            return session.model_copy(deep=True) if session is not None else None

    def snapshot(self, job_id: str) -> Optional[Dict[str, Any]]:
        session = self.get(job_id)
        return session.model_dump(mode="json") if session is not None else None

    def update(
        self,
        job_id: str,
        patch: Optional[Mapping[str, Any]] = None,
        *,
        log: Optional[str] = None,
    ) -> Optional[JobSession]:
        """Apply ``patch`` (and append ``log``) atomically; ``None`` if unknown."""
        patch = dict(patch or {})
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Unknown session fields: {', '.join(sorted(unknown))}")

        lock = self._key_lock(job_id)
        if lock is None:
            return None
        with lock:
            current = self._sessions.get(job_id)
            if current is None:
                return None
            updated = self._merge(current, patch, log)
            self._sessions[job_id] = updated
            return updated.model_copy(deep=True)

    def cancel(self, job_id: str) -> Optional[JobSession]:
        """Mark a job cancelled and terminal; running loops stop on their next poll."""
        session = self.update(
            job_id,
            {"cancelled": True, "phase": JobPhase.COMPLETE, "message": CANCELLED_MESSAGE},
            log=CANCELLED_MESSAGE,
        )
        if session is not None:
            logger.info("Cancelled session %s", job_id)
        return session

    def is_cancelled(self, job_id: str) -> bool:
        """True once cancelled, and for sessions that no longer exist."""
        session = self.get(job_id)
        return session is None or session.cancelled

    def set_artifact(self, job_id: str, name: str, data: bytes) -> bool:
        lock = self._key_lock(job_id)
        if lock is None:
            return False
        with lock:
            if job_id not in self._sessions:
                return False
            self._artifacts.setdefault(job_id, {})[name] = bytes(data)
            return True

    def get_artifact(self, job_id: str, name: str) -> Optional[bytes]:
        with self._lock:
            return self._artifacts.get(job_id, {}).get(name)

    def set_result(self, job_id: str, data: bytes) -> bool:
        if not self.set_artifact(job_id, RESULT_ARTIFACT, data):
            return False
        self.update(job_id, {"has_result": True})
        return True

    def get_result(self, job_id: str) -> Optional[bytes]:
        return self.get_artifact(job_id, RESULT_ARTIFACT)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(job_id, None) is not None
            self._artifacts.pop(job_id, None)
            self._key_locks.pop(job_id, None)
        return existed

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """Evict terminal sessions idle for longer than the TTL."""
        cutoff = (self._clock() if now is None else now) - self._ttl
        with self._lock:
            expired = [
                job_id
                for job_id, session in self._sessions.items()
                if session.phase.is_terminal and session.last_updated < cutoff
            ]
        for job_id in expired:
            self.delete(job_id)
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        return expired

    async def run_sweeper(self, interval: float) -> None:
        """Sweep forever every ``interval`` seconds; stop by cancelling the task."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def list_sessions(
        self,
        *,
        owner_id: Optional[str] = None,
        kind: Optional[JobKind] = None,
        limit: int = 5,
    ) -> List[JobSummary]:
        with self._lock:
            sessions = list(self._sessions.values())
        matching = [
            session
            for session in sessions
            if (owner_id is None or session.owner_id == owner_id)
            and (kind is None or session.kind == kind)
        ]
        matching.sort(key=lambda session: session.created_at, reverse=True)
        return [
            JobSummary(
                id=session.id,
                kind=session.kind,
                phase=session.phase,
                progress=session.progress,
                message=session.message,
                file_name=session.file_name,
                created_at=session.created_at,
                last_updated=session.last_updated,
            )
            for session in matching[: max(0, limit)]
        ]

    @contextmanager
    def watch(self, job_id: str) -> Iterator[None]:
        """Count an open stream on ``job_id`` for as long as the block runs."""
        with self._lock:
            self._watchers[job_id] = self._watchers.get(job_id, 0) + 1
        try:
            yield
        finally:
            with self._lock:
                remaining = self._watchers.get(job_id, 0) - 1
                if remaining > 0:
                    self._watchers[job_id] = remaining
                else:
                    self._watchers.pop(job_id, None)

    def watcher_count(self, job_id: Optional[str] = None) -> int:
        with self._lock:
            if job_id is None:
                return sum(self._watchers.values())
            return self._watchers.get(job_id, 0)

    def _key_lock(self, job_id: str) -> Optional[threading.Lock]:
        with self._lock:
            return self._key_locks.get(job_id)

    def _merge(
        self, current: JobSession, patch: Dict[str, Any], log: Optional[str]
    ) -> JobSession:
        changes: Dict[str, Any] = {"last_updated": self._clock()}
        if log:
            changes["logs"] = [*current.logs, log]
        if "stats" in patch and patch["stats"] is not None:
            changes["stats"] = {**current.stats, **dict(patch["stats"])}
        if patch.get("has_result"):
            changes["has_result"] = True
        if patch.get("cancelled"):
            changes["cancelled"] = True

        if not current.phase.is_terminal:
            if "phase" in patch:
                phase = JobPhase(patch["phase"])
                if phase.rank >= current.phase.rank:
                    changes["phase"] = phase
            if "progress" in patch:
                progress = max(0, min(100, int(patch["progress"])))
                changes["progress"] = max(current.progress, progress)
            if "message" in patch:
                changes["message"] = str(patch["message"])
            if "error" in patch:
                changes["error"] = patch["error"]
            if changes.get("phase") == JobPhase.COMPLETE and not changes.get("cancelled"):
                changes["progress"] = 100

        return current.model_copy(update=changes)


__all__ = ["CANCELLED_MESSAGE", "RESULT_ARTIFACT", "SessionRegistry"]
