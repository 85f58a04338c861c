"""Job session state shared by the registry and the streaming gateway."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobKind(str, Enum):
    IMPORT = "import"
    CORRECTION = "correction"


class JobPhase(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _PHASE_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETE, JobPhase.ERROR)


_PHASE_RANK = {
    JobPhase.QUEUED: 0,
    JobPhase.RUNNING: 1,
    JobPhase.COMPLETE: 2,
    JobPhase.ERROR: 2,
}


class JobSession(BaseModel):
    """Snapshot of one job. The result payload lives beside it, never inside."""

    id: str
    kind: JobKind
    progress: int = Field(default=0, ge=0, le=100)
    phase: JobPhase = JobPhase.QUEUED
    message: str = ""
    logs: List[str] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)
    cancelled: bool = False
    error: Optional[str] = None
    owner_id: Optional[str] = None
    file_name: Optional[str] = None
    has_result: bool = False
    created_at: float
    last_updated: float

    model_config = ConfigDict(extra="forbid")


class JobSummary(BaseModel):
    """Compact listing entry used to resume background jobs."""

    id: str
    kind: JobKind
    phase: JobPhase
    progress: int
    message: str
    file_name: Optional[str] = None
    created_at: float
    last_updated: float

    model_config = ConfigDict(extra="forbid")


__all__ = ["JobKind", "JobPhase", "JobSession", "JobSummary"]
