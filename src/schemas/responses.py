"""External response schemas for job and index endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field

from schemas.internal.jobs import JobSummary


class JobStartResponse(BaseModel):
    job_id: str

    model_config = ConfigDict(extra="forbid")


class JobListResponse(BaseModel):
    jobs: List[JobSummary] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class OkResponse(BaseModel):
    ok: bool = True

    model_config = ConfigDict(extra="forbid")


class RagBuildResponse(BaseModel):
    index_id: str
    chunk_count: int

    model_config = ConfigDict(extra="forbid")


class RagIndexInfo(BaseModel):
    index_id: str
    name: str | None = None
    dimension: int
    chunk_count: int
    created_at: datetime

    model_config = ConfigDict(extra="forbid")


class RagSearchHit(BaseModel):
    chunk_id: str
    text: str
    score: float
    page: int | None = None
    ordinal: int | None = None
    meta: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")


class RagSearchResponse(BaseModel):
    index_id: str | None = None
    hits: List[RagSearchHit] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


__all__ = [
    "JobListResponse",
    "JobStartResponse",
    "OkResponse",
    "RagBuildResponse",
    "RagIndexInfo",
    "RagSearchHit",
    "RagSearchResponse",
]
