"""Schema package for external and internal contracts."""

from .requests import RagBuildRequest, RagChunkInput, RagSearchRequest
from .responses import (
    JobListResponse,
    JobStartResponse,
    OkResponse,
    RagBuildResponse,
    RagIndexInfo,
    RagSearchHit,
    RagSearchResponse,
)

__all__ = [
    "JobListResponse",
    "JobStartResponse",
    "OkResponse",
    "RagBuildRequest",
    "RagBuildResponse",
    "RagChunkInput",
    "RagIndexInfo",
    "RagSearchHit",
    "RagSearchRequest",
    "RagSearchResponse",
]
