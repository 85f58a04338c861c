"""External request schemas for job and index endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RagChunkInput(BaseModel):
    text: str = Field(min_length=1)
    page: int | None = Field(default=None, ge=1)
    ordinal: int | None = Field(default=None, ge=0)
    meta: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")


class RagBuildRequest(BaseModel):
    name: str | None = None
    chunks: list[RagChunkInput] = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


class RagSearchRequest(BaseModel):
    """Search one index, chosen explicitly or through niveau/matiere lookup."""

    query: str = Field(min_length=1)
    k: int = Field(default=10, ge=1, le=100)
    index_id: str | None = None
    niveau: str | None = None
    matiere: str | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_target(self) -> "RagSearchRequest":
        if self.index_id and (self.niveau or self.matiere):
            raise ValueError("Provide either index_id or niveau/matiere, not both.")
        return self


__all__ = ["RagBuildRequest", "RagChunkInput", "RagSearchRequest"]
