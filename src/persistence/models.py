"""Lightweight persistence records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SpecialtyRecord:
    specialty_id: str
    name: str
    niveau: str | None
    semestre: str | None
    created_at: datetime


@dataclass(frozen=True)
class LectureRecord:
    lecture_id: str
    specialty_id: str
    title: str
    created_at: datetime


@dataclass(frozen=True)
class StoredQuestion:
    question_id: str
    lecture_id: str
    question_type: str
    text: str
    options: tuple[str, ...]
    correct_answers: tuple[str, ...]
    explanation: str | None
    course_reminder: str | None
    number: int | None
    session: str | None
    media_url: str | None
    media_type: str | None
    case_number: int | None
    case_text: str | None
    case_question_number: int | None
    created_at: datetime


@dataclass(frozen=True)
class ChunkInput:
    """A source-document chunk with its computed embedding."""

    text: str
    embedding: tuple[float, ...]
    page: int | None = None
    ordinal: int | None = None
    meta: dict[str, Any] | None = None


@dataclass(frozen=True)
class RagIndexRecord:
    index_id: str
    name: str | None
    dimension: int
    chunk_count: int
    created_at: datetime


@dataclass(frozen=True)
class VectorChunk:
    chunk_id: str
    index_id: str
    text: str
    embedding: tuple[float, ...]
    page: int | None = None
    ordinal: int | None = None
    meta: dict[str, Any] | None = field(default=None)


__all__ = [
    "ChunkInput",
    "LectureRecord",
    "RagIndexRecord",
    "SpecialtyRecord",
    "StoredQuestion",
    "VectorChunk",
]
