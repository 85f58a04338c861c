"""Persistence protocol contracts."""

from __future__ import annotations

from typing import Protocol, Sequence

from persistence.models import (
    ChunkInput,
    LectureRecord,
    RagIndexRecord,
    SpecialtyRecord,
    StoredQuestion,
    VectorChunk,
)


class QuestionDraftLike(Protocol):
    question_type: str
    text: str
    options: Sequence[str]
    correct_answers: Sequence[str]
    explanation: str | None
    course_reminder: str | None
    number: int | None
    session: str | None
    media_url: str | None
    media_type: str | None
    case_number: int | None
    case_text: str | None
    case_question_number: int | None


class QuestionStore(Protocol):
    def get_or_create_specialty(
        self, name: str, *, niveau: str | None = None, semestre: str | None = None
    ) -> tuple[SpecialtyRecord, bool]: ...

    def get_or_create_lecture(
        self, specialty_id: str, title: str
    ) -> tuple[LectureRecord, bool]: ...

    def find_question_candidates(
        self, *, lecture_id: str, text: str, question_type: str
    ) -> list[StoredQuestion]: ...

    def create_question(
        self, lecture_id: str, draft: QuestionDraftLike
    ) -> StoredQuestion: ...


class VectorStore(Protocol):
    def create_index(
        self, *, name: str | None, dimension: int, chunks: Sequence[ChunkInput]
    ) -> RagIndexRecord: ...

    def get_index(self, index_id: str) -> RagIndexRecord | None: ...

    def list_indexes(self) -> list[RagIndexRecord]: ...

    def list_chunks(self, index_id: str) -> list[VectorChunk]: ...

    def delete_index(self, index_id: str) -> bool: ...


__all__ = ["QuestionDraftLike", "QuestionStore", "VectorStore"]
