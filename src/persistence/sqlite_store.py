"""SQLite-backed store for the question bank and vector chunks."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence
from uuid import uuid4

import numpy as np

from persistence.contracts import QuestionDraftLike
from persistence.hashing import stable_json_dumps
from persistence.models import (
    ChunkInput,
    LectureRecord,
    RagIndexRecord,
    SpecialtyRecord,
    StoredQuestion,
    VectorChunk,
)


_SCHEMA = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS specialties (
    specialty_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    niveau TEXT,
    semestre TEXT,
    created_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_specialties_name ON specialties(name);

CREATE TABLE IF NOT EXISTS lectures (
    lecture_id TEXT PRIMARY KEY,
    specialty_id TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(specialty_id) REFERENCES specialties(specialty_id)
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_lectures_title ON lectures(specialty_id, title);

CREATE TABLE IF NOT EXISTS questions (
    question_id TEXT PRIMARY KEY,
    lecture_id TEXT NOT NULL,
    question_type TEXT NOT NULL,
    text TEXT NOT NULL,
    options_json TEXT NOT NULL,
    correct_answers_json TEXT NOT NULL,
    explanation TEXT,
    course_reminder TEXT,
    number INTEGER,
    session TEXT,
    media_url TEXT,
    media_type TEXT,
    case_number INTEGER,
    case_text TEXT,
    case_question_number INTEGER,
    created_at TEXT NOT NULL,
    FOREIGN KEY(lecture_id) REFERENCES lectures(lecture_id)
);
CREATE INDEX IF NOT EXISTS idx_questions_lookup ON questions(lecture_id, question_type, text);

CREATE TABLE IF NOT EXISTS rag_indexes (
    index_id TEXT PRIMARY KEY,
    name TEXT,
    dimension INTEGER NOT NULL,
    chunk_count INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS rag_chunks (
    chunk_id TEXT PRIMARY KEY,
    index_id TEXT NOT NULL,
    text TEXT NOT NULL,
    page INTEGER,
    ordinal INTEGER,
    meta_json TEXT,
    embedding BLOB NOT NULL,
    FOREIGN KEY(index_id) REFERENCES rag_indexes(index_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_rag_chunks_index_id ON rag_chunks(index_id);
"""


class SqliteStore:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One transaction on a fresh connection, closed on exit."""
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
            conn.commit()

    def get_or_create_specialty(
        self, name: str, *, niveau: str | None = None, semestre: str | None = None
    ) -> tuple[SpecialtyRecord, bool]:
        existing = self._fetch_one("SELECT * FROM specialties WHERE name = ?", (name,))
        if existing:
            if (niveau and not existing["niveau"]) or (semestre and not existing["semestre"]):
                with self._connect() as conn:
                    conn.execute(
                        "UPDATE specialties SET niveau = COALESCE(niveau, ?), semestre = COALESCE(semestre, ?) WHERE specialty_id = ?",
                        (niveau, semestre, existing["specialty_id"]),
                    )
                    conn.commit()
                existing = self._fetch_one(
                    "SELECT * FROM specialties WHERE specialty_id = ?",
                    (existing["specialty_id"],),
                )
            return _row_to_specialty(existing), False
        specialty_id = _new_id("spec")
        created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO specialties (specialty_id, name, niveau, semestre, created_at) VALUES (?, ?, ?, ?, ?)",
                (specialty_id, name, niveau, semestre, created_at),
            )
            conn.commit()
        return (
            SpecialtyRecord(
                specialty_id=specialty_id,
                name=name,
                niveau=niveau,
                semestre=semestre,
                created_at=_from_iso(created_at),
            ),
            True,
        )

    def get_or_create_lecture(self, specialty_id: str, title: str) -> tuple[LectureRecord, bool]:
        existing = self._fetch_one(
            "SELECT * FROM lectures WHERE specialty_id = ? AND title = ?",
            (specialty_id, title),
        )
        if existing:
            return _row_to_lecture(existing), False
        lecture_id = _new_id("lec")
        created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO lectures (lecture_id, specialty_id, title, created_at) VALUES (?, ?, ?, ?)",
                (lecture_id, specialty_id, title, created_at),
            )
            conn.commit()
        return (
            LectureRecord(
                lecture_id=lecture_id,
                specialty_id=specialty_id,
                title=title,
                created_at=_from_iso(created_at),
            ),
            True,
        )

    def find_question_candidates(
        self, *, lecture_id: str, text: str, question_type: str
    ) -> list[StoredQuestion]:
        rows = self._fetch_all(
            "SELECT * FROM questions WHERE lecture_id = ? AND text = ? AND question_type = ?",
            (lecture_id, text, question_type),
        )
        return [_row_to_question(row) for row in rows]

    def create_question(self, lecture_id: str, draft: QuestionDraftLike) -> StoredQuestion:
        question_id = _new_id("q")
        created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO questions (
                    question_id, lecture_id, question_type, text, options_json,
                    correct_answers_json, explanation, course_reminder, number, session,
                    media_url, media_type, case_number, case_text, case_question_number,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    question_id,
                    lecture_id,
                    draft.question_type,
                    draft.text,
                    json.dumps(list(draft.options), ensure_ascii=False),
                    json.dumps(list(draft.correct_answers), ensure_ascii=False),
                    draft.explanation,
                    draft.course_reminder,
                    draft.number,
                    draft.session,
                    draft.media_url,
                    draft.media_type,
                    draft.case_number,
                    draft.case_text,
                    draft.case_question_number,
                    created_at,
                ),
            )
            conn.commit()
        row = self._fetch_one("SELECT * FROM questions WHERE question_id = ?", (question_id,))
        return _row_to_question(row)

    def count_questions(self, *, lecture_id: str | None = None) -> int:
        if lecture_id:
            row = self._fetch_one(
                "SELECT COUNT(*) AS n FROM questions WHERE lecture_id = ?", (lecture_id,)
            )
        else:
            row = self._fetch_one("SELECT COUNT(*) AS n FROM questions")
        return int(row["n"]) if row else 0

    def create_index(
        self, *, name: str | None, dimension: int, chunks: Sequence[ChunkInput]
    ) -> RagIndexRecord:
        """Write an index and all of its chunks in a single transaction."""
        index_id = _new_id("rag")
        created_at = _now_iso()
        rows: list[tuple[Any, ...]] = []
        for chunk in chunks:
            vector = np.asarray(chunk.embedding, dtype=np.float32)
            if vector.ndim != 1 or vector.shape[0] != dimension:
                raise ValueError(
                    f"Chunk embedding dim {vector.shape} does not match index dim {dimension}"
                )
            rows.append(
                (
                    _new_id("chunk"),
                    index_id,
                    chunk.text,
                    chunk.page,
                    chunk.ordinal,
                    stable_json_dumps(chunk.meta) if chunk.meta is not None else None,
                    vector.tobytes(),
                )
            )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO rag_indexes (index_id, name, dimension, chunk_count, created_at) VALUES (?, ?, ?, ?, ?)",
                (index_id, name, dimension, len(rows), created_at),
            )
            conn.executemany(
                "INSERT INTO rag_chunks (chunk_id, index_id, text, page, ordinal, meta_json, embedding) VALUES (?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return RagIndexRecord(
            index_id=index_id,
            name=name,
            dimension=dimension,
            chunk_count=len(rows),
            created_at=_from_iso(created_at),
        )

    def get_index(self, index_id: str) -> RagIndexRecord | None:
        row = self._fetch_one("SELECT * FROM rag_indexes WHERE index_id = ?", (index_id,))
        return _row_to_index(row) if row else None

    def list_indexes(self) -> list[RagIndexRecord]:
        rows = self._fetch_all("SELECT * FROM rag_indexes ORDER BY created_at DESC")
        return [_row_to_index(row) for row in rows]

    def list_chunks(self, index_id: str) -> list[VectorChunk]:
        rows = self._fetch_all(
            "SELECT * FROM rag_chunks WHERE index_id = ? ORDER BY ordinal, rowid",
            (index_id,),
        )
        return [_row_to_chunk(row) for row in rows]

    def delete_index(self, index_id: str) -> bool:
        with self._connect() as conn:
            conn.execute("DELETE FROM rag_chunks WHERE index_id = ?", (index_id,))
            cur = conn.execute("DELETE FROM rag_indexes WHERE index_id = ?", (index_id,))
            conn.commit()
            return cur.rowcount > 0

    def _fetch_one(self, query: str, params: tuple[object, ...] = ()) -> sqlite3.Row | None:
        with self._connect() as conn:
            cur = conn.execute(query, params)
            return cur.fetchone()

    def _fetch_all(self, query: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            cur = conn.execute(query, params)
            return cur.fetchall()


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _row_to_specialty(row: sqlite3.Row) -> SpecialtyRecord:
    return SpecialtyRecord(
        specialty_id=row["specialty_id"],
        name=row["name"],
        niveau=row["niveau"],
        semestre=row["semestre"],
        created_at=_from_iso(row["created_at"]),
    )


def _row_to_lecture(row: sqlite3.Row) -> LectureRecord:
    return LectureRecord(
        lecture_id=row["lecture_id"],
        specialty_id=row["specialty_id"],
        title=row["title"],
        created_at=_from_iso(row["created_at"]),
    )


def _row_to_question(row: sqlite3.Row) -> StoredQuestion:
    return StoredQuestion(
        question_id=row["question_id"],
        lecture_id=row["lecture_id"],
        question_type=row["question_type"],
        text=row["text"],
        options=tuple(json.loads(row["options_json"])),
        correct_answers=tuple(json.loads(row["correct_answers_json"])),
        explanation=row["explanation"],
        course_reminder=row["course_reminder"],
        number=row["number"],
        session=row["session"],
        media_url=row["media_url"],
        media_type=row["media_type"],
        case_number=row["case_number"],
        case_text=row["case_text"],
        case_question_number=row["case_question_number"],
        created_at=_from_iso(row["created_at"]),
    )


def _row_to_index(row: sqlite3.Row) -> RagIndexRecord:
    return RagIndexRecord(
        index_id=row["index_id"],
        name=row["name"],
        dimension=row["dimension"],
        chunk_count=row["chunk_count"],
        created_at=_from_iso(row["created_at"]),
    )


def _row_to_chunk(row: sqlite3.Row) -> VectorChunk:
    embedding = np.frombuffer(row["embedding"], dtype=np.float32)
    return VectorChunk(
        chunk_id=row["chunk_id"],
        index_id=row["index_id"],
        text=row["text"],
        embedding=tuple(float(value) for value in embedding),
        page=row["page"],
        ordinal=row["ordinal"],
        meta=json.loads(row["meta_json"]) if row["meta_json"] else None,
    )


__all__ = ["SqliteStore"]
