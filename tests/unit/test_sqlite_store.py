from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from ingestion.rows import build_question
from persistence.models import ChunkInput
from persistence.sqlite_store import SqliteStore
from schemas.internal.rows import SheetKind


def test_specialty_and_lecture_are_created_once(store: SqliteStore) -> None:
    specialty, created = store.get_or_create_specialty("Cardiologie")
    assert created
    again, created_again = store.get_or_create_specialty(
        "Cardiologie", niveau="DCEM1", semestre="S1"
    )
    assert not created_again
    assert again.specialty_id == specialty.specialty_id
    assert again.niveau == "DCEM1"
    assert again.semestre == "S1"

    lecture, created = store.get_or_create_lecture(specialty.specialty_id, "IC")
    assert created
    same, created = store.get_or_create_lecture(specialty.specialty_id, "IC")
    assert not created
    assert same.lecture_id == lecture.lecture_id


def test_question_roundtrip_and_candidates(store: SqliteStore, make_record) -> None:
    specialty, _ = store.get_or_create_specialty("Cardiologie")
    lecture, _ = store.get_or_create_lecture(specialty.specialty_id, "IC")
    draft = build_question(make_record(SheetKind.QCM, reponse="A, B", question_n="3"))

    stored = store.create_question(lecture.lecture_id, draft)

    assert stored.options == draft.options
    assert stored.correct_answers == ("0", "1")
    assert stored.number == 3
    candidates = store.find_question_candidates(
        lecture_id=lecture.lecture_id, text=draft.text, question_type="mcq"
    )
    assert [candidate.question_id for candidate in candidates] == [stored.question_id]
    assert store.find_question_candidates(
        lecture_id=lecture.lecture_id, text=draft.text, question_type="qroc"
    ) == []
    assert store.count_questions(lecture_id=lecture.lecture_id) == 1


def test_index_is_written_with_its_chunks(tmp_path: Path) -> None:
    store = SqliteStore(tmp_path / "nested" / "rag.sqlite")
    record = store.create_index(
        name="cours.pdf",
        dimension=2,
        chunks=[
            ChunkInput(text="premier", embedding=(1.0, 0.0), page=1, ordinal=0, meta={"source": "cours.pdf"}),
            ChunkInput(text="second", embedding=(0.0, 1.0), page=2, ordinal=1),
        ],
    )

    assert record.chunk_count == 2
    assert store.get_index(record.index_id) == record
    chunks = store.list_chunks(record.index_id)
    assert [chunk.text for chunk in chunks] == ["premier", "second"]
    assert chunks[0].embedding == pytest.approx((1.0, 0.0))
    assert chunks[0].meta == {"source": "cours.pdf"}
    assert [index.index_id for index in store.list_indexes()] == [record.index_id]

    assert store.delete_index(record.index_id)
    assert store.list_chunks(record.index_id) == []
    assert not store.delete_index(record.index_id)


def test_mismatched_chunk_dimension_writes_nothing(store: SqliteStore) -> None:
    with pytest.raises(ValueError, match="does not match index dim"):
        store.create_index(
            name=None,
            dimension=3,
            chunks=[ChunkInput(text="x", embedding=(1.0, 2.0))],
        )
    assert store.list_indexes() == []


def test_every_connection_is_closed_after_use(monkeypatch, tmp_path: Path) -> None:
    opened: list[sqlite3.Connection] = []
    connect = sqlite3.connect

    def tracking_connect(*args, **kwargs):
        conn = connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(sqlite3, "connect", tracking_connect)
    store = SqliteStore(tmp_path / "closed.sqlite")
    specialty, _ = store.get_or_create_specialty("Cardiologie", niveau="DCEM2")
    store.get_or_create_lecture(specialty.specialty_id, "IC")
    store.list_indexes()

    assert len(opened) >= 4
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
