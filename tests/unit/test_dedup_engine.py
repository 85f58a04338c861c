from __future__ import annotations

from dataclasses import replace

from dedup.engine import BatchDeduplicator, dedup_key, is_duplicate_in_store
from ingestion.rows import build_question
from schemas.internal.rows import SheetKind


def test_dedup_key_ignores_surrounding_whitespace(make_record) -> None:
    left = make_record(source="2022 ")
    right = make_record(row=5, source=" 2022")
    assert dedup_key(left) == dedup_key(right)


def test_dedup_key_includes_extra_columns(make_record) -> None:
    left = make_record(extras={"commentaire": "a"})
    right = make_record(extras={"commentaire": "b"})
    assert dedup_key(left) != dedup_key(right)


def test_batch_deduplicator_reports_first_row_per_sheet(make_record) -> None:
    dedup = BatchDeduplicator()
    assert dedup.check(make_record(row=2)) is None
    assert dedup.check(make_record(row=3, reponse="B")) is None
    reason = dedup.check(make_record(row=8))
    assert reason == "Duplicate in file: identical row already present (matches row 2)"


def test_batch_deduplicator_scopes_by_sheet(make_record) -> None:
    dedup = BatchDeduplicator()
    assert dedup.check(make_record(SheetKind.QCM, row=2)) is None
    assert dedup.check(make_record(SheetKind.CAS_QCM, row=2)) is None


def test_store_duplicate_requires_every_field_equal(make_record) -> None:
    draft = build_question(make_record(explication="Même texte"))
    same = replace(draft, explanation="Même texte  ")
    other_answer = replace(draft, correct_answers=("1",))
    other_media = replace(draft, media_url="https://img.example.org/a.png")

    assert is_duplicate_in_store(draft, [same])
    assert not is_duplicate_in_store(draft, [other_answer])
    assert not is_duplicate_in_store(draft, [other_media])
    assert not is_duplicate_in_store(draft, [])
