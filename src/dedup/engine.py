"""Two-tier duplicate detection: exact in-file keys, strict store comparison."""

from __future__ import annotations

from typing import Iterable, MutableMapping, Protocol, Sequence

from schemas.internal.rows import CANONICAL_FIELDS, RowRecord

STORE_DUPLICATE_REASON = "Duplicate in database: exact duplicate (all fields equal) already exists"


class QuestionLike(Protocol):
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


def dedup_key(record: RowRecord) -> str:
    """Order-independent identity of a row's full content."""
    values = {field: record.value(field) for field in CANONICAL_FIELDS}
    values.update(record.extras)
    return "|".join(f"{key}={values[key].strip()}" for key in sorted(values))


def is_duplicate_in_batch(key: str, seen: MutableMapping[str, int]) -> bool:
    return key in seen


def duplicate_in_batch_reason(first_row: int) -> str:
    return f"Duplicate in file: identical row already present (matches row {first_row})"


class BatchDeduplicator:
    """Tracks first-seen rows per sheet for one uploaded file."""

    def __init__(self) -> None:
        self._seen: dict[str, dict[str, int]] = {}

    def check(self, record: RowRecord) -> str | None:
        """Return a failure reason for a repeated row, else remember it."""
        seen = self._seen.setdefault(record.sheet.value, {})
        key = dedup_key(record)
        if is_duplicate_in_batch(key, seen):
            return duplicate_in_batch_reason(seen[key])
        seen[key] = record.row
        return None


def is_duplicate_in_store(candidate: QuestionLike, existing: Iterable[QuestionLike]) -> bool:
    """True only when some stored question equals ``candidate`` on every field."""
    return any(_same_question(candidate, other) for other in existing)


def _same_question(left: QuestionLike, right: QuestionLike) -> bool:
    return (
        _same_text(left.text, right.text)
        and left.question_type == right.question_type
        and _joined(left.options) == _joined(right.options)
        and _joined(left.correct_answers) == _joined(right.correct_answers)
        and _same_text(left.course_reminder, right.course_reminder)
        and _same_text(left.session, right.session)
        and left.number == right.number
        and _same_text(left.media_url, right.media_url)
        and _same_text(left.media_type, right.media_type)
        and left.case_number == right.case_number
        and _same_text(left.case_text, right.case_text)
        and left.case_question_number == right.case_question_number
        and _same_text(left.explanation, right.explanation)
    )


def _same_text(left: str | None, right: str | None) -> bool:
    return (left or "").strip() == (right or "").strip()


def _joined(values: Sequence[str] | None) -> str:
    return "|".join(str(value) for value in values or ())


__all__ = [
    "BatchDeduplicator",
    "STORE_DUPLICATE_REASON",
    "dedup_key",
    "duplicate_in_batch_reason",
    "is_duplicate_in_batch",
    "is_duplicate_in_store",
]
