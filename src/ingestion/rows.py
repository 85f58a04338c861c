"""Row validation into question drafts."""

from __future__ import annotations

from dataclasses import dataclass

from ingestion.answers import (
    answer_error_reason,
    combine_explanations,
    parse_answer_letters,
)
from ingestion.errors import RowError
from ingestion.media import extract_media, media_from_column
from ingestion.values import clean_source, parse_int_or_none
from schemas.internal.rows import RowFailure, RowRecord


@dataclass(frozen=True)
class QuestionDraft:
    """A validated question ready to be deduplicated and stored."""

    sheet: str
    row: int
    question_type: str
    specialty: str
    lecture: str
    text: str
    options: tuple[str, ...]
    correct_answers: tuple[str, ...]
    explanation: str | None = None
    course_reminder: str | None = None
    number: int | None = None
    session: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    case_number: int | None = None
    case_text: str | None = None
    case_question_number: int | None = None
    niveau: str | None = None
    semestre: str | None = None


def build_question(record: RowRecord) -> QuestionDraft:
    """Validate one row; raise :class:`RowError` with the failure reason."""
    media = extract_media(record.texte_de_la_question)
    if not record.matiere or not record.cours:
        raise RowError("Missing specialty or lecture information")
    if not media.text:
        raise RowError("Missing question text")

    sheet = record.sheet
    clinical = sheet.is_case
    media_url, media_type = media.url, media.media_type
    if not media_url:
        media_url, media_type = media_from_column(record.image)

    options: tuple[str, ...] = ()
    if sheet.is_mcq:
        options = tuple(record.options())
        if not options:
            raise RowError("Clinical MCQ missing options" if clinical else "MCQ missing options")
        parsed = parse_answer_letters(record.reponse, len(options))
        if parsed.no_answer:
            correct: tuple[str, ...] = ()
        elif parsed.indices:
            correct = tuple(str(index) for index in parsed.indices)
        else:
            raise RowError(answer_error_reason(parsed, clinical=clinical))
    else:
        answer = record.value("reponse")
        if not answer:
            raise RowError("Clinical QROC missing answer" if clinical else "QROC missing answer")
        correct = (answer,)

    case_number = case_text = case_question_number = None
    if clinical:
        case_number = parse_int_or_none(record.cas_n) or None
        case_text = record.texte_du_cas
        case_question_number = parse_int_or_none(record.question_n) or None

    return QuestionDraft(
        sheet=sheet.value,
        row=record.row,
        question_type=sheet.question_type,
        specialty=record.value("matiere"),
        lecture=record.value("cours"),
        text=media.text,
        options=options,
        correct_answers=correct,
        explanation=combine_explanations(record),
        course_reminder=record.rappel,
        number=parse_int_or_none(record.question_n),
        session=clean_source(record.source) or None,
        media_url=media_url,
        media_type=media_type,
        case_number=case_number,
        case_text=case_text,
        case_question_number=case_question_number,
        niveau=record.niveau,
        semestre=record.semestre,
    )


def failure_for(record: RowRecord, reason: str) -> RowFailure:
    return RowFailure(
        sheet=record.sheet.value,
        row=record.row,
        reason=reason,
        matiere=record.value("matiere"),
        cours=record.value("cours"),
        question_n=parse_int_or_none(record.question_n),
        texte_de_la_question=record.value("texte_de_la_question"),
        reponse=record.value("reponse"),
        record=record,
    )


__all__ = ["QuestionDraft", "build_question", "failure_for"]
