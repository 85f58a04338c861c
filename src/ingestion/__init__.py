"""Workbook ingestion and canonicalization."""

from ingestion.answers import AnswerParse, combine_explanations, parse_answer_letters
from ingestion.errors import RowError, WorkbookError
from ingestion.headers import canonicalize_header, canonicalize_sheet_name, normalize_header
from ingestion.media import extract_media
from ingestion.rows import QuestionDraft, build_question, failure_for
from ingestion.values import clean_source, extract_level_subject, parse_int_or_none
from ingestion.workbook import ParsedWorkbook, classify_sheet, read_workbook

__all__ = [
    "AnswerParse",
    "ParsedWorkbook",
    "QuestionDraft",
    "RowError",
    "WorkbookError",
    "build_question",
    "canonicalize_header",
    "canonicalize_sheet_name",
    "classify_sheet",
    "clean_source",
    "combine_explanations",
    "extract_level_subject",
    "extract_media",
    "failure_for",
    "normalize_header",
    "parse_answer_letters",
    "parse_int_or_none",
    "read_workbook",
]
