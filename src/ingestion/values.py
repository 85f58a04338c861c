"""Tolerant cell-value parsers."""

from __future__ import annotations

import math
import re
from typing import NamedTuple

from schemas.internal.rows import RowRecord

_LEADING_INT_RE = re.compile(r"^[+-]?\d+")
_WRAPPING_OPEN_RE = re.compile(r"^\s*[\[({\"']\s*")
_WRAPPING_CLOSE_RE = re.compile(r"\s*[\])}\"']\s*$")
_BRACKETS_RE = re.compile(r"[\[\]()]")
_COMMA_RE = re.compile(r"\s*,\s*")
_ONLY_LEVEL_RE = re.compile(r"^(PCEM\s*\d|DCEM\s*\d|NIVEAU\s*\d)$", re.IGNORECASE)
_YEAR_OR_SESSION_RE = re.compile(r"(19|20)\d{2}|session|rattrapage|principal", re.IGNORECASE)
_LEVEL_IN_TEXT_RE = re.compile(r"\b(PCEM\s*\d|DCEM\s*\d)\b", re.IGNORECASE)
_LEVEL_TOKEN_RE = re.compile(r"^(PCEM\d|DCEM\d)$", re.IGNORECASE)
_PATH_SPLIT_RE = re.compile(r"[\\/]+")


def parse_int_or_none(value: object) -> int | None:
    """Parse a leading integer; return None instead of raising."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT_RE.match(str(value).strip())
    if not match:
        return None
    return int(match.group(0))


def clean_source(raw: str | None) -> str:
    """Tidy a free-form source/session label.

    Wrapping quotes and brackets are removed, commas and whitespace are
    normalized, and a bare level marker such as ``PCEM2`` is dropped unless a
    year or session keyword accompanies it.
    """
    if not raw:
        return ""
    text = str(raw).strip()
    text = _WRAPPING_OPEN_RE.sub("", text)
    text = _WRAPPING_CLOSE_RE.sub("", text)
    text = _BRACKETS_RE.sub("", text)
    text = _COMMA_RE.sub(", ", text)
    text = " ".join(text.split())
    if _ONLY_LEVEL_RE.match(text) and not _YEAR_OR_SESSION_RE.search(text):
        return ""
    return text


class LevelSubject(NamedTuple):
    niveau: str | None
    matiere: str | None


def extract_level_subject(record: RowRecord) -> LevelSubject:
    """Resolve (niveau, matiere) with fallbacks from source and cours."""
    niveau = record.niveau
    matiere = record.matiere
    source = record.value("source")

    if not niveau and source:
        match = _LEVEL_IN_TEXT_RE.search(source)
        if match:
            niveau = re.sub(r"\s+", "", match.group(1)).upper()
    if not matiere and record.cours:
        matiere = record.cours
    if not matiere and "/" in source:
        parts = [part for part in _PATH_SPLIT_RE.split(source) if part]
        if len(parts) >= 2 and _LEVEL_TOKEN_RE.match(parts[0]):
            matiere = parts[1]
            niveau = niveau or parts[0].upper()
    if not matiere and niveau:
        matiere = niveau
    return LevelSubject(niveau=niveau, matiere=matiere)


__all__ = ["LevelSubject", "clean_source", "extract_level_subject", "parse_int_or_none"]
