"""PDF text extraction for index builds."""

from __future__ import annotations

import re
from pathlib import Path

import fitz  # PyMuPDF

_HYPHEN_BREAK_RE = re.compile(r"(\w)-\n(\w)")
_INLINE_SPACES_RE = re.compile(r"[ \t]+")
_MANY_BREAKS_RE = re.compile(r"\n{3,}")


def clean_text(text: str) -> str:
    """Join hyphenated line breaks and squeeze whitespace."""
    cleaned = text.replace("\r\n", "\n").replace("\x0c", "\n")
    cleaned = "\n".join(line.rstrip() for line in cleaned.splitlines())
    cleaned = _HYPHEN_BREAK_RE.sub(r"\1\2", cleaned)
    cleaned = _INLINE_SPACES_RE.sub(" ", cleaned)
    cleaned = _MANY_BREAKS_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def extract_pages(source: bytes | str | Path) -> list[tuple[int, str]]:
    """Return ``(page_number, cleaned_text)`` for every non-empty page."""
    if isinstance(source, (bytes, bytearray)):
        document = fitz.open(stream=bytes(source), filetype="pdf")
    else:
        document = fitz.open(str(source))
    pages: list[tuple[int, str]] = []
    with document:
        for index, page in enumerate(document, start=1):
            text = clean_text(page.get_text("text"))
            if text:
                pages.append((index, text))
    return pages


__all__ = ["clean_text", "extract_pages"]
