"""Recursive character splitting for source documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

# "" last: text with no separator left is cut into fixed-width windows
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ", "")


@dataclass(frozen=True)
class TextChunk:
    text: str
    page: int | None = None
    ordinal: int | None = None
    meta: dict[str, Any] | None = None


def split_text(
    text: str,
    *,
    chunk_size: int = 800,
    chunk_overlap: int = 300,
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[str]:
    """Split ``text`` into chunks of at most ``chunk_size`` characters.

    Consecutive chunks share up to ``chunk_overlap`` trailing characters.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")
    cleaned = text.strip()
    if not cleaned:
        return []
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separators=list(separators),
    )
    return [chunk for chunk in splitter.split_text(cleaned) if chunk.strip()]


def split_pages(
    pages: Sequence[tuple[int, str]],
    *,
    chunk_size: int = 800,
    chunk_overlap: int = 300,
    meta: dict[str, Any] | None = None,
) -> list[TextChunk]:
    """Chunk ``(page_number, text)`` pairs, numbering chunks across pages."""
    chunks: list[TextChunk] = []
    for page_number, text in pages:
        for piece in split_text(text, chunk_size=chunk_size, chunk_overlap=chunk_overlap):
            chunks.append(
                TextChunk(
                    text=piece,
                    page=page_number,
                    ordinal=len(chunks),
                    meta=dict(meta) if meta else None,
                )
            )
    return chunks


__all__ = ["DEFAULT_SEPARATORS", "TextChunk", "split_pages", "split_text"]
