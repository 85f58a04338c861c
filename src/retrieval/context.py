"""Retrieval context assembly for analysis prompts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol, Sequence

from retrieval.index import SearchHit

logger = logging.getLogger(__name__)

_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]")
_BOUNDARY_RE = re.compile(r"^(.{1,400}?[.!?])(\s|$)", re.DOTALL)


class Searcher(Protocol):
    def search(self, index_id: str, query: str, k: int = 10) -> list[SearchHit]: ...


@dataclass(frozen=True)
class RetrievedContext:
    text: str
    quote: str | None = None


@dataclass(frozen=True)
class ContextSettings:
    top_k: int = 10
    max_snippets: int = 8
    char_budget: int = 2500


def gather_context(
    searcher: Searcher,
    index_id: str,
    question: str,
    options: Sequence[str],
    *,
    settings: ContextSettings | None = None,
) -> RetrievedContext | None:
    """Search with the question and each option, then pack snippets.

    Hits are deduplicated by text, ranked by score and appended as bullets
    until adding the next one would exceed the character budget.
    """
    settings = settings or ContextSettings()
    queries = [question, *[option for option in options if option]]
    seen: set[str] = set()
    hits: list[SearchHit] = []
    for query in queries:
        for hit in searcher.search(index_id, query, settings.top_k):
            text = hit.text.strip()
            if text and text not in seen:
                seen.add(text)
                hits.append(hit)
    hits.sort(key=lambda hit: hit.score, reverse=True)

    packed = ""
    quote: str | None = None
    for hit in hits[: settings.max_snippets]:
        snippet = " ".join(hit.text.split())
        if not snippet:
            continue
        candidate = (packed + "\n\n" if packed else "") + f"• {snippet}"
        if len(candidate) > settings.char_budget:
            break
        packed = candidate
        if quote is None:
            quote = first_sentence(snippet)
    if not packed:
        return None
    return RetrievedContext(text=packed, quote=quote)


def first_sentence(snippet: str) -> str:
    match = _SENTENCE_RE.match(snippet)
    if match and match.group(0).strip():
        return match.group(0).strip()
    bounded = _BOUNDARY_RE.match(snippet)
    return (bounded.group(1) if bounded else snippet[:300]).strip()


def with_context(
    question: str,
    context: RetrievedContext,
    *,
    niveau: str | None = None,
    matiere: str | None = None,
) -> str:
    meta = " ".join(
        part for part in (f"niveau={niveau}" if niveau else "", f"matiere={matiere}" if matiere else "") if part
    )
    label = f"extraits cours | {meta}" if meta else "extraits cours"
    return f"CONTEXTE ({label}):\n{context.text}\n\nQUESTION:\n{question}"


__all__ = [
    "ContextSettings",
    "RetrievedContext",
    "Searcher",
    "first_sentence",
    "gather_context",
    "with_context",
]
