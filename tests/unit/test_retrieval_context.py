from __future__ import annotations

from retrieval.context import (
    ContextSettings,
    RetrievedContext,
    first_sentence,
    gather_context,
    with_context,
)
from retrieval.index import SearchHit


class ScriptedSearcher:
    def __init__(self, hits_by_query: dict[str, list[SearchHit]]) -> None:
        self.hits_by_query = hits_by_query
        self.queries: list[tuple[str, str, int]] = []

    def search(self, index_id: str, query: str, k: int = 10) -> list[SearchHit]:
        self.queries.append((index_id, query, k))
        return self.hits_by_query.get(query, [])


def _hit(text: str, score: float) -> SearchHit:
    return SearchHit(chunk_id=f"c-{score}", text=text, score=score)


def _searcher() -> ScriptedSearcher:
    return ScriptedSearcher(
        {
            "Signe ?": [_hit("La dyspnée est fréquente. Autre phrase.", 0.9), _hit("Texte B", 0.5)],
            "Fièvre": [_hit("Texte B", 0.5), _hit("Texte   C", 0.7)],
        }
    )


def test_gather_context_dedups_ranks_and_quotes() -> None:
    searcher = _searcher()

    context = gather_context(
        searcher, "rag_1", "Signe ?", ["Fièvre", ""], settings=ContextSettings(top_k=4)
    )

    assert context is not None
    assert context.text == "• La dyspnée est fréquente. Autre phrase.\n\n• Texte C\n\n• Texte B"
    assert context.quote == "La dyspnée est fréquente."
    assert searcher.queries == [("rag_1", "Signe ?", 4), ("rag_1", "Fièvre", 4)]


def test_char_budget_stops_packing() -> None:
    first = "• La dyspnée est fréquente. Autre phrase."
    context = gather_context(
        _searcher(), "rag_1", "Signe ?", ["Fièvre"], settings=ContextSettings(char_budget=len(first))
    )
    assert context is not None
    assert context.text == first


def test_max_snippets_limits_hits() -> None:
    context = gather_context(
        _searcher(), "rag_1", "Signe ?", ["Fièvre"], settings=ContextSettings(max_snippets=1)
    )
    assert context is not None
    assert context.text.count("•") == 1


def test_no_hits_means_no_context() -> None:
    assert gather_context(ScriptedSearcher({}), "rag_1", "Signe ?", []) is None


def test_first_sentence_without_terminator() -> None:
    assert first_sentence("sans ponctuation finale") == "sans ponctuation finale"


def test_with_context_prefixes_question() -> None:
    text = with_context(
        "Signe ?", RetrievedContext(text="• extrait"), niveau="DCEM1", matiere="Cardiologie"
    )
    assert text == (
        "CONTEXTE (extraits cours | niveau=DCEM1 matiere=Cardiologie):\n• extrait\n\nQUESTION:\nSigne ?"
    )
    assert with_context("Q", RetrievedContext(text="• e")).startswith("CONTEXTE (extraits cours):")
