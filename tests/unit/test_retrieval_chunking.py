from __future__ import annotations

import pytest

from retrieval.chunking import split_pages, split_text


def test_short_text_is_one_chunk() -> None:
    assert split_text("  Bref.  ", chunk_size=50, chunk_overlap=10) == ["Bref."]
    assert split_text("   ", chunk_size=50, chunk_overlap=10) == []


def test_paragraphs_split_on_coarsest_separator() -> None:
    text = "Alpha beta.\n\nGamma delta.\n\nEpsilon zeta."
    assert split_text(text, chunk_size=20, chunk_overlap=0) == [
        "Alpha beta.",
        "Gamma delta.",
        "Epsilon zeta.",
    ]


def test_text_without_separators_uses_fixed_windows() -> None:
    assert split_text("x" * 25, chunk_size=10, chunk_overlap=0) == ["x" * 10, "x" * 10, "x" * 5]


def test_chunks_respect_size_and_share_overlap() -> None:
    words = " ".join(f"mot{index:02d}" for index in range(40))
    chunks = split_text(words, chunk_size=30, chunk_overlap=10)

    assert len(chunks) > 1
    assert all(len(chunk) <= 30 for chunk in chunks)
    for previous, current in zip(chunks, chunks[1:]):
        assert any(current[:size] == previous[-size:] for size in range(1, 11))


@pytest.mark.parametrize(("size", "overlap"), [(0, 0), (10, 10), (10, 20)])
def test_invalid_sizes_are_rejected(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        split_text("texte", chunk_size=size, chunk_overlap=overlap)


def test_split_pages_numbers_chunks_across_pages() -> None:
    chunks = split_pages(
        [(1, "Page un."), (3, "Alpha beta.\n\nGamma delta.")],
        chunk_size=15,
        chunk_overlap=0,
        meta={"source": "cours.pdf"},
    )

    assert [(chunk.page, chunk.ordinal) for chunk in chunks] == [(1, 0), (3, 1), (3, 2)]
    assert chunks[2].text == "Gamma delta."
    assert chunks[0].meta == {"source": "cours.pdf"}
    assert chunks[0].meta is not chunks[1].meta


def test_sentence_separator_used_when_no_line_breaks() -> None:
    chunks = split_text(
        "Alpha beta gamma. Delta epsilon zeta.", chunk_size=20, chunk_overlap=0
    )

    assert chunks[0] == "Alpha beta gamma"
    assert all(len(chunk) <= 20 for chunk in chunks)
    assert "zeta." in chunks[-1]
