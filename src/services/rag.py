"""Index build and search helpers shared by the API and the CLI."""

from __future__ import annotations

import logging
from typing import Sequence

from core.config import Settings
from persistence.contracts import VectorStore
from persistence.models import RagIndexRecord
from retrieval.chunking import TextChunk, split_pages
from retrieval.context import ContextSettings
from retrieval.embeddings import EmbeddingRetryPolicy, init_embedding_client
from retrieval.index import VectorIndexService
from retrieval.pdf import extract_pages
from schemas.requests import RagChunkInput

logger = logging.getLogger(__name__)


def init_vector_service(settings: Settings, store: VectorStore) -> VectorIndexService | None:
    """Vector service backed by the configured embedding model, if any."""
    if not settings.embedding_model:
        return None
    client = init_embedding_client(
        settings.embedding_model, provider=settings.embedding_model_provider
    )
    return VectorIndexService(
        store, client, policy=EmbeddingRetryPolicy.from_settings(settings)
    )


def context_settings(settings: Settings) -> ContextSettings:
    return ContextSettings(
        top_k=settings.rag_top_k,
        max_snippets=settings.rag_max_snippets,
        char_budget=settings.rag_context_char_budget,
    )


def build_index_from_pdf(
    service: VectorIndexService,
    data: bytes,
    *,
    name: str | None = None,
    chunk_size: int = 800,
    chunk_overlap: int = 300,
) -> RagIndexRecord:
    pages = extract_pages(data)
    if not pages:
        raise ValueError("PDF has no extractable text")
    chunks = split_pages(
        pages,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        meta={"source": name} if name else None,
    )
    logger.info("Split %d page(s) into %d chunk(s)", len(pages), len(chunks))
    return service.build_index(chunks, name=name)


def build_index_from_chunks(
    service: VectorIndexService,
    chunks: Sequence[RagChunkInput],
    *,
    name: str | None = None,
) -> RagIndexRecord:
    text_chunks = [
        TextChunk(text=chunk.text, page=chunk.page, ordinal=chunk.ordinal, meta=chunk.meta)
        for chunk in chunks
    ]
    return service.build_index(text_chunks, name=name)


__all__ = [
    "build_index_from_chunks",
    "build_index_from_pdf",
    "context_settings",
    "init_vector_service",
]
