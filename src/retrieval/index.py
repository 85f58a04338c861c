"""Vector index build and cosine-similarity search over stored chunks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from persistence.contracts import VectorStore
from persistence.models import ChunkInput, RagIndexRecord, VectorChunk
from retrieval.chunking import TextChunk
from retrieval.embeddings import (
    EmbeddingClient,
    EmbeddingRetryPolicy,
    embed_in_batches,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    chunk_id: str
    text: str
    score: float
    page: int | None = None
    ordinal: int | None = None
    meta: dict[str, Any] | None = None


def cosine_scores(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against every matrix row."""
    query_vec = np.asarray(query, dtype=np.float32).reshape(-1)
    dense = np.asarray(matrix, dtype=np.float32)
    if dense.ndim != 2:
        raise ValueError("Expected a 2D matrix")
    if dense.shape[0] == 0:
        return np.zeros(0, dtype=np.float32)
    if dense.shape[1] != query_vec.shape[0]:
        raise ValueError(f"Query dim {query_vec.shape[0]} != index dim {dense.shape[1]}")
    denom = np.linalg.norm(dense, axis=1) * np.linalg.norm(query_vec)
    denom[denom == 0] = 1.0
    return (dense @ query_vec) / denom


class VectorIndexService:
    """Builds indexes through a :class:`VectorStore` and searches them."""

    def __init__(
        self,
        store: VectorStore,
        client: EmbeddingClient,
        *,
        policy: EmbeddingRetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._policy = policy or EmbeddingRetryPolicy()

    def build_index(
        self, chunks: Sequence[TextChunk], *, name: str | None = None
    ) -> RagIndexRecord:
        """Embed every chunk, then persist the index in one write.

        Nothing is written when any embedding batch fails.
        """
        if not chunks:
            raise ValueError("chunks must not be empty")
        vectors = embed_in_batches(
            [chunk.text for chunk in chunks], self._client, policy=self._policy
        )
        dimension = len(vectors[0])
        if dimension == 0 or any(len(vector) != dimension for vector in vectors):
            raise ValueError("Embedding vectors must share a non-zero dimension")

        inputs = [
            ChunkInput(
                text=chunk.text,
                embedding=tuple(vector),
                page=chunk.page,
                ordinal=chunk.ordinal if chunk.ordinal is not None else position,
                meta=chunk.meta,
            )
            for position, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]
        record = self._store.create_index(name=name, dimension=dimension, chunks=inputs)
        logger.info(
            "Built index %s with %d chunks (dim=%d)", record.index_id, record.chunk_count, dimension
        )
        return record

    def search(self, index_id: str, query: str, k: int = 10) -> list[SearchHit]:
        """Top-``k`` chunks of ``index_id`` by cosine similarity, best first."""
        if k < 1:
            raise ValueError("k must be >= 1")
        chunks = self._store.list_chunks(index_id)
        if not chunks:
            return []
        query_vector = embed_in_batches([query], self._client, policy=self._policy)[0]
        matrix = np.asarray([chunk.embedding for chunk in chunks], dtype=np.float32)
        scores = cosine_scores(np.asarray(query_vector, dtype=np.float32), matrix)
        order = np.argsort(-scores, kind="stable")[:k]
        return [_to_hit(chunks[int(i)], float(scores[int(i)])) for i in order]

    def delete_index(self, index_id: str) -> bool:
        deleted = self._store.delete_index(index_id)
        if deleted:
            logger.info("Deleted index %s", index_id)
        return deleted


def _to_hit(chunk: VectorChunk, score: float) -> SearchHit:
    return SearchHit(
        chunk_id=chunk.chunk_id,
        text=chunk.text,
        score=score,
        page=chunk.page,
        ordinal=chunk.ordinal,
        meta=chunk.meta,
    )


__all__ = ["SearchHit", "VectorIndexService", "cosine_scores"]
