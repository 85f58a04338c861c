from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from api.deps import get_index_resolver, get_store, get_vector_service
from core.config import Settings, get_settings
from persistence.models import RagIndexRecord
from persistence.sqlite_store import SqliteStore
from retrieval.embeddings import EmbeddingBatchError
from retrieval.index import VectorIndexService
from retrieval.resolver import IndexResolver
from schemas.requests import RagBuildRequest, RagSearchRequest
from schemas.responses import (
    OkResponse,
    RagBuildResponse,
    RagIndexInfo,
    RagSearchHit,
    RagSearchResponse,
)
from services.rag import build_index_from_chunks, build_index_from_pdf

router = APIRouter(prefix="/rag", tags=["RAG"])


def _require_service(service: Optional[VectorIndexService]) -> VectorIndexService:
    if service is None:
        raise HTTPException(
            status_code=400, detail="Embedding model is not configured (set EMBEDDING_MODEL)."
        )
    return service


def _build_response(record: RagIndexRecord) -> RagBuildResponse:
    return RagBuildResponse(index_id=record.index_id, chunk_count=record.chunk_count)


@router.get("/indexes", response_model=List[RagIndexInfo])
async def list_indexes(store: SqliteStore = Depends(get_store)):
    records = await run_in_threadpool(store.list_indexes)
    return [
        RagIndexInfo(
            index_id=record.index_id,
            name=record.name,
            dimension=record.dimension,
            chunk_count=record.chunk_count,
            created_at=record.created_at,
        )
        for record in records
    ]


@router.post("/indexes", response_model=RagBuildResponse)
async def build_index(
    request: RagBuildRequest,
    service: Optional[VectorIndexService] = Depends(get_vector_service),
):
    """Embed the given chunks and publish them as a new index."""
    vectors = _require_service(service)
    try:
        record = await run_in_threadpool(
            build_index_from_chunks, vectors, request.chunks, name=request.name
        )
    except EmbeddingBatchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _build_response(record)


@router.post("/indexes/pdf", response_model=RagBuildResponse)
async def build_index_from_upload(
    file: UploadFile = File(...),
    name: Annotated[Optional[str], Form()] = None,
    service: Optional[VectorIndexService] = Depends(get_vector_service),
    settings: Settings = Depends(get_settings),
):
    """Extract, chunk and embed an uploaded PDF course."""
    vectors = _require_service(service)
    filename = file.filename
    if not filename or not filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF files are supported.")
    content = await file.read()
    try:
        record = await run_in_threadpool(
            build_index_from_pdf,
            vectors,
            content,
            name=name or filename,
            chunk_size=settings.rag_chunk_size,
            chunk_overlap=settings.rag_chunk_overlap,
        )
    except EmbeddingBatchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _build_response(record)


@router.post("/search", response_model=RagSearchResponse)
async def search_index(
    request: RagSearchRequest,
    service: Optional[VectorIndexService] = Depends(get_vector_service),
    resolver: IndexResolver = Depends(get_index_resolver),
):
    """Top-k chunks by cosine similarity for one index."""
    vectors = _require_service(service)
    index_id = request.index_id or resolver.resolve(request.niveau, request.matiere)
    if not index_id:
        raise HTTPException(status_code=404, detail="No index matches this request.")
    try:
        hits = await run_in_threadpool(vectors.search, index_id, request.query, request.k)
    except EmbeddingBatchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return RagSearchResponse(
        index_id=index_id,
        hits=[
            RagSearchHit(
                chunk_id=hit.chunk_id,
                text=hit.text,
                score=hit.score,
                page=hit.page,
                ordinal=hit.ordinal,
                meta=hit.meta,
            )
            for hit in hits
        ],
    )


@router.delete("/indexes/{index_id}", response_model=OkResponse)
async def delete_index(
    index_id: str,
    store: SqliteStore = Depends(get_store),
):
    deleted = await run_in_threadpool(store.delete_index, index_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Index not found.")
    return OkResponse(ok=True)
