"""Course index commands."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer

from cli.common import emit_json, read_input
from core.config import get_settings
from persistence.models import RagIndexRecord
from persistence.sqlite_store import SqliteStore
from retrieval.index import VectorIndexService
from retrieval.resolver import IndexResolver
from services.rag import build_index_from_pdf, init_vector_service


app = typer.Typer(
    help="Build and query course indexes",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


def _store() -> SqliteStore:
    return SqliteStore(get_settings().store_path)


def _index_payload(record: RagIndexRecord) -> dict[str, Any]:
    payload = asdict(record)
    payload["created_at"] = record.created_at.isoformat()
    return payload


def _service(store: SqliteStore) -> VectorIndexService:
    service = init_vector_service(get_settings(), store)
    if service is None:
        raise typer.BadParameter("Embedding model is not configured (set EMBEDDING_MODEL).")
    return service


@app.command("build", help="Chunk and embed a PDF course into a new index")
def build_index(
    pdf_path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    name: str | None = typer.Option(None, "--name", help="Index name (default: file name)"),
    chunk_size: int | None = typer.Option(None, "--chunk-size", min=1),
    chunk_overlap: int | None = typer.Option(None, "--chunk-overlap", min=0),
) -> None:
    settings = get_settings()
    service = _service(_store())
    record = build_index_from_pdf(
        service,
        read_input(pdf_path),
        name=name or pdf_path.name,
        chunk_size=chunk_size or settings.rag_chunk_size,
        chunk_overlap=settings.rag_chunk_overlap if chunk_overlap is None else chunk_overlap,
    )
    emit_json(_index_payload(record))


@app.command("list", help="List stored indexes")
def list_indexes() -> None:
    emit_json([_index_payload(record) for record in _store().list_indexes()])


@app.command("search", help="Top-k chunks of an index for a query")
def search_index(
    query: str = typer.Argument(...),
    index_id: str | None = typer.Option(None, "--index", help="Index id"),
    niveau: str | None = typer.Option(None, "--niveau", help="Resolve the index by level"),
    matiere: str | None = typer.Option(None, "--matiere", help="Resolve the index by subject"),
    k: int = typer.Option(10, "-k", min=1, max=100),
) -> None:
    resolved = index_id or IndexResolver.from_settings(get_settings()).resolve(niveau, matiere)
    if not resolved:
        raise typer.BadParameter("No index matches; pass --index or configure RAG_INDEX_MAP.")
    hits = _service(_store()).search(resolved, query, k)
    emit_json(
        {
            "index_id": resolved,
            "hits": [asdict(hit) for hit in hits],
        }
    )


@app.command("delete", help="Delete an index and its chunks")
def delete_index(index_id: str = typer.Argument(...)) -> None:
    if not _store().delete_index(index_id):
        typer.echo(f"Index not found: {index_id}", err=True)
        raise typer.Exit(code=1)
    emit_json({"deleted": index_id})


__all__ = ["app"]
