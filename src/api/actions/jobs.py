from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response, StreamingResponse

from api.deps import (
    get_analyzer_factory,
    get_index_resolver,
    get_registry,
    get_runner,
    get_store,
    get_vector_service,
)
from core.config import Settings, get_settings
from persistence.sqlite_store import SqliteStore
from retrieval.index import VectorIndexService
from retrieval.resolver import IndexResolver
from schemas.internal.jobs import JobKind, JobPhase
from schemas.responses import JobListResponse, JobStartResponse, OkResponse
from services.analyzers import AnalyzerFactory
from services.correction_job import RagSetup, run_correction_job
from services.import_job import FAILED_ROWS_ARTIFACT, run_import_job
from services.rag import context_settings
from sessions.registry import SessionRegistry
from sessions.runner import JobRunner
from sessions.stream import ProgressStream

router = APIRouter()

_WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}
_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class JobCollection(str, Enum):
    IMPORTS = "imports"
    CORRECTIONS = "corrections"

    @property
    def kind(self) -> JobKind:
        return JobKind.IMPORT if self is JobCollection.IMPORTS else JobKind.CORRECTION


async def _read_workbook_upload(file: Optional[UploadFile]) -> tuple[bytes, str]:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided.")
    if Path(file.filename).suffix.lower() not in _WORKBOOK_SUFFIXES:
        raise HTTPException(status_code=400, detail="Only .xlsx workbooks are supported.")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return content, file.filename


@router.post("/imports", response_model=JobStartResponse, tags=["Jobs"])
async def start_import(
    file: Annotated[Optional[UploadFile], File()] = None,
    owner_id: Annotated[Optional[str], Form()] = None,
    registry: SessionRegistry = Depends(get_registry),
    runner: JobRunner = Depends(get_runner),
    store: SqliteStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Start importing a question workbook; returns the job id immediately."""
    content, filename = await _read_workbook_upload(file)
    session = registry.create(JobKind.IMPORT, owner_id=owner_id, file_name=filename)
    runner.submit(
        session.id,
        run_import_job(registry, session.id, content, store=store, settings=settings),
    )
    return JobStartResponse(job_id=session.id)


@router.post("/corrections", response_model=JobStartResponse, tags=["Jobs"])
async def start_correction(
    file: Annotated[Optional[UploadFile], File()] = None,
    instructions: Annotated[Optional[str], Form()] = None,
    owner_id: Annotated[Optional[str], Form()] = None,
    registry: SessionRegistry = Depends(get_registry),
    runner: JobRunner = Depends(get_runner),
    analyzers: Optional[AnalyzerFactory] = Depends(get_analyzer_factory),
    vector_service: Optional[VectorIndexService] = Depends(get_vector_service),
    resolver: IndexResolver = Depends(get_index_resolver),
    settings: Settings = Depends(get_settings),
):
    """Start an AI correction of a question workbook."""
    content, filename = await _read_workbook_upload(file)
    if analyzers is None:
        raise HTTPException(status_code=400, detail="AI model is not configured (set AI_MODEL).")
    analyzer, qroc_analyzer = analyzers(instructions)
    rag = None
    if settings.enable_rag and vector_service is not None and resolver.enabled:
        rag = RagSetup(
            searcher=vector_service, resolver=resolver, settings=context_settings(settings)
        )

    session = registry.create(JobKind.CORRECTION, owner_id=owner_id, file_name=filename)
    runner.submit(
        session.id,
        run_correction_job(
            registry,
            session.id,
            content,
            analyzer=analyzer,
            qroc_analyzer=qroc_analyzer,
            rag=rag,
            settings=settings,
        ),
    )
    return JobStartResponse(job_id=session.id)


@router.get("/{collection}", response_model=JobListResponse, tags=["Jobs"])
async def list_jobs(
    collection: JobCollection,
    owner_id: Optional[str] = None,
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    """Most recent jobs of this kind, newest first."""
    jobs = registry.list_sessions(
        owner_id=owner_id, kind=collection.kind, limit=settings.jobs_list_limit
    )
    return JobListResponse(jobs=jobs)


@router.get("/{collection}/{job_id}", tags=["Jobs"])
async def get_job(
    collection: JobCollection,
    job_id: str,
    request: Request,
    stream: bool = Query(False),
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    """Current job snapshot, or a live SSE feed when ``text/event-stream`` is accepted."""
    snapshot = _require_snapshot(registry, collection, job_id)
    wants_stream = stream or "text/event-stream" in request.headers.get("accept", "")
    if not wants_stream:
        return snapshot

    interval = (
        settings.import_stream_interval
        if collection is JobCollection.IMPORTS
        else settings.stream_interval
    )
    progress = ProgressStream(
        registry, job_id, interval=interval, is_disconnected=request.is_disconnected
    )
    return StreamingResponse(
        progress.frames(), media_type="text/event-stream", headers=_SSE_HEADERS
    )


@router.get("/{collection}/{job_id}/download", tags=["Jobs"])
async def download_result(
    collection: JobCollection,
    job_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Result workbook, available once the job is complete."""
    snapshot = _require_snapshot(registry, collection, job_id)
    payload = registry.get_result(job_id)
    if snapshot["phase"] != JobPhase.COMPLETE.value or payload is None:
        raise HTTPException(status_code=409, detail="Result not available yet.")
    filename = f"{collection.kind.value}-{job_id}.xlsx"
    return Response(
        content=payload,
        media_type=_XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{collection}/{job_id}/errors.csv", tags=["Jobs"])
async def download_failed_rows(
    collection: JobCollection,
    job_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Failed rows of an import as CSV."""
    _require_snapshot(registry, collection, job_id)
    payload = registry.get_artifact(job_id, FAILED_ROWS_ARTIFACT)
    if payload is None:
        raise HTTPException(status_code=404, detail="No failed rows report for this job.")
    return Response(
        content=payload,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="failed-rows-{job_id}.csv"'},
    )


@router.delete("/{collection}/{job_id}", response_model=OkResponse, tags=["Jobs"])
async def cancel_job(
    collection: JobCollection,
    job_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Cancel a job; it becomes terminal immediately."""
    _require_snapshot(registry, collection, job_id)
    registry.cancel(job_id)
    return OkResponse(ok=True)


def _require_snapshot(registry: SessionRegistry, collection: JobCollection, job_id: str) -> dict:
    snapshot = registry.snapshot(job_id)
    if snapshot is None or snapshot["kind"] != collection.kind.value:
        raise HTTPException(status_code=404, detail="Job not found.")
    return snapshot
