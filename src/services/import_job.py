"""Workbook import job: validate, deduplicate and store every question row."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from core.config import Settings, get_settings
from dedup.engine import STORE_DUPLICATE_REASON, BatchDeduplicator, is_duplicate_in_store
from ingestion.errors import RowError, WorkbookError
from ingestion.rows import QuestionDraft, build_question, failure_for
from ingestion.workbook import read_workbook
from persistence.contracts import QuestionStore
from reporting.result_workbook import (
    CANONICAL_COLUMNS,
    ERROR_COLUMNS,
    build_failures_csv,
    build_result_workbook,
    failure_row,
    record_row,
)
from schemas.internal.jobs import JobPhase
from schemas.internal.rows import SHEET_ORDER, RowFailure, RowRecord
from sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

FAILED_ROWS_ARTIFACT = "failed_rows.csv"
_PROGRESS_START = 25
_PROGRESS_SPAN = 60
_ERRORS_PREVIEW = 50


@dataclass
class ImportStats:
    total: int = 0
    imported: int = 0
    created_specialties: int = 0
    created_lectures: int = 0
    created_cases: int = 0
    questions_with_images: int = 0
    failed_rows: list[RowFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "imported": self.imported,
            "failed": self.failed,
            "created_specialties": self.created_specialties,
            "created_lectures": self.created_lectures,
            "created_cases": self.created_cases,
            "questions_with_images": self.questions_with_images,
            "failed_rows": [
                failure.model_dump() for failure in self.failed_rows[:_ERRORS_PREVIEW]
            ],
        }

    def summary(self) -> str:
        return (
            f"Import completed! Total: {self.total}, Imported: {self.imported}, "
            f"Failed: {self.failed}, Created: {self.created_specialties} specialties, "
            f"{self.created_lectures} lectures, {self.created_cases} cases, "
            f"{self.questions_with_images} questions with images"
        )


class _Importer:
    def __init__(self, registry: SessionRegistry, job_id: str, store: QuestionStore) -> None:
        self.registry = registry
        self.job_id = job_id
        self.store = store
        self.stats = ImportStats()
        self.imported_rows: dict[str, list[dict[str, str]]] = {}
        self._dedup = BatchDeduplicator()
        self._cases: set[tuple[str, int]] = set()

    def import_row(self, record: RowRecord) -> None:
        draft = build_question(record)
        duplicate = self._dedup.check(record)
        if duplicate:
            raise RowError(duplicate)
        self._store(draft)
        self.stats.imported += 1
        self.imported_rows.setdefault(record.sheet.value, []).append(record_row(record))

    def _store(self, draft: QuestionDraft) -> None:
        specialty, created = self.store.get_or_create_specialty(
            draft.specialty, niveau=draft.niveau, semestre=draft.semestre
        )
        if created:
            self.stats.created_specialties += 1
            self.registry.update(self.job_id, log=f"Created specialty: {specialty.name}")
        lecture, created = self.store.get_or_create_lecture(specialty.specialty_id, draft.lecture)
        if created:
            self.stats.created_lectures += 1
            self.registry.update(self.job_id, log=f"Created lecture: {lecture.title}")

        candidates = self.store.find_question_candidates(
            lecture_id=lecture.lecture_id, text=draft.text, question_type=draft.question_type
        )
        if is_duplicate_in_store(draft, candidates):
            raise RowError(STORE_DUPLICATE_REASON)

        self.store.create_question(lecture.lecture_id, draft)
        if draft.media_url:
            self.stats.questions_with_images += 1
        if draft.case_number is not None:
            case_key = (lecture.lecture_id, draft.case_number)
            if case_key not in self._cases:
                self._cases.add(case_key)
                self.stats.created_cases += 1


async def run_import_job(
    registry: SessionRegistry,
    job_id: str,
    data: bytes,
    *,
    store: QuestionStore,
    settings: Settings | None = None,
) -> None:
    """Import ``data`` into ``store``, reporting progress on ``job_id``.

    Unreadable workbooks end the job in ``phase=error``; row problems become
    structured failures and the import carries on.
    """
    settings = settings or get_settings()
    registry.update(
        job_id,
        {"phase": JobPhase.RUNNING, "progress": 5, "message": "Reading Excel file..."},
        log="Reading Excel file...",
    )
    try:
        parsed = await asyncio.to_thread(read_workbook, data)
    except WorkbookError as exc:
        logger.info("Import %s rejected: %s", job_id, exc)
        registry.update(
            job_id,
            {"phase": JobPhase.ERROR, "message": f"Import failed: {exc}", "error": str(exc)},
            log=f"Import failed: {exc}",
        )
        return

    for name in parsed.skipped_sheets:
        registry.update(job_id, log=f"Sheet '{name}' not recognized, skipping")

    grouped = parsed.by_sheet()
    records = [record for kind in SHEET_ORDER for record in grouped[kind]]
    importer = _Importer(registry, job_id, store)
    importer.stats.total = len(records)
    registry.update(
        job_id,
        {"progress": _PROGRESS_START, "message": f"Found {len(records)} rows"},
        log=f"Found {len(records)} rows in {', '.join(parsed.recognized_sheets)}",
    )

    for position, record in enumerate(records):
        if registry.is_cancelled(job_id):
            logger.info("Import %s cancelled after %d row(s)", job_id, position)
            registry.update(
                job_id,
                {"stats": importer.stats.to_dict()},
                log=f"Stopped after {position} of {len(records)} rows",
            )
            return

        progress = _PROGRESS_START + (position * _PROGRESS_SPAN) // max(1, len(records))
        try:
            importer.import_row(record)
        except RowError as exc:
            importer.stats.failed_rows.append(failure_for(record, exc.reason))
            registry.update(
                job_id,
                {"progress": progress, "message": f"Error in row {record.row}"},
                log=f"Row {record.row} in {record.sheet.value}: {exc.reason}",
            )
        else:
            registry.update(
                job_id,
                {"progress": progress, "message": f"Imported question {position + 1}/{len(records)}"},
            )

        if (position + 1) % settings.row_yield_every == 0:
            await asyncio.sleep(0)

    stats = importer.stats
    errors = [failure_row(failure) for failure in stats.failed_rows]
    registry.set_result(
        job_id,
        build_result_workbook(
            importer.imported_rows,
            errors,
            columns=CANONICAL_COLUMNS,
            error_columns=ERROR_COLUMNS,
        ),
    )
    registry.set_artifact(job_id, FAILED_ROWS_ARTIFACT, build_failures_csv(stats.failed_rows))
    logger.info("Import %s done: %d imported, %d failed", job_id, stats.imported, stats.failed)
    registry.update(
        job_id,
        {
            "phase": JobPhase.COMPLETE,
            "progress": 100,
            "message": "Import completed",
            "stats": stats.to_dict(),
        },
        log=stats.summary(),
    )


__all__ = ["FAILED_ROWS_ARTIFACT", "ImportStats", "run_import_job"]
