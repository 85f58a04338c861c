"""AI correction job: analyze every question of a workbook and merge fixes back.

Progress layout: 5 while reading, 10 when analysis starts, 10-85 across
MCQ batches, 85-90 across QROC batches, 90 while merging, 100 on completion.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from analysis.batch import analyze_in_chunks, analyze_qroc_in_chunks, progress_in_range
from analysis.client import BatchAnalyzer
from analysis.qroc import QrocAnalyzer
from core.config import Settings, get_settings
from ingestion.answers import format_answer_letters
from ingestion.errors import WorkbookError
from ingestion.values import clean_source, extract_level_subject
from ingestion.workbook import read_workbook
from reporting.result_workbook import (
    CORRECTION_COLUMNS,
    ERROR_COLUMNS,
    build_result_workbook,
    record_row,
)
from retrieval.context import ContextSettings, Searcher, gather_context, with_context
from retrieval.resolver import IndexResolver
from schemas.internal.analysis import (
    AnalysisResult,
    BatchProgress,
    QrocResult,
    QrocWorkItem,
    WorkItem,
)
from schemas.internal.jobs import JobPhase
from schemas.internal.rows import OPTION_LETTERS, SHEET_ORDER, RowRecord
from sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

REASON_NO_OPTIONS = "MCQ sans options"
REASON_MISSING_RESULT = "Résultat IA manquant"
REASON_NO_CHANGE = "Aucun changement proposé par l’IA"
REASON_MISSING_ANSWER = "Réponse manquante"
REASON_ALREADY_EXPLAINED = "Déjà expliqué"
REASON_NO_EXPLANATION = "IA: pas d’explication"
REASON_NOT_FIXED = "Non corrigé"

_QA_BLOCK_RE = re.compile(r"\bOptions:\n- \(A\)|^Question:", re.MULTILINE)
_ERRORS_PREVIEW = 50


@dataclass(frozen=True)
class RagSetup:
    searcher: Searcher
    resolver: IndexResolver
    settings: ContextSettings = field(default_factory=ContextSettings)


@dataclass
class MergedRow:
    values: dict[str, Any]
    fixed: bool
    reason: Optional[str] = None


@dataclass
class CorrectionOutcome:
    rows_by_sheet: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)
    fixed: int = 0

    @property
    def unfixed(self) -> int:
        return len(self.errors)

    def reason_counts(self) -> dict[str, int]:
        return dict(Counter(str(error["reason"]) for error in self.errors))

    def errors_preview(self) -> list[dict[str, Any]]:
        preview = []
        for error in self.errors[:_ERRORS_PREVIEW]:
            number = str(error.get("question n") or "").strip()
            preview.append(
                {
                    "sheet": error["sheet"],
                    "row": error["row"],
                    "reason": error["reason"],
                    "question": str(error.get("texte de la question") or "")[:120],
                    "question_number": int(number) if number.isdigit() else None,
                }
            )
        return preview


def build_work_items(
    records: Sequence[RowRecord],
    rag: Optional[RagSetup] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> tuple[list[WorkItem], dict[str, str]]:
    """Work items for MCQ rows (ids are positions), plus RAG quotes by id.

    ``should_stop`` is checked before each row; once it returns true the
    remaining rows are left out.
    """
    items: list[WorkItem] = []
    quotes: dict[str, str] = {}
    for position, record in enumerate(records):
        if should_stop is not None and should_stop():
            break
        item_id = str(position)
        question = record.value("texte_de_la_question")
        options = record.options()
        if rag is not None and question:
            level = extract_level_subject(record)
            index_id = rag.resolver.resolve(level.niveau, level.matiere)
            if index_id:
                try:
                    context = gather_context(
                        rag.searcher, index_id, question, options, settings=rag.settings
                    )
                except Exception as exc:
                    logger.warning("RAG search failed for question %s: %s", item_id, exc)
                    context = None
                if context is not None:
                    question = with_context(
                        question, context, niveau=level.niveau, matiere=level.matiere
                    )
                    if context.quote:
                        quotes[item_id] = context.quote
        items.append(
            WorkItem(
                id=item_id,
                question_text=question,
                options=options,
                provided_answer_raw=record.value("reponse"),
            )
        )
    return items, quotes


def needs_explanation(record: RowRecord) -> bool:
    return bool(record.value("reponse")) and not record.value("explication")


def build_qroc_items(records: Sequence[RowRecord]) -> list[QrocWorkItem]:
    return [
        QrocWorkItem(
            id=str(position),
            question_text=record.value("texte_de_la_question"),
            answer_text=record.value("reponse"),
            case_text=record.texte_du_cas,
        )
        for position, record in enumerate(records)
        if needs_explanation(record)
    ]


def merge_mcq_row(
    record: RowRecord,
    result: Optional[AnalysisResult],
    quote: Optional[str] = None,
) -> MergedRow:
    values: dict[str, Any] = record_row(record)
    options = record.options()
    if not options:
        return MergedRow(values, fixed=False, reason=REASON_NO_OPTIONS)
    if result is None:
        return MergedRow(values, fixed=False, reason=REASON_MISSING_RESULT)
    if result.status == "error":
        return MergedRow(values, fixed=False, reason=f"IA: {result.error or 'erreur'}")

    changed = False
    current = values["reponse"].strip()
    if result.correct_answers:
        letters = format_answer_letters(result.correct_answers)
        if letters != current:
            values["reponse"] = letters
            changed = True
    elif result.no_answer and current != "?":
        values["reponse"] = "?"
        changed = True

    base = values["explication"].strip()
    qa_block = "" if _QA_BLOCK_RE.search(base) else _qa_block(record, options, values["reponse"])
    if result.option_explanations:
        header = f"{result.global_explanation}\n\n" if result.global_explanation else ""
        lines = "\n".join(
            f"- ({_letter(index)}) {text}"
            for index, text in enumerate(result.option_explanations)
        )
        merged = f"{qa_block}{header}Explications (IA):\n{lines}"
        values["explication"] = _append_block(base, merged)
        changed = True
        for letter, text in zip(OPTION_LETTERS, result.option_explanations):
            key = f"explication {letter}"
            cleaned = text.strip()
            if cleaned and cleaned != values[key].strip():
                values[key] = cleaned
    elif result.global_explanation:
        quote_block = f"{_citation(quote)}\n\n" if quote else ""
        merged = f"{qa_block}{quote_block}{result.global_explanation.strip()}"
        if merged not in base:
            values["explication"] = _append_block(base, merged)
            changed = True
    elif quote and "Citation du cours:" not in base:
        values["explication"] = _append_block(base, f"{qa_block}{_citation(quote)}")
        changed = True

    if not changed:
        return MergedRow(values, fixed=False, reason=REASON_NO_CHANGE)
    return MergedRow(values, fixed=True)


def merge_qroc_row(record: RowRecord, result: Optional[QrocResult]) -> MergedRow:
    values: dict[str, Any] = record_row(record)
    if not values["reponse"].strip():
        return MergedRow(values, fixed=False, reason=REASON_MISSING_ANSWER)
    if values["explication"].strip():
        return MergedRow(values, fixed=False, reason=REASON_ALREADY_EXPLAINED)
    if result is None:
        return MergedRow(values, fixed=False, reason=REASON_MISSING_RESULT)
    if result.status == "error" or not result.explanation:
        reason = f"IA: {result.error}" if result.error else REASON_NO_EXPLANATION
        return MergedRow(values, fixed=False, reason=reason)
    values["explication"] = result.explanation.strip()
    return MergedRow(values, fixed=True)


def merge_results(
    records: Sequence[RowRecord],
    mcq_results: dict[str, AnalysisResult],
    qroc_results: dict[str, QrocResult],
    quotes: Optional[dict[str, str]] = None,
) -> CorrectionOutcome:
    """Merge per-item results back onto every row, fixed or not."""
    quotes = quotes or {}
    outcome = CorrectionOutcome()
    mcq_position = qroc_position = 0
    for record in records:
        if record.sheet.is_mcq:
            key = str(mcq_position)
            mcq_position += 1
            merged = merge_mcq_row(record, mcq_results.get(key), quotes.get(key))
        else:
            key = str(qroc_position)
            qroc_position += 1
            merged = merge_qroc_row(record, qroc_results.get(key))

        level = extract_level_subject(record)
        values = merged.values
        values["niveau"] = level.niveau or ""
        values["matiere"] = level.matiere or ""
        values["source"] = clean_source(record.source)
        values["ai_status"] = "fixed" if merged.fixed else "unfixed"
        values["ai_reason"] = "" if merged.fixed else (merged.reason or REASON_NOT_FIXED)
        outcome.rows_by_sheet.setdefault(record.sheet.value, []).append(values)

        if merged.fixed:
            outcome.fixed += 1
            continue
        outcome.errors.append(
            {
                **values,
                "sheet": record.sheet.value,
                "row": record.row,
                "reason": values["ai_reason"],
                "matiere": record.value("matiere"),
            }
        )
    return outcome


async def run_correction_job(
    registry: SessionRegistry,
    job_id: str,
    data: bytes,
    *,
    analyzer: BatchAnalyzer,
    qroc_analyzer: QrocAnalyzer,
    rag: Optional[RagSetup] = None,
    settings: Settings | None = None,
) -> None:
    settings = settings or get_settings()
    registry.update(
        job_id,
        {"phase": JobPhase.RUNNING, "progress": 5, "message": "Reading workbook..."},
        log="Reading workbook...",
    )
    try:
        parsed = await asyncio.to_thread(read_workbook, data)
    except WorkbookError as exc:
        logger.info("Correction %s rejected: %s", job_id, exc)
        registry.update(
            job_id,
            {"phase": JobPhase.ERROR, "message": f"Correction failed: {exc}", "error": str(exc)},
            log=f"Correction failed: {exc}",
        )
        return

    for name in parsed.skipped_sheets:
        registry.update(job_id, log=f"Sheet '{name}' not recognized, skipping")
    grouped = parsed.by_sheet()
    records = [record for kind in SHEET_ORDER for record in grouped[kind]]
    mcq_records = [record for record in records if record.sheet.is_mcq]
    qroc_records = [record for record in records if not record.sheet.is_mcq]

    def stopped() -> bool:
        return registry.is_cancelled(job_id)

    if rag is not None and not (settings.enable_rag and rag.resolver.enabled):
        rag = None
    items, quotes = await asyncio.to_thread(build_work_items, mcq_records, rag, stopped)
    if stopped():
        registry.update(job_id, log="Stopped before AI analysis")
        return
    total_batches = -(-len(items) // settings.ai_batch_size)
    registry.update(
        job_id,
        {
            "progress": 10,
            "message": "AI analysis...",
            "stats": {
                "total_rows": len(records),
                "mcq_rows": len(items),
                "qroc_rows": len(qroc_records),
                "processed_batches": 0,
                "total_batches": total_batches,
            },
        },
        log=f"Starting AI analysis: {len(items)} MCQ{' (RAG)' if rag is not None else ''}",
    )

    def on_mcq_batch(progress: BatchProgress) -> None:
        registry.update(
            job_id,
            {
                "progress": progress_in_range(progress.index, progress.total),
                "message": f"Processing batch {progress.index}/{progress.total}...",
                "stats": {"processed_batches": progress.index, "total_batches": progress.total},
            },
            log=(
                f"Batch {progress.index}/{progress.total} "
                f"(batch={settings.ai_batch_size}, conc={settings.ai_concurrency})"
            ),
        )

    mcq_results = await analyze_in_chunks(
        items,
        analyzer=analyzer,
        batch_size=settings.ai_batch_size,
        concurrency=settings.ai_concurrency,
        on_batch_progress=on_mcq_batch,
        timeout=settings.ai_batch_timeout,
        should_stop=stopped,
    )
    if stopped():
        registry.update(job_id, log="Stopped before merging results")
        return

    def on_qroc_batch(progress: BatchProgress) -> None:
        registry.update(
            job_id,
            {
                "progress": progress_in_range(progress.index, progress.total, start=85, end=90),
                "message": f"Processing QROC batch {progress.index}/{progress.total}...",
            },
            log=f"QROC batch {progress.index}/{progress.total}",
        )

    qroc_results = await analyze_qroc_in_chunks(
        build_qroc_items(qroc_records),
        analyzer=qroc_analyzer,
        batch_size=settings.qroc_batch_size,
        on_batch_progress=on_qroc_batch,
        timeout=settings.ai_batch_timeout,
        should_stop=stopped,
    )
    if stopped():
        registry.update(job_id, log="Stopped before merging results")
        return

    registry.update(
        job_id, {"progress": 90, "message": "Merging results..."}, log="Merging results..."
    )
    outcome = merge_results(records, mcq_results, qroc_results, quotes)
    workbook = await asyncio.to_thread(
        build_result_workbook,
        outcome.rows_by_sheet,
        outcome.errors,
        columns=CORRECTION_COLUMNS,
        error_columns=ERROR_COLUMNS,
    )
    registry.set_result(job_id, workbook)

    reason_counts = outcome.reason_counts()
    top = sorted(reason_counts.items(), key=lambda item: item[1], reverse=True)[:3]
    if top:
        registry.update(
            job_id,
            log="Top reasons: " + ", ".join(f"{reason} ({count})" for reason, count in top),
        )
    logger.info("Correction %s done: %d fixed, %d unfixed", job_id, outcome.fixed, outcome.unfixed)
    registry.update(
        job_id,
        {
            "phase": JobPhase.COMPLETE,
            "progress": 100,
            "message": "Done",
            "stats": {
                "fixed": outcome.fixed,
                "unfixed": outcome.unfixed,
                "reason_counts": reason_counts,
                "errors_preview": outcome.errors_preview(),
            },
        },
        log=f"Fixed: {outcome.fixed} • Still in error: {outcome.unfixed}",
    )


def _qa_block(record: RowRecord, options: Sequence[str], answer: str) -> str:
    option_lines = "\n".join(f"- ({_letter(index)}) {text}" for index, text in enumerate(options))
    question = record.value("texte_de_la_question")
    return f"Question:\n{question}\n\nOptions:\n{option_lines}\n\nRéponse(s): {answer.strip() or '?'}\n\n"


def _citation(quote: Optional[str]) -> str:
    return f'Citation du cours: "{quote}"'


def _append_block(base: str, block: str) -> str:
    return f"{base}\n\n{block}" if base else block


def _letter(index: int) -> str:
    return chr(ord("A") + index)


__all__ = [
    "CorrectionOutcome",
    "MergedRow",
    "RagSetup",
    "REASON_ALREADY_EXPLAINED",
    "REASON_MISSING_ANSWER",
    "REASON_MISSING_RESULT",
    "REASON_NO_CHANGE",
    "REASON_NO_EXPLANATION",
    "REASON_NO_OPTIONS",
    "REASON_NOT_FIXED",
    "build_qroc_items",
    "build_work_items",
    "merge_mcq_row",
    "merge_qroc_row",
    "merge_results",
    "needs_explanation",
    "run_correction_job",
]
