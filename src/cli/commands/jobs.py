"""Workbook import and AI correction commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from cli.common import emit_json, read_input, run_job, write_output
from core.config import get_settings
from persistence.sqlite_store import SqliteStore
from retrieval.resolver import IndexResolver
from schemas.internal.jobs import JobKind, JobPhase
from services.analyzers import init_analyzer_factory
from services.correction_job import RagSetup, run_correction_job
from services.import_job import FAILED_ROWS_ARTIFACT, run_import_job
from services.rag import context_settings, init_vector_service

console = Console(stderr=True)

_WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}


def _check_workbook(path: Path) -> None:
    if path.suffix.lower() not in _WORKBOOK_SUFFIXES:
        raise typer.BadParameter(f"Only .xlsx workbooks are supported: {path}")


def _default_output(path: Path, suffix: str) -> Path:
    return path.with_name(f"{path.stem}-{suffix}.xlsx")


def _finish(registry, snapshot: dict, output: Path, *, json_out: bool) -> None:
    if json_out:
        emit_json(snapshot)
    if snapshot["phase"] != JobPhase.COMPLETE.value:
        console.print(f"[red]{snapshot['message']}[/red]")
        raise typer.Exit(code=1)
    payload = registry.get_result(snapshot["id"])
    if payload is None:
        console.print("[yellow]No result produced.[/yellow]")
        return
    write_output(output, payload)
    console.print(f"Wrote: {output}")


def import_workbook(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Result workbook path (default: <name>-import.xlsx)"
    ),
    failed_csv: Path | None = typer.Option(
        None, "--failed-csv", help="Write the failed rows report to this CSV file"
    ),
    store_path: Path | None = typer.Option(
        None, "--store", help="SQLite store path (default: STORE_PATH)"
    ),
    json_out: bool = typer.Option(False, "--json", help="Print the final job snapshot"),
) -> None:
    """Validate, deduplicate and store every question row of a workbook."""
    _check_workbook(path)
    data = read_input(path)
    settings = get_settings()
    store = SqliteStore(store_path or settings.store_path)

    registry, snapshot = run_job(
        JobKind.IMPORT,
        path.name,
        lambda registry, job_id: run_import_job(
            registry, job_id, data, store=store, settings=settings
        ),
        console=console,
    )
    if failed_csv is not None:
        report = registry.get_artifact(snapshot["id"], FAILED_ROWS_ARTIFACT)
        if report is not None:
            write_output(failed_csv, report)
            console.print(f"Wrote: {failed_csv}")
    _finish(registry, snapshot, output or _default_output(path, "import"), json_out=json_out)


def correct_workbook(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    instructions: str | None = typer.Option(
        None, "--instructions", "-i", help="Extra instructions appended to the AI prompt"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Corrected workbook path (default: <name>-corrected.xlsx)"
    ),
    rag: bool | None = typer.Option(
        None, "--rag/--no-rag", help="Override ENABLE_RAG for this run"
    ),
    json_out: bool = typer.Option(False, "--json", help="Print the final job snapshot"),
) -> None:
    """Run the AI correction over a workbook and write the corrected copy."""
    _check_workbook(path)
    data = read_input(path)
    settings = get_settings()
    if rag is not None:
        settings = settings.model_copy(update={"enable_rag": rag})
    factory = init_analyzer_factory(settings)
    if factory is None:
        raise typer.BadParameter("AI model is not configured (set AI_MODEL).")
    analyzer, qroc_analyzer = factory(instructions)

    rag_setup = None
    resolver = IndexResolver.from_settings(settings)
    if settings.enable_rag and resolver.enabled:
        service = init_vector_service(settings, SqliteStore(settings.store_path))
        if service is None:
            console.print("[yellow]RAG enabled but EMBEDDING_MODEL is not set; skipping.[/yellow]")
        else:
            rag_setup = RagSetup(
                searcher=service, resolver=resolver, settings=context_settings(settings)
            )

    registry, snapshot = run_job(
        JobKind.CORRECTION,
        path.name,
        lambda registry, job_id: run_correction_job(
            registry,
            job_id,
            data,
            analyzer=analyzer,
            qroc_analyzer=qroc_analyzer,
            rag=rag_setup,
            settings=settings,
        ),
        console=console,
    )
    _finish(registry, snapshot, output or _default_output(path, "corrected"), json_out=json_out)


__all__ = ["correct_workbook", "import_workbook"]
