"""Shared helpers for CLI commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Coroutine

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from core.config import get_settings
from schemas.internal.jobs import JobKind
from sessions.registry import SessionRegistry
from sessions.runner import JobRunner

JobFactory = Callable[[SessionRegistry, str], Coroutine[Any, Any, None]]


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def read_input(path: Path) -> bytes:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    data = path.read_bytes()
    if not data:
        raise typer.BadParameter(f"File is empty: {path}")
    return data


def write_output(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def run_job(
    kind: JobKind,
    file_name: str,
    job: JobFactory,
    *,
    console: Console,
    poll_interval: float = 0.2,
) -> tuple[SessionRegistry, dict[str, Any]]:
    """Run one job in-process while rendering its progress and logs."""
    registry = SessionRegistry(get_settings().session_ttl_seconds)
    session = registry.create(kind, file_name=file_name)
    asyncio.run(
        _follow(registry, session.id, job, console=console, poll_interval=poll_interval)
    )
    snapshot = registry.snapshot(session.id)
    assert snapshot is not None
    return registry, snapshot


async def _follow(
    registry: SessionRegistry,
    job_id: str,
    job: JobFactory,
    *,
    console: Console,
    poll_interval: float,
) -> None:
    runner = JobRunner(registry)
    task = runner.submit(job_id, job(registry, job_id))
    seen_logs = 0
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        bar = progress.add_task("Queued", total=100)
        while True:
            done = task.done()
            snapshot = registry.snapshot(job_id) or {}
            logs = snapshot.get("logs", [])
            for line in logs[seen_logs:]:
                progress.console.log(line)
            seen_logs = len(logs)
            progress.update(
                bar,
                completed=snapshot.get("progress", 0),
                description=snapshot.get("message") or "",
            )
            if done:
                break
            await asyncio.wait({task}, timeout=poll_interval)
    await runner.join()


__all__ = ["emit_json", "read_input", "run_job", "write_output"]
