"""Typer CLI entrypoint for workbook imports, corrections and course indexes."""

from __future__ import annotations

import logging

import typer

from cli.commands import config, jobs, rag
from qbank import __version__

app = typer.Typer(
    help="Question bank tools\n\nImport and correct question workbooks, and manage course indexes.\n",
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
    add_completion=True,
)


@app.callback()
def root(
    ctx: typer.Context,
    version_flag: bool = typer.Option(
        False,
        "-v",
        "--version",
        help="Print the version and exit",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level: DEBUG|INFO|WARNING|ERROR",
    ),
) -> None:
    if version_flag:
        typer.echo(__version__)
        raise typer.Exit()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


app.command("import", help="Import a question workbook into the store")(jobs.import_workbook)
app.command("correct", help="Correct a question workbook with the AI model")(
    jobs.correct_workbook
)
app.add_typer(rag.app, name="rag")
app.add_typer(config.app, name="config")


def main() -> None:
    app()


__all__ = ["app", "main"]
