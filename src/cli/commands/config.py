"""Configuration inspection commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from cli.common import emit_json
from core.config import Settings, get_settings


app = typer.Typer(
    help="Inspect the effective configuration",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


def _env_name(field_name: str) -> str:
    alias = Settings.model_fields[field_name].validation_alias
    return alias if isinstance(alias, str) else field_name.upper()


@app.command("show", help="Show the effective configuration")
def show_config(
    json_out: bool = typer.Option(True, "--json/--no-json", help="Output JSON"),
) -> None:
    values = get_settings().model_dump(mode="json")
    if json_out:
        emit_json(values)
        return
    table = Table("setting", "env", "value")
    for name, value in values.items():
        table.add_row(name, _env_name(name), "" if value is None else str(value))
    Console().print(table)


@app.command("diff", help="Show values that differ from the defaults")
def diff_config() -> None:
    current = get_settings().model_dump(mode="json")
    changed = {
        _env_name(name): {"value": current[name], "default": field.default}
        for name, field in Settings.model_fields.items()
        if not field.exclude and current.get(name) != field.default
    }
    emit_json(changed)


@app.command("features", help="Report which optional features are usable")
def features() -> None:
    emit_json(get_settings().features())


__all__ = ["app"]
