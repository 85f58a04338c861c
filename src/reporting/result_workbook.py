"""Result workbook and failed-rows CSV writers.

The workbook carries one sheet per detected row type plus an ``Erreurs``
sheet whose columns start with ``sheet, row, reason`` followed by the
canonical fields, so a corrected file can be uploaded again as is.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Mapping, Sequence

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from schemas.internal.rows import (
    FIELD_LABELS,
    SHEET_ORDER,
    RowFailure,
    RowRecord,
)

ERRORS_SHEET = "Erreurs"

# canonical fields in upload order
CANONICAL_COLUMNS: list[str] = list(FIELD_LABELS.values())
CORRECTION_COLUMNS: list[str] = [*CANONICAL_COLUMNS, "ai_status", "ai_reason"]
ERROR_COLUMNS: list[str] = ["sheet", "row", "reason", *CANONICAL_COLUMNS]

FAILED_ROWS_CSV_COLUMNS: list[str] = [
    "sheet",
    "row",
    "matiere",
    "cours",
    "questionNumber",
    "questionText",
    "reponseRaw",
    "reason",
]


def record_row(record: RowRecord) -> dict[str, str]:
    """Canonical fields of ``record`` keyed by their column label."""
    return {FIELD_LABELS[field]: value for field, value in record.canonical_values().items()}


def failure_row(failure: RowFailure) -> dict[str, Any]:
    row: dict[str, Any] = {
        "matiere": failure.matiere,
        "cours": failure.cours,
        "question n": failure.question_n if failure.question_n is not None else "",
        "texte de la question": failure.texte_de_la_question,
        "reponse": failure.reponse,
    }
    if failure.record is not None:
        row.update(record_row(failure.record))
    row.update({"sheet": failure.sheet, "row": failure.row, "reason": failure.reason})
    return row


def build_result_workbook(
    rows_by_sheet: Mapping[str, Sequence[Mapping[str, Any]]],
    errors: Sequence[Mapping[str, Any]],
    *,
    columns: Sequence[str] = CORRECTION_COLUMNS,
    error_columns: Sequence[str] = ERROR_COLUMNS,
) -> bytes:
    """Serialize per-type rows and error rows into xlsx bytes."""
    workbook = Workbook()
    workbook.remove(workbook.active)

    for kind in SHEET_ORDER:
        rows = rows_by_sheet.get(kind.value) or []
        if not rows:
            continue
        sheet = workbook.create_sheet(title=kind.value)
        _write_sheet(sheet, columns=columns, rows=rows)

    errors_sheet = workbook.create_sheet(title=ERRORS_SHEET)
    _write_sheet(errors_sheet, columns=error_columns, rows=errors)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_failures_csv(failures: Iterable[RowFailure]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(FAILED_ROWS_CSV_COLUMNS)
    for failure in failures:
        writer.writerow(
            [
                failure.sheet,
                failure.row,
                failure.matiere,
                failure.cours,
                "" if failure.question_n is None else failure.question_n,
                failure.texte_de_la_question,
                failure.reponse,
                failure.reason,
            ]
        )
    return buffer.getvalue().encode("utf-8")


def _write_sheet(
    sheet: Worksheet,
    *,
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
) -> None:
    column_list = list(columns)
    sheet.append(column_list)
    sheet.freeze_panes = "A2"

    for row in rows:
        sheet.append([_empty_if_none(row.get(column)) for column in column_list])

    if sheet.max_column > 0:
        sheet.auto_filter.ref = sheet.dimensions


def _empty_if_none(value: Any) -> Any:
    if value is None:
        return ""
    return value


__all__ = [
    "CANONICAL_COLUMNS",
    "CORRECTION_COLUMNS",
    "ERRORS_SHEET",
    "ERROR_COLUMNS",
    "FAILED_ROWS_CSV_COLUMNS",
    "build_failures_csv",
    "build_result_workbook",
    "failure_row",
    "record_row",
]
