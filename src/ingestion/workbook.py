"""Workbook reading and sheet classification."""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from typing import Any, Iterable, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError

from ingestion.errors import WorkbookError
from ingestion.headers import canonicalize_header, canonicalize_sheet_name
from schemas.internal.rows import CANONICAL_FIELDS, SHEET_ORDER, RowRecord, SheetKind

logger = logging.getLogger(__name__)

ERROR_EXPORT_SHEET_COLUMN = "sheet"
# Bookkeeping columns written by our own exports, ignored on re-import.
_EXPORT_META_COLUMNS = frozenset({"sheet", "row", "reason", "ai status", "ai reason"})
_CANONICAL = frozenset(CANONICAL_FIELDS)


@dataclass(frozen=True)
class SheetClassification:
    """How a worksheet is read.

    ``kind`` is set for the four question sheets. ``error_export`` marks a
    previously exported error sheet whose rows carry their own target sheet
    in a ``sheet`` column.
    """

    kind: SheetKind | None = None
    error_export: bool = False

    @property
    def recognized(self) -> bool:
        return self.kind is not None or self.error_export


@dataclass
class ParsedWorkbook:
    records: list[RowRecord] = field(default_factory=list)
    sheet_names: list[str] = field(default_factory=list)
    recognized_sheets: list[str] = field(default_factory=list)
    skipped_sheets: list[str] = field(default_factory=list)

    def by_sheet(self) -> dict[SheetKind, list[RowRecord]]:
        grouped: dict[SheetKind, list[RowRecord]] = {kind: [] for kind in SHEET_ORDER}
        for record in self.records:
            grouped[record.sheet].append(record)
        return grouped


def classify_sheet(name: str, header: Sequence[str]) -> SheetClassification:
    kind = canonicalize_sheet_name(name)
    if kind is not None:
        return SheetClassification(kind=kind)
    if ERROR_EXPORT_SHEET_COLUMN in header:
        return SheetClassification(error_export=True)
    return SheetClassification()


def read_workbook(data: bytes) -> ParsedWorkbook:
    """Parse workbook bytes into row records grouped by canonical sheet."""
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise WorkbookError(f"Unreadable workbook: {exc}") from exc

    parsed = ParsedWorkbook()
    try:
        for worksheet in workbook.worksheets:
            parsed.sheet_names.append(worksheet.title)
            rows = list(worksheet.iter_rows(values_only=True))
            _read_sheet(worksheet.title, rows, parsed)
    finally:
        workbook.close()

    if not parsed.sheet_names:
        raise WorkbookError("Workbook has no sheets.")
    if not parsed.records:
        if not parsed.recognized_sheets:
            raise WorkbookError(
                "No recognized sheet. Name sheets \"qcm\", \"qroc\", \"cas qcm\" or "
                f"\"cas qroc\" (case-insensitive). Found: {', '.join(parsed.sheet_names)}"
            )
        raise WorkbookError(
            "Recognized sheets contain no data rows (header only)."
        )
    return parsed


def _read_sheet(name: str, rows: list[tuple[Any, ...]], parsed: ParsedWorkbook) -> None:
    if not rows:
        parsed.skipped_sheets.append(name)
        logger.info("Skipping empty sheet %r", name)
        return
    header = [canonicalize_header(cell) for cell in rows[0]]
    classification = classify_sheet(name, header)
    if not classification.recognized:
        parsed.skipped_sheets.append(name)
        logger.info("Skipping unrecognized sheet %r", name)
        return

    parsed.recognized_sheets.append(name)
    for offset, values in enumerate(rows[1:]):
        cells = [_cell_text(value) for value in values]
        if not any(cells):
            continue
        mapping = _row_mapping(header, cells)
        if classification.kind is not None:
            kind = classification.kind
        else:
            target = mapping.get(ERROR_EXPORT_SHEET_COLUMN, "")
            kind = canonicalize_sheet_name(target) or SheetKind.QCM
        parsed.records.append(_build_record(kind, offset + 2, mapping, name))


def _row_mapping(header: Sequence[str], cells: Iterable[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for key, text in zip(header, cells):
        if not key:
            continue
        if text or key not in mapping:
            mapping[key] = text
    return mapping


def _build_record(kind: SheetKind, row: int, mapping: dict[str, str], sheet: str) -> RowRecord:
    canonical = {key: value for key, value in mapping.items() if key in _CANONICAL}
    extras = {
        key: value
        for key, value in mapping.items()
        if key not in _CANONICAL and key not in _EXPORT_META_COLUMNS and value
    }
    try:
        return RowRecord(sheet=kind, row=row, extras=extras, **canonical)
    except ValidationError as exc:
        raise WorkbookError(f"Invalid row {row} in sheet {sheet!r}: {exc}") from exc


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


__all__ = [
    "ERROR_EXPORT_SHEET_COLUMN",
    "ParsedWorkbook",
    "SheetClassification",
    "classify_sheet",
    "read_workbook",
]
