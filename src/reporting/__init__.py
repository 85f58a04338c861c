"""Reporting module exports."""

from __future__ import annotations

from reporting.result_workbook import (
    CANONICAL_COLUMNS,
    CORRECTION_COLUMNS,
    ERROR_COLUMNS,
    ERRORS_SHEET,
    build_failures_csv,
    build_result_workbook,
)

__all__ = [
    "CANONICAL_COLUMNS",
    "CORRECTION_COLUMNS",
    "ERRORS_SHEET",
    "ERROR_COLUMNS",
    "build_failures_csv",
    "build_result_workbook",
]
