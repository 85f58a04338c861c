"""Ingestion error types."""

from __future__ import annotations


class RowError(ValueError):
    """A single row is malformed; the caller records it and moves on."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class WorkbookError(ValueError):
    """The workbook as a whole cannot be ingested."""


__all__ = ["RowError", "WorkbookError"]
