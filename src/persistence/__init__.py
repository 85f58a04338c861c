"""Persistence subsystem exports."""

from persistence.contracts import QuestionStore, VectorStore
from persistence.sqlite_store import SqliteStore

__all__ = ["QuestionStore", "SqliteStore", "VectorStore"]
