"""Duplicate detection for imported rows."""

from dedup.engine import (
    STORE_DUPLICATE_REASON,
    BatchDeduplicator,
    dedup_key,
    is_duplicate_in_batch,
    is_duplicate_in_store,
)

__all__ = [
    "BatchDeduplicator",
    "STORE_DUPLICATE_REASON",
    "dedup_key",
    "is_duplicate_in_batch",
    "is_duplicate_in_store",
]
