"""CLI command groups."""

__all__ = ["config", "jobs", "rag"]

from . import config, jobs, rag
