"""FastAPI dependencies for shared service objects.

Objects live on ``app.state`` and are created on first use, so tests can
replace any of them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from core.config import Settings, get_settings
from persistence.sqlite_store import SqliteStore
from retrieval.index import VectorIndexService
from retrieval.resolver import IndexResolver
from services.analyzers import AnalyzerFactory, init_analyzer_factory
from services.rag import init_vector_service
from sessions.registry import SessionRegistry
from sessions.runner import JobRunner


def get_registry(request: Request) -> SessionRegistry:
    state = request.app.state
    registry = getattr(state, "registry", None)
    if registry is None:
        registry = SessionRegistry(get_settings().session_ttl_seconds)
        state.registry = registry
    return registry


def get_runner(
    request: Request, registry: SessionRegistry = Depends(get_registry)
) -> JobRunner:
    state = request.app.state
    runner = getattr(state, "runner", None)
    if runner is None:
        runner = JobRunner(registry)
        state.runner = runner
    return runner


def get_store(request: Request, settings: Settings = Depends(get_settings)) -> SqliteStore:
    state = request.app.state
    store = getattr(state, "store", None)
    if store is None:
        store = SqliteStore(settings.store_path)
        state.store = store
    return store


def get_vector_service(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: SqliteStore = Depends(get_store),
) -> Optional[VectorIndexService]:
    state = request.app.state
    service = getattr(state, "vector_service", None)
    if service is None:
        service = init_vector_service(settings, store)
        state.vector_service = service
    return service


def get_index_resolver(settings: Settings = Depends(get_settings)) -> IndexResolver:
    return IndexResolver.from_settings(settings)


def get_analyzer_factory(
    settings: Settings = Depends(get_settings),
) -> Optional[AnalyzerFactory]:
    return init_analyzer_factory(settings)


__all__ = [
    "get_analyzer_factory",
    "get_index_resolver",
    "get_registry",
    "get_runner",
    "get_store",
    "get_vector_service",
]
