"""LangSmith tracing hooks for the LLM and embedding calls."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Callable, TypeVar

from langsmith import traceable

from core.config import Settings, get_settings

FuncT = TypeVar("FuncT", bound=Callable[..., Any])

_EXPORTED_SETTINGS = (
    ("LANGSMITH_PROJECT", "langsmith_project"),
    ("LANGSMITH_ENDPOINT", "langsmith_endpoint"),
    ("LANGSMITH_API_KEY", "langsmith_api_key"),
)


def _tracing_enabled(settings: Settings) -> bool:
    return bool(settings.langsmith_tracing and settings.langsmith_api_key)


@lru_cache(maxsize=1)
def configure_langsmith_env() -> bool:
    """Export LangSmith settings to the process env; returns whether tracing is on.

    Values already present in the environment win over the settings file.
    """
    settings = get_settings()
    for env_name, attr in _EXPORTED_SETTINGS:
        value = getattr(settings, attr)
        if value:
            os.environ.setdefault(env_name, value)
    enabled = _tracing_enabled(settings)
    if enabled:
        os.environ.setdefault("LANGSMITH_TRACING", "true")
    return enabled


def traceable_if_enabled(**trace_options: Any) -> Callable[[FuncT], FuncT]:
    """``langsmith.traceable`` when tracing is configured, identity otherwise."""

    def decorator(func: FuncT) -> FuncT:
        if not configure_langsmith_env():
            return func
        return traceable(**trace_options)(func)  # type: ignore[return-value]

    return decorator


__all__ = ["configure_langsmith_env", "traceable_if_enabled"]
