"""LLM-backed batch analyzer for MCQ correction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Protocol, Sequence, TYPE_CHECKING

from pydantic import ValidationError

from analysis.prompts import (
    DEFAULT_MCQ_SYSTEM_PROMPT,
    build_mcq_user_prompt,
    build_system_prompt,
)
from qbank.telemetry import traceable_if_enabled
from schemas.internal.analysis import AnalysisResult, WorkItem
from utils.llm_json import load_json_object

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

logger = logging.getLogger(__name__)

NON_JSON_ERROR = "Non-JSON response from AI"


class ChatModelLike(Protocol):
    async def ainvoke(self, input: object) -> Any: ...


class BatchAnalyzer(Protocol):
    async def analyze(self, batch: Sequence[WorkItem]) -> List[AnalysisResult]: ...


@dataclass(frozen=True)
class AnalysisModelConfig:
    model: str
    model_provider: str | None = None
    temperature: float = 0.0
    timeout: float | None = None
    max_tokens: int | None = None
    max_retries: int | None = 2

    @classmethod
    def from_settings(cls, settings: Any) -> "AnalysisModelConfig | None":
        if not settings.ai_model:
            return None
        return cls(
            model=settings.ai_model,
            model_provider=settings.ai_model_provider,
            temperature=settings.ai_temperature,
            timeout=settings.ai_batch_timeout,
            max_tokens=settings.ai_max_tokens,
            max_retries=settings.ai_max_retries,
        )


def init_analysis_model(config: AnalysisModelConfig) -> ChatModelLike:
    from langchain.chat_models import init_chat_model

    kwargs: dict[str, Any] = {}
    if config.model_provider:
        kwargs["model_provider"] = config.model_provider
    if config.temperature is not None:
        kwargs["temperature"] = config.temperature
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    if config.max_tokens is not None:
        kwargs["max_tokens"] = config.max_tokens
    if config.max_retries is not None:
        kwargs["max_retries"] = config.max_retries

    return init_chat_model(config.model, **kwargs)


class LLMBatchAnalyzer:
    """Sends one batch of work items per chat request."""

    def __init__(
        self,
        llm: ChatModelLike,
        *,
        system_prompt: str | None = None,
        instructions: str | None = None,
    ) -> None:
        self._llm = llm
        self._system_prompt = build_system_prompt(
            system_prompt or DEFAULT_MCQ_SYSTEM_PROMPT, instructions
        )

    @traceable_if_enabled(name="analyze_mcq_batch", run_type="llm")
    async def analyze(self, batch: Sequence[WorkItem]) -> List[AnalysisResult]:
        logger.debug("Analyzing MCQ batch of %d item(s)", len(batch))
        messages = build_messages(self._system_prompt, build_mcq_user_prompt(batch))
        raw = await self._llm.ainvoke(messages)
        return parse_mcq_results(message_text(raw), batch)


def parse_mcq_results(content: str, batch: Sequence[WorkItem]) -> List[AnalysisResult]:
    """Parse a ``{"results": [...]}`` reply; unknown ids are dropped.

    A reply without a JSON object marks every item of the batch as failed.
    Items absent from the reply are left out so the engine can flag them.
    """
    entries = load_results(content)
    if entries is None:
        return [AnalysisResult.failure(item.id, NON_JSON_ERROR) for item in batch]

    expected = {item.id for item in batch}
    results: List[AnalysisResult] = []
    for entry in entries:
        item_id = str(entry.get("id", ""))
        if item_id not in expected:
            continue
        payload = {**entry, "id": item_id}
        payload["status"] = "ok" if entry.get("status") == "ok" else "error"
        try:
            results.append(AnalysisResult.model_validate(payload))
        except ValidationError as exc:
            first = exc.errors()[0].get("msg", "invalid result") if exc.errors() else str(exc)
            results.append(AnalysisResult.failure(item_id, f"Invalid AI result: {first}"))
    return results


def load_results(content: str) -> List[dict[str, Any]] | None:
    try:
        payload = load_json_object(content)
    except ValueError:
        return None
    entries = payload.get("results")
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def build_messages(system_prompt: str, user_prompt: str) -> "list[BaseMessage]":
    from langchain_core.messages import HumanMessage, SystemMessage

    return [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]


def message_text(raw: Any) -> str:
    content = getattr(raw, "content", raw)
    if isinstance(content, str):
        return content
    if isinstance(content, Iterable):
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(str(part.get("text", "")))
            else:
                parts.append(str(part))
        return "".join(parts)
    return str(content)


__all__ = [
    "AnalysisModelConfig",
    "BatchAnalyzer",
    "ChatModelLike",
    "LLMBatchAnalyzer",
    "NON_JSON_ERROR",
    "build_messages",
    "init_analysis_model",
    "load_results",
    "message_text",
    "parse_mcq_results",
]
