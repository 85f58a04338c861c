"""Explanation generation for open-answer (QROC) questions."""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence

from pydantic import ValidationError

from analysis.client import (
    NON_JSON_ERROR,
    ChatModelLike,
    build_messages,
    load_results,
    message_text,
)
from analysis.prompts import DEFAULT_QROC_SYSTEM_PROMPT, build_qroc_user_prompt
from qbank.telemetry import traceable_if_enabled
from schemas.internal.analysis import QrocResult, QrocWorkItem

logger = logging.getLogger(__name__)


class QrocAnalyzer(Protocol):
    async def analyze(self, batch: Sequence[QrocWorkItem]) -> List[QrocResult]: ...


class LLMQrocAnalyzer:
    def __init__(self, llm: ChatModelLike, *, system_prompt: str | None = None) -> None:
        self._llm = llm
        self._system_prompt = system_prompt or DEFAULT_QROC_SYSTEM_PROMPT

    @traceable_if_enabled(name="analyze_qroc_batch", run_type="llm")
    async def analyze(self, batch: Sequence[QrocWorkItem]) -> List[QrocResult]:
        if not batch:
            return []
        logger.debug("Generating QROC explanations for %d item(s)", len(batch))
        messages = build_messages(self._system_prompt, build_qroc_user_prompt(batch))
        raw = await self._llm.ainvoke(messages)
        return parse_qroc_results(message_text(raw), batch)


def parse_qroc_results(content: str, batch: Sequence[QrocWorkItem]) -> List[QrocResult]:
    entries = load_results(content)
    if entries is None:
        return [QrocResult.failure(item.id, NON_JSON_ERROR) for item in batch]

    expected = {item.id for item in batch}
    results: List[QrocResult] = []
    for entry in entries:
        item_id = str(entry.get("id", ""))
        if item_id not in expected:
            continue
        payload = {**entry, "id": item_id}
        payload["status"] = "ok" if entry.get("status") == "ok" else "error"
        try:
            results.append(QrocResult.model_validate(payload))
        except ValidationError:
            results.append(QrocResult.failure(item_id, "Invalid AI result"))
    return results


__all__ = ["LLMQrocAnalyzer", "QrocAnalyzer", "parse_qroc_results"]
