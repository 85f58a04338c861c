"""Analyzer construction shared by the API and the CLI."""

from __future__ import annotations

from functools import lru_cache
from typing import Callable, Optional, Tuple

from analysis.client import (
    AnalysisModelConfig,
    BatchAnalyzer,
    ChatModelLike,
    LLMBatchAnalyzer,
    init_analysis_model,
)
from analysis.qroc import LLMQrocAnalyzer, QrocAnalyzer
from core.config import Settings

AnalyzerPair = Tuple[BatchAnalyzer, QrocAnalyzer]
AnalyzerFactory = Callable[[Optional[str]], AnalyzerPair]


def init_analyzer_factory(settings: Settings) -> Optional[AnalyzerFactory]:
    """Factory of (MCQ, QROC) analyzers for per-job instructions, or None without AI_MODEL."""
    config = AnalysisModelConfig.from_settings(settings)
    if config is None:
        return None
    llm = _chat_model(config)
    system_prompt = settings.ai_system_prompt

    def factory(instructions: Optional[str]) -> AnalyzerPair:
        return (
            LLMBatchAnalyzer(llm, system_prompt=system_prompt, instructions=instructions),
            LLMQrocAnalyzer(llm),
        )

    return factory


@lru_cache(maxsize=4)
def _chat_model(config: AnalysisModelConfig) -> ChatModelLike:
    return init_analysis_model(config)


__all__ = ["AnalyzerFactory", "AnalyzerPair", "init_analyzer_factory"]
