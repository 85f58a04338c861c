"""Batched AI analysis of question items."""

from analysis.batch import (
    analyze_in_chunks,
    analyze_qroc_in_chunks,
    partition,
    progress_in_range,
)
from analysis.client import (
    AnalysisModelConfig,
    BatchAnalyzer,
    LLMBatchAnalyzer,
    init_analysis_model,
)
from analysis.qroc import LLMQrocAnalyzer, QrocAnalyzer

__all__ = [
    "AnalysisModelConfig",
    "BatchAnalyzer",
    "LLMBatchAnalyzer",
    "LLMQrocAnalyzer",
    "QrocAnalyzer",
    "analyze_in_chunks",
    "analyze_qroc_in_chunks",
    "init_analysis_model",
    "partition",
    "progress_in_range",
]
