"""Batch analysis contracts (work items in, per-item results out)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class WorkItem(BaseModel):
    """One MCQ sent to the analysis service."""

    id: str = Field(min_length=1)
    question_text: str
    options: List[str] = Field(default_factory=list, max_length=5)
    provided_answer_raw: str = ""

    model_config = ConfigDict(extra="forbid")


class AnalysisResult(BaseModel):
    """Structured verdict for one work item.

    ``status="ok"`` with no correct answers is only valid when ``no_answer``
    is set.
    """

    id: str
    status: Literal["ok", "error"]
    correct_answers: Optional[List[int]] = Field(
        default=None, validation_alias=AliasChoices("correct_answers", "correctAnswers")
    )
    no_answer: bool = Field(
        default=False, validation_alias=AliasChoices("no_answer", "noAnswer")
    )
    option_explanations: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("option_explanations", "optionExplanations"),
    )
    global_explanation: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("global_explanation", "globalExplanation"),
    )
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("correct_answers")
    @classmethod
    def _sorted_unique(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return None
        return sorted({int(index) for index in value})

    @model_validator(mode="after")
    def _validate_ok_answers(self) -> "AnalysisResult":
        if self.status == "ok" and not self.correct_answers and not self.no_answer:
            raise ValueError("ok result without correct answers must set no_answer")
        if self.no_answer:
            self.correct_answers = []
        return self

    @classmethod
    def failure(cls, item_id: str, message: str) -> "AnalysisResult":
        return cls(id=item_id, status="error", error=message)


class QrocWorkItem(BaseModel):
    """One open-answer question sent for explanation generation."""

    id: str = Field(min_length=1)
    question_text: str
    answer_text: str = ""
    case_text: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class QrocResult(BaseModel):
    id: str
    status: Literal["ok", "error"]
    explanation: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def failure(cls, item_id: str, message: str) -> "QrocResult":
        return cls(id=item_id, status="error", error=message)


@dataclass(frozen=True)
class BatchProgress:
    """Completion notice for one batch (``index`` is the completed count)."""

    index: int
    total: int


__all__ = [
    "AnalysisResult",
    "BatchProgress",
    "QrocResult",
    "QrocWorkItem",
    "WorkItem",
]
