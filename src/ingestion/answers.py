"""Answer-letter parsing and explanation merging."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from schemas.internal.rows import OPTION_LETTERS, RowRecord

_TOKEN_SPLIT_RE = re.compile(r"[;,\s]+")
_LETTER_RE = re.compile(r"^[A-E]$", re.IGNORECASE)
_NO_ANSWER_RE = re.compile(r"^pas\s*de\s*r[ée]ponse$")


@dataclass(frozen=True)
class AnswerParse:
    """Outcome of reading an answer cell.

    ``indices`` holds option positions; ``no_answer`` marks the explicit
    "no correct option" signal, distinct from an empty cell.
    """

    indices: tuple[int, ...] = ()
    no_answer: bool = False
    invalid_tokens: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.indices and not self.no_answer


def is_explicit_no_answer(raw: str | None) -> bool:
    value = (raw or "").strip().lower()
    return value == "?" or bool(_NO_ANSWER_RE.match(value))


def parse_answer_letters(raw: str | None, option_count: int) -> AnswerParse:
    """Map ``"A, c;E"`` style answers to option indices (``A`` is 0)."""
    text = (raw or "").strip()
    if is_explicit_no_answer(text):
        return AnswerParse(no_answer=True)

    tokens = [token for token in _TOKEN_SPLIT_RE.split(text.upper()) if token]
    indices: list[int] = []
    for token in tokens:
        index = ord(token[0]) - ord("A")
        if 0 <= index < option_count and index not in indices:
            indices.append(index)
    invalid = tuple(token for token in tokens if not _LETTER_RE.match(token))
    return AnswerParse(indices=tuple(indices), invalid_tokens=invalid)


def answer_error_reason(parsed: AnswerParse, *, clinical: bool) -> str:
    """Failure reason for an MCQ whose answer cell yielded nothing usable."""
    label = "clinical MCQ" if clinical else "MCQ"
    if parsed.invalid_tokens:
        token = parsed.invalid_tokens[0]
        return f"Invalid {label} answer token '{token}' (use A–E or \"Pas de réponse\"/\"?\")"
    return f"{label[0].upper()}{label[1:]} missing correct answers"


def format_answer_letters(indices: list[int] | tuple[int, ...]) -> str:
    return ", ".join(chr(ord("A") + index) for index in indices)


def combine_explanations(record: RowRecord) -> str | None:
    """Merge the global explanation with per-option ``(A) ...`` lines."""
    base = record.value("explication")
    per_option = [
        f"({letter.upper()}) {text}"
        for letter in OPTION_LETTERS
        if (text := record.value(f"explication_{letter}"))
    ]
    if not per_option:
        return base or None
    combined = f"{base}\n\n" if base else ""
    return combined + "Explications:\n" + "\n".join(per_option)


__all__ = [
    "AnswerParse",
    "answer_error_reason",
    "combine_explanations",
    "format_answer_letters",
    "is_explicit_no_answer",
    "parse_answer_letters",
]
