"""Row-level contracts produced by workbook ingestion."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SheetKind(str, Enum):
    """Recognized question sheet types."""

    QCM = "qcm"
    QROC = "qroc"
    CAS_QCM = "cas_qcm"
    CAS_QROC = "cas_qroc"

    @property
    def is_mcq(self) -> bool:
        return self in (SheetKind.QCM, SheetKind.CAS_QCM)

    @property
    def is_case(self) -> bool:
        return self in (SheetKind.CAS_QCM, SheetKind.CAS_QROC)

    @property
    def question_type(self) -> str:
        return _QUESTION_TYPES[self]


_QUESTION_TYPES = {
    SheetKind.QCM: "mcq",
    SheetKind.QROC: "qroc",
    SheetKind.CAS_QCM: "clinic_mcq",
    SheetKind.CAS_QROC: "clinic_croq",
}

SHEET_ORDER: tuple[SheetKind, ...] = (
    SheetKind.QCM,
    SheetKind.QROC,
    SheetKind.CAS_QCM,
    SheetKind.CAS_QROC,
)

OPTION_LETTERS = ("a", "b", "c", "d", "e")

# Canonical field name -> spreadsheet column label.
FIELD_LABELS: Dict[str, str] = {
    "niveau": "niveau",
    "semestre": "semestre",
    "matiere": "matiere",
    "cours": "cours",
    "source": "source",
    "question_n": "question n",
    "cas_n": "cas n",
    "texte_du_cas": "texte du cas",
    "texte_de_la_question": "texte de la question",
    "reponse": "reponse",
    **{f"option_{letter}": f"option {letter}" for letter in OPTION_LETTERS},
    "explication": "explication",
    **{f"explication_{letter}": f"explication {letter}" for letter in OPTION_LETTERS},
    "rappel": "rappel",
    "image": "image",
}
LABEL_FIELDS: Dict[str, str] = {label: name for name, label in FIELD_LABELS.items()}
CANONICAL_FIELDS: tuple[str, ...] = tuple(FIELD_LABELS)


class RowRecord(BaseModel):
    """One spreadsheet row after header canonicalization.

    Every canonical column is a nullable string; blank cells are stored as
    ``None``. Columns outside the canonical vocabulary are kept in ``extras``
    under their normalized header.
    """

    sheet: SheetKind
    row: int = Field(ge=1)

    niveau: Optional[str] = None
    semestre: Optional[str] = None
    matiere: Optional[str] = None
    cours: Optional[str] = None
    source: Optional[str] = None
    question_n: Optional[str] = None
    cas_n: Optional[str] = None
    texte_du_cas: Optional[str] = None
    texte_de_la_question: Optional[str] = None
    reponse: Optional[str] = None
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    option_e: Optional[str] = None
    explication: Optional[str] = None
    explication_a: Optional[str] = None
    explication_b: Optional[str] = None
    explication_c: Optional[str] = None
    explication_d: Optional[str] = None
    explication_e: Optional[str] = None
    rappel: Optional[str] = None
    image: Optional[str] = None

    extras: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator(*CANONICAL_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def value(self, field: str) -> str:
        """Return a canonical field as a string, blank when missing."""
        return getattr(self, field) or ""

    def options(self) -> List[str]:
        """Non-empty options in A..E order."""
        values = (getattr(self, f"option_{letter}") for letter in OPTION_LETTERS)
        return [value for value in values if value]

    def canonical_values(self) -> Dict[str, str]:
        """All canonical fields, blank when missing."""
        return {field: self.value(field) for field in CANONICAL_FIELDS}


class RowFailure(BaseModel):
    """A row that could not be imported or corrected."""

    sheet: str
    row: int = Field(ge=1)
    reason: str
    matiere: str = ""
    cours: str = ""
    question_n: Optional[int] = None
    texte_de_la_question: str = ""
    reponse: str = ""
    record: Optional[RowRecord] = Field(default=None, exclude=True)

    model_config = ConfigDict(extra="forbid")


__all__ = [
    "CANONICAL_FIELDS",
    "FIELD_LABELS",
    "LABEL_FIELDS",
    "OPTION_LETTERS",
    "RowFailure",
    "RowRecord",
    "SHEET_ORDER",
    "SheetKind",
]
