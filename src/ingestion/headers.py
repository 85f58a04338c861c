"""Header and sheet-name canonicalization."""

from __future__ import annotations

import re
import unicodedata

from schemas.internal.rows import OPTION_LETTERS, SheetKind

_NON_WORD_RE = re.compile(r"[\W_]+")
_SHEET_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_header(text: object) -> str:
    """Lower-case, drop accents, turn punctuation into spaces and collapse."""
    value = strip_accents(str(text or "").lower())
    return " ".join(_NON_WORD_RE.sub(" ", value).split())


def normalize_sheet_name(name: object) -> str:
    value = strip_accents(str(name or "").lower())
    return _SHEET_NON_ALNUM_RE.sub(" ", value).strip()


_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "matiere": ("matiere", "matieres", "specialite", "specialty", "subject"),
    "cours": ("cours", "lecture", "chapitre", "course"),
    "question_n": (
        "question n",
        "question no",
        "question n°",
        "question numero",
        "question num",
        "n question",
        "numero question",
    ),
    "source": ("source", "sources", "session"),
    "texte_de_la_question": (
        "texte de la question",
        "texte question",
        "texte de question",
        "enonce",
        "question text",
    ),
    "texte_du_cas": ("texte du cas", "texte cas", "enonce du cas", "case text"),
    "reponse": (
        "reponse",
        "reponses",
        "reponse(s)",
        "bonne reponse",
        "bonnes reponses",
        "answer",
        "answers",
    ),
    "cas_n": ("cas n", "cas no", "cas n°", "cas numero", "numero du cas", "case number"),
    "explication": (
        "explication",
        "explications",
        "explication de la reponse",
        "explication reponse",
        "explanation",
        "correction",
    ),
    "niveau": ("niveau", "level"),
    "semestre": ("semestre", "semester"),
    "rappel": ("rappel", "rappel du cours", "rappel cours", "rappel_cours", "course reminder"),
    "image": (
        "image",
        "image url",
        "image_url",
        "media",
        "media url",
        "media_url",
        "illustration",
        "illustration url",
    ),
}
for _letter in OPTION_LETTERS:
    _HEADER_ALIASES[f"option_{_letter}"] = (
        f"option {_letter}",
        f"proposition {_letter}",
        f"choix {_letter}",
    )
    _HEADER_ALIASES[f"explication_{_letter}"] = (
        f"explication {_letter}",
        f"explication option {_letter}",
        f"explanation {_letter}",
    )

HEADER_ALIASES: dict[str, str] = {
    normalize_header(alias): canonical
    for canonical, aliases in _HEADER_ALIASES.items()
    for alias in aliases
}

_SHEET_ALIASES: dict[SheetKind, tuple[str, ...]] = {
    SheetKind.QCM: ("qcm", "questions qcm"),
    SheetKind.QROC: ("qroc", "croq", "questions qroc", "questions croq"),
    SheetKind.CAS_QCM: (
        "cas qcm",
        "cas-qcm",
        "cas_qcm",
        "cas clinique qcm",
        "cas clinic qcm",
    ),
    SheetKind.CAS_QROC: (
        "cas qroc",
        "cas-qroc",
        "cas_qroc",
        "cas clinique qroc",
        "cas clinic qroc",
        "cas croq",
        "cas clinic croq",
    ),
}

SHEET_ALIASES: dict[str, SheetKind] = {
    normalize_sheet_name(alias): kind
    for kind, aliases in _SHEET_ALIASES.items()
    for alias in aliases
}


def canonicalize_header(text: object) -> str:
    """Return the canonical field for a header, or its normalized form."""
    normalized = normalize_header(text)
    return HEADER_ALIASES.get(normalized, normalized)


def canonicalize_sheet_name(name: object) -> SheetKind | None:
    return SHEET_ALIASES.get(normalize_sheet_name(name))


__all__ = [
    "HEADER_ALIASES",
    "SHEET_ALIASES",
    "canonicalize_header",
    "canonicalize_sheet_name",
    "normalize_header",
    "normalize_sheet_name",
    "strip_accents",
]
