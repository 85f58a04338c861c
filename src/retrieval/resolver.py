"""Index selection by (niveau, matiere) with fallbacks."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from ingestion.headers import strip_accents

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_DECORATION_RE = re.compile(r"[*\[\](){}]")
_TRAILING_LEVEL_RE = re.compile(r"\b\d+\*?\s*$")


def normalize_niveau(value: str | None) -> str:
    text = strip_accents(str(value or "").lower())
    return _NON_ALNUM_RE.sub(" ", text).strip()


def normalize_matiere(value: str | None) -> str:
    """Subject key without accents, stars, brackets or a trailing level number."""
    text = strip_accents(str(value or "").lower())
    text = _DECORATION_RE.sub(" ", text)
    text = _TRAILING_LEVEL_RE.sub("", text)
    return _NON_ALNUM_RE.sub(" ", text).strip()


def pair_key(niveau: str | None, matiere: str | None) -> str:
    level = normalize_niveau(niveau)
    subject = normalize_matiere(matiere)
    if level and subject:
        return f"{level}|{subject}"
    if subject:
        return f"|{subject}"
    if level:
        return f"{level}|"
    return ""


class IndexResolver:
    """Resolve an index id: exact pair, then subject, then level, then default."""

    def __init__(
        self,
        *,
        default_index_id: str | None = None,
        index_map: Mapping[str, str] | None = None,
    ) -> None:
        self._default = default_index_id or None
        self._map: dict[str, str] = {}
        for raw_key, index_id in (index_map or {}).items():
            level, _, subject = str(raw_key).partition("|")
            key = pair_key(level, subject)
            if key and index_id:
                self._map[key] = str(index_id)

    @classmethod
    def from_settings(cls, settings: Any) -> "IndexResolver":
        return cls(
            default_index_id=settings.rag_index_id,
            index_map=parse_index_map(settings.rag_index_map),
        )

    @property
    def has_map(self) -> bool:
        return bool(self._map)

    @property
    def enabled(self) -> bool:
        return bool(self._map) or self._default is not None

    def resolve(self, niveau: str | None, matiere: str | None) -> str | None:
        if not self._map:
            return self._default
        exact = self._map.get(pair_key(niveau, matiere))
        if exact:
            return exact
        by_subject = self._map.get(f"|{normalize_matiere(matiere)}")
        if by_subject:
            return by_subject
        by_level = self._map.get(f"{normalize_niveau(niveau)}|")
        if by_level:
            return by_level
        return self._default


def parse_index_map(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring invalid RAG_INDEX_MAP: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring RAG_INDEX_MAP: expected a JSON object")
        return {}
    return {str(key): str(value) for key, value in data.items() if value}


__all__ = [
    "IndexResolver",
    "normalize_matiere",
    "normalize_niveau",
    "pair_key",
    "parse_index_map",
]
