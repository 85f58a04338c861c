"""Locate the JSON object inside a chat model reply.

Models wrap their answer in prose or in a fenced ``json`` block. Fenced
blocks are searched first, then the whole reply; at each ``{`` a decode is
attempted and the first one producing an object wins.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_DECODER = json.JSONDecoder()


def load_json_object(text: str, *, prefer_code_block: bool = True) -> dict[str, Any]:
    """Decoded first JSON object of ``text``; ``ValueError`` when there is none."""
    for source in _sources(text or "", prefer_code_block):
        found = _first_object(source)
        if found is not None:
            return found[0]
    raise ValueError("No JSON object found in LLM response")


def extract_json_object(text: str, *, prefer_code_block: bool = True) -> str:
    """Raw text of the first JSON object, as it appears in ``text``."""
    for source in _sources(text or "", prefer_code_block):
        found = _first_object(source)
        if found is not None:
            return found[1]
    raise ValueError("No JSON object found in LLM response")


def _sources(text: str, prefer_code_block: bool) -> Iterator[str]:
    if prefer_code_block:
        for match in _FENCE_RE.finditer(text):
            yield match.group(1)
    yield text


def _first_object(text: str) -> tuple[dict[str, Any], str] | None:
    start = text.find("{")
    while start != -1:
        try:
            value, end = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            value, end = None, start
        if isinstance(value, dict):
            return value, text[start:end]
        start = text.find("{", start + 1)
    return None


__all__ = ["extract_json_object", "load_json_object"]
