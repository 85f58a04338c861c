"""Stable JSON encoding for stored metadata columns."""

from __future__ import annotations

import json
from datetime import date, datetime


def stable_json_dumps(payload: object) -> str:
    """Dump JSON with sorted keys and compact separators, keeping non-ASCII text."""
    return json.dumps(
        payload,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_default,
    )


def _json_default(value: object) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


__all__ = ["stable_json_dumps"]
