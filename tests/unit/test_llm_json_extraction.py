from __future__ import annotations

import json

import pytest

from utils.llm_json import extract_json_object, load_json_object


def test_extract_json_object_prefers_code_block() -> None:
    text = (
        'prefix {noise} {"outside": true}\n'
        "```json\n"
        '{"results": [{"id": "q1"}]}\n'
        "```\n"
        "{tail}"
    )
    payload = json.loads(extract_json_object(text, prefer_code_block=True))
    assert payload == {"results": [{"id": "q1"}]}


def test_extract_json_object_scans_body_after_invalid_brace() -> None:
    text = 'Voici la correction {pas du json} puis {"results": []} fin'
    payload = json.loads(extract_json_object(text))
    assert payload == {"results": []}


def test_extract_json_object_handles_braces_inside_strings() -> None:
    text = 'prefix {"explanation": "accolade { dedans }", "id": "q1"} trailing'
    payload = json.loads(extract_json_object(text))
    assert payload == {"explanation": "accolade { dedans }", "id": "q1"}


def test_extract_json_object_skips_arrays() -> None:
    text = '[1, 2] then {"ok": true}'
    assert json.loads(extract_json_object(text, prefer_code_block=False)) == {"ok": True}


def test_extract_json_object_raises_when_missing() -> None:
    with pytest.raises(ValueError, match="No JSON object found"):
        extract_json_object("aucun json ici")


def test_load_json_object_returns_outer_object() -> None:
    text = 'Réponse:\n```\n{"results": [{"id": "0", "status": "ok"}]}\n```'
    assert load_json_object(text) == {"results": [{"id": "0", "status": "ok"}]}


def test_load_json_object_falls_back_to_body_when_block_has_no_object() -> None:
    text = '```json\n[1, 2]\n```\nFinalement {"results": []}'
    assert load_json_object(text) == {"results": []}


def test_load_json_object_rejects_empty_text() -> None:
    with pytest.raises(ValueError):
        load_json_object("")
