from __future__ import annotations

import json
from types import SimpleNamespace

from retrieval.resolver import IndexResolver, normalize_matiere, pair_key, parse_index_map


def _resolver() -> IndexResolver:
    return IndexResolver(
        default_index_id="rag_default",
        index_map={
            "DCEM1|Cardiologie": "rag_cardio",
            "|Pneumologie": "rag_pneumo",
            "PCEM2|": "rag_pcem2",
        },
    )


def test_exact_pair_wins() -> None:
    assert _resolver().resolve("DCEM1", "Cardiologie*") == "rag_cardio"
    assert _resolver().resolve("dcem 1", "[Cardiologie]") != "rag_cardio"


def test_subject_then_level_then_default() -> None:
    resolver = _resolver()
    assert resolver.resolve("DCEM2", "Pneumologie 2") == "rag_pneumo"
    assert resolver.resolve("PCEM2", "Anatomie") == "rag_pcem2"
    assert resolver.resolve(None, "Inconnue") == "rag_default"


def test_without_map_the_default_is_used() -> None:
    resolver = IndexResolver(default_index_id="rag_only")
    assert resolver.enabled
    assert not resolver.has_map
    assert resolver.resolve("DCEM1", "Cardiologie") == "rag_only"
    assert not IndexResolver().enabled
    assert IndexResolver().resolve("DCEM1", "Cardiologie") is None


def test_normalization_helpers() -> None:
    assert normalize_matiere("Hépato-Gastro 3*") == "hepato gastro"
    assert pair_key("DCEM1", None) == "dcem1|"
    assert pair_key(None, None) == ""


def test_parse_index_map_tolerates_bad_input() -> None:
    assert parse_index_map(None) == {}
    assert parse_index_map("{not json") == {}
    assert parse_index_map("[1, 2]") == {}
    assert parse_index_map(json.dumps({"a|b": "rag_1", "c|": ""})) == {"a|b": "rag_1"}


def test_from_settings_reads_map_json() -> None:
    settings = SimpleNamespace(
        rag_index_id=None, rag_index_map=json.dumps({"DCEM1|Cardiologie": "rag_cardio"})
    )
    resolver = IndexResolver.from_settings(settings)
    assert resolver.resolve("DCEM1", "cardiologie") == "rag_cardio"
    assert resolver.resolve("DCEM1", "Autre") is None
