from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

from analysis.client import (
    NON_JSON_ERROR,
    LLMBatchAnalyzer,
    load_results,
    message_text,
    parse_mcq_results,
)
from analysis.prompts import build_mcq_user_prompt, build_system_prompt
from analysis.qroc import parse_qroc_results
from schemas.internal.analysis import QrocWorkItem, WorkItem


def _batch() -> list[WorkItem]:
    return [
        WorkItem(id="q1", question_text="Signe ?", options=["Dyspnée", "Fièvre", "Toux"]),
        WorkItem(id="q2", question_text="Traitement ?", options=["IEC", "AINS"]),
    ]


def test_non_json_reply_fails_the_whole_batch() -> None:
    results = parse_mcq_results("Je ne peux pas répondre.", _batch())
    assert [(result.id, result.status, result.error) for result in results] == [
        ("q1", "error", NON_JSON_ERROR),
        ("q2", "error", NON_JSON_ERROR),
    ]


def test_camel_case_reply_is_parsed_and_unknown_ids_dropped() -> None:
    reply = {
        "results": [
            {
                "id": "q1",
                "status": "ok",
                "correctAnswers": [2, 0, 2],
                "optionExplanations": ["Oui", "Non", "Exact"],
                "globalExplanation": "Synthèse",
            },
            {"id": "inconnu", "status": "ok", "noAnswer": True},
        ]
    }
    content = f"```json\n{json.dumps(reply)}\n```"

    results = parse_mcq_results(content, _batch())

    assert len(results) == 1
    assert results[0].correct_answers == [0, 2]
    assert results[0].option_explanations == ["Oui", "Non", "Exact"]
    assert results[0].global_explanation == "Synthèse"


def test_invalid_entries_become_errors() -> None:
    reply = {
        "results": [
            {"id": "q1", "status": "ok"},
            {"id": "q2", "status": "maybe", "error": "incertain"},
        ]
    }

    first, second = parse_mcq_results(json.dumps(reply), _batch())

    assert first.status == "error"
    assert first.error.startswith("Invalid AI result:")
    assert second.status == "error"
    assert second.error == "incertain"


def test_load_results_shapes() -> None:
    assert load_results("rien") is None
    assert load_results('{"other": 1}') == []
    assert load_results('{"results": [1, {"id": "q1"}]}') == [{"id": "q1"}]


def test_message_text_accepts_content_parts() -> None:
    assert message_text("brut") == "brut"
    assert message_text(SimpleNamespace(content="texte")) == "texte"
    assert message_text(SimpleNamespace(content=[{"text": "a"}, "b"])) == "ab"


def test_instructions_extend_the_system_prompt() -> None:
    assert build_system_prompt("BASE", "   ") == "BASE"
    prompt = build_system_prompt("BASE", "Réponds en anglais.")
    assert prompt.startswith("BASE\n\n")
    assert prompt.endswith("Réponds en anglais.")


def test_user_prompt_lists_items() -> None:
    payload = json.loads(build_mcq_user_prompt(_batch()))
    assert payload["task"] == "analyze_mcq_batch"
    assert payload["items"][0]["options"] == ["Dyspnée", "Fièvre", "Toux"]
    assert payload["items"][0]["providedAnswerRaw"] is None


class _ScriptedChatModel:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[object] = []

    async def ainvoke(self, input: object) -> SimpleNamespace:
        self.calls.append(input)
        return SimpleNamespace(content=self.reply)


def test_llm_analyzer_sends_system_and_user_messages() -> None:
    reply = json.dumps({"results": [{"id": "q2", "status": "ok", "correctAnswers": [0]}]})
    llm = _ScriptedChatModel(reply)
    analyzer = LLMBatchAnalyzer(llm, system_prompt="SYSTEME", instructions="Sois bref.")

    results = asyncio.run(analyzer.analyze(_batch()))

    assert [result.id for result in results] == ["q2"]
    system, user = llm.calls[0]
    assert system.content.startswith("SYSTEME")
    assert system.content.endswith("Sois bref.")
    assert json.loads(user.content)["items"][1]["id"] == "q2"


def test_parse_qroc_results() -> None:
    batch = [QrocWorkItem(id="r1", question_text="Signe ?", answer_text="Dyspnée")]
    assert parse_qroc_results("non", batch)[0].error == NON_JSON_ERROR

    reply = json.dumps(
        {
            "results": [
                {"id": "r1", "status": "ok", "explanation": "Maître symptôme."},
                {"id": "r9", "status": "ok", "explanation": "ignorée"},
            ]
        }
    )
    (result,) = parse_qroc_results(reply, batch)
    assert result.status == "ok"
    assert result.explanation == "Maître symptôme."
