"""Default prompts and user payloads for the batch analysis calls.

Only the JSON contract of these prompts matters to the parser; the wording
can be replaced through ``AI_SYSTEM_PROMPT``.
"""

from __future__ import annotations

import json
from typing import Sequence

from schemas.internal.analysis import QrocWorkItem, WorkItem

DEFAULT_MCQ_SYSTEM_PROMPT = """Tu aides des étudiants en médecine à corriger des QCM.
STYLE:
- Écris comme un excellent étudiant de dernière année qui explique rapidement à des camarades.
- Chaque option reçoit 1 à 2 phrases, plus si nécessaire pour justifier correctement.
- Varie les connecteurs initiaux ("Oui", "Exact", "Au contraire", "Non, en fait", "Faux"...).

CONTEXTE:
- Si des extraits de cours précèdent la question (bloc CONTEXTE), tu peux reprendre UNE phrase pertinente entre guillemets.
- Sinon raisonne brièvement sur la base des connaissances médicales standard.

OBJECTIF PAR ITEM:
1. Déterminer les options correctes (indices à partir de 0 dans correctAnswers).
2. Si aucune option n'est correcte: noAnswer=true et correctAnswers=[].
3. Produire pour CHAQUE option une explication courte justifiant VRAI ou FAUX.
4. Fournir globalExplanation (1 à 2 phrases) résumant le point clé.

FORMAT JSON STRICT (aucun texte hors JSON):
{
  "results": [
    {
      "id": "<id fourni>",
      "status": "ok" | "error",
      "correctAnswers": [0, 2],
      "noAnswer": false,
      "optionExplanations": ["option A", "option B", "..."],
      "globalExplanation": "Synthèse concise",
      "error": "<uniquement si status=error>"
    }
  ]
}

CONTRAINTES:
- optionExplanations contient exactement autant d'entrées que d'options reçues.
- Aucune clé supplémentaire, pas de markdown.
- Si une incertitude majeure empêche une décision fiable: status="error" et message dans error.

RAPPEL: Réponds uniquement avec le JSON."""

DEFAULT_QROC_SYSTEM_PROMPT = """Tu aides des étudiants en médecine. Pour chaque question QROC:
1. Si la réponse est vide: status="error" et error="Réponse manquante" (pas d'explication).
2. Sinon, génère UNE explication concise (1-3 phrases) style étudiant, plus longue seulement si un mécanisme doit être clarifié.
3. Si la réponse semble incorrecte ou incohérente, status="error" avec une courte justification dans error.
4. Sortie JSON STRICT uniquement.
Format:
{
  "results": [ { "id": "<id>", "status": "ok" | "error", "explanation": "...", "error": "..." } ]
}"""


def build_system_prompt(base: str, instructions: str | None = None) -> str:
    """Append caller instructions to ``base`` without dropping the JSON contract."""
    extra = (instructions or "").strip()
    if not extra:
        return base
    return f"{base}\n\nINSTRUCTIONS SUPPLÉMENTAIRES:\n{extra}"


def build_mcq_user_prompt(batch: Sequence[WorkItem]) -> str:
    payload = {
        "task": "analyze_mcq_batch",
        "items": [
            {
                "id": item.id,
                "questionText": item.question_text,
                "options": list(item.options),
                "providedAnswerRaw": item.provided_answer_raw or None,
            }
            for item in batch
        ],
    }
    return json.dumps(payload, ensure_ascii=False)


def build_qroc_user_prompt(batch: Sequence[QrocWorkItem]) -> str:
    payload = {
        "task": "qroc_explanations",
        "items": [
            {
                "id": item.id,
                "questionText": item.question_text,
                "answerText": item.answer_text,
                "caseText": item.case_text,
            }
            for item in batch
        ],
    }
    return json.dumps(payload, ensure_ascii=False)


__all__ = [
    "DEFAULT_MCQ_SYSTEM_PROMPT",
    "DEFAULT_QROC_SYSTEM_PROMPT",
    "build_mcq_user_prompt",
    "build_qroc_user_prompt",
    "build_system_prompt",
]
