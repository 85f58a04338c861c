# tests/conftest.py
from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Callable, Sequence

import pytest
from openpyxl import Workbook

from core.config import get_settings
from persistence.sqlite_store import SqliteStore
from schemas.internal.analysis import AnalysisResult, QrocResult, QrocWorkItem, WorkItem
from schemas.internal.rows import RowRecord, SheetKind
from sessions.registry import SessionRegistry

QCM_HEADER = [
    "Matière",
    "Cours",
    "Question n°",
    "Source",
    "Texte de la question",
    "Réponse",
    "Option A",
    "Option B",
    "Option C",
    "Option D",
    "Option E",
    "Explication",
]
QROC_HEADER = [
    "Matière",
    "Cours",
    "Question n°",
    "Source",
    "Texte de la question",
    "Réponse",
    "Explication",
]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path: Path):
    """Keep tests off the developer's .env and shared data directory."""
    for name in ("AI_MODEL", "EMBEDDING_MODEL", "ENABLE_RAG", "RAG_INDEX_ID", "RAG_INDEX_MAP"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STORE_PATH", str(tmp_path / "store.sqlite"))
    monkeypatch.setenv("LANGSMITH_TRACING", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry(ttl_seconds=60.0)


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    return SqliteStore(tmp_path / "qbank.sqlite")


@pytest.fixture
def make_workbook() -> Callable[..., bytes]:
    """Build xlsx bytes from ``{sheet_name: [header, *rows]}``."""

    def _build(sheets: dict[str, Sequence[Sequence[object]]]) -> bytes:
        workbook = Workbook()
        workbook.remove(workbook.active)
        for name, rows in sheets.items():
            sheet = workbook.create_sheet(title=name)
            for row in rows:
                sheet.append(list(row))
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _build


@pytest.fixture
def make_record() -> Callable[..., RowRecord]:
    def _build(sheet: SheetKind = SheetKind.QCM, row: int = 2, **fields: object) -> RowRecord:
        values: dict[str, object] = {
            "matiere": "Cardiologie",
            "cours": "Insuffisance cardiaque",
            "texte_de_la_question": "Quel est le signe le plus fréquent ?",
        }
        if sheet.is_mcq:
            values.update(
                option_a="Dyspnée",
                option_b="Fièvre",
                option_c="Toux",
                reponse="A",
            )
        else:
            values.update(reponse="Dyspnée d'effort")
        values.update(fields)
        return RowRecord(sheet=sheet, row=row, **values)

    return _build


class FakeEmbeddings:
    """Deterministic bag-of-letters vectors; optional scripted failures."""

    def __init__(self, failures: Sequence[BaseException] = ()) -> None:
        self.failures = list(failures)
        self.calls: list[list[str]] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.failures:
            raise self.failures.pop(0)
        return [self._vector(text) for text in texts]

    @staticmethod
    def _vector(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(letter)) + 0.01 for letter in "aeiourstln"]


@pytest.fixture
def fake_embeddings() -> type[FakeEmbeddings]:
    return FakeEmbeddings


class FakeAnalyzer:
    """MCQ analyzer answering ``A`` for every item unless told otherwise."""

    def __init__(
        self,
        *,
        answers: dict[str, AnalysisResult] | None = None,
        fail_batches: Sequence[int] = (),
        delay: float = 0.0,
    ) -> None:
        self.answers = answers or {}
        self.fail_batches = set(fail_batches)
        self.delay = delay
        self.batches: list[list[str]] = []
        self.active = 0
        self.max_active = 0

    async def analyze(self, batch: Sequence[WorkItem]) -> list[AnalysisResult]:
        index = len(self.batches)
        self.batches.append([item.id for item in batch])
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if index in self.fail_batches:
                raise RuntimeError(f"upstream failure in batch {index}")
            return [
                self.answers.get(
                    item.id,
                    AnalysisResult(
                        id=item.id,
                        status="ok",
                        correct_answers=[0],
                        global_explanation="La dyspnée est le maître symptôme.",
                    ),
                )
                for item in batch
            ]
        finally:
            self.active -= 1


class FakeQrocAnalyzer:
    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    async def analyze(self, batch: Sequence[QrocWorkItem]) -> list[QrocResult]:
        self.batches.append([item.id for item in batch])
        return [
            QrocResult(id=item.id, status="ok", explanation=f"Explication: {item.answer_text}")
            for item in batch
        ]


@pytest.fixture
def fake_analyzer() -> type[FakeAnalyzer]:
    return FakeAnalyzer


@pytest.fixture
def fake_qroc_analyzer() -> type[FakeQrocAnalyzer]:
    return FakeQrocAnalyzer


@pytest.fixture
def qcm_header() -> list[str]:
    return list(QCM_HEADER)


@pytest.fixture
def qroc_header() -> list[str]:
    return list(QROC_HEADER)
