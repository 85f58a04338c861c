from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from analysis.batch import (
    CANCELLED_ERROR,
    MISSING_RESULT_ERROR,
    analyze_in_chunks,
    analyze_qroc_in_chunks,
    check_result,
    partition,
    progress_in_range,
)
from schemas.internal.analysis import AnalysisResult, BatchProgress, QrocWorkItem, WorkItem


def _items(count: int) -> list[WorkItem]:
    return [
        WorkItem(id=f"q{index}", question_text=f"Question {index}", options=["A", "B", "C"])
        for index in range(count)
    ]


def test_partition_and_progress_range() -> None:
    assert partition([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert partition([], 3) == []
    with pytest.raises(ValueError):
        partition([1], 0)

    assert progress_in_range(0, 4) == 10
    assert progress_in_range(2, 4) == 47
    assert progress_in_range(4, 4) == 85
    assert progress_in_range(9, 4) == 85
    assert progress_in_range(0, 0) == 85


def test_concurrency_is_bounded_and_progress_is_reported(fake_analyzer) -> None:
    analyzer = fake_analyzer(delay=0.01)
    progress: list[BatchProgress] = []

    results = asyncio.run(
        analyze_in_chunks(
            _items(7),
            analyzer=analyzer,
            batch_size=2,
            concurrency=2,
            on_batch_progress=progress.append,
        )
    )

    assert len(analyzer.batches) == 4
    assert analyzer.max_active == 2
    assert [event.index for event in progress] == [1, 2, 3, 4]
    assert {event.total for event in progress} == {4}
    assert list(results) == [f"q{index}" for index in range(7)]
    assert all(result.status == "ok" for result in results.values())


def test_failing_batch_only_marks_its_own_items(fake_analyzer) -> None:
    analyzer = fake_analyzer(fail_batches=[1])

    results = asyncio.run(
        analyze_in_chunks(_items(5), analyzer=analyzer, batch_size=2, concurrency=1)
    )

    assert [results[key].status for key in ("q0", "q1", "q2", "q3", "q4")] == [
        "ok",
        "ok",
        "error",
        "error",
        "ok",
    ]
    assert results["q2"].error == "upstream failure in batch 1"


def test_timed_out_batch_is_reported(fake_analyzer) -> None:
    analyzer = fake_analyzer(delay=0.5)

    results = asyncio.run(
        analyze_in_chunks(_items(2), analyzer=analyzer, batch_size=2, concurrency=1, timeout=0.01)
    )

    assert results["q0"].status == "error"
    assert results["q0"].error == "AI batch timed out after 0.01s"


class _PartialAnalyzer:
    async def analyze(self, batch: Sequence[WorkItem]) -> list[AnalysisResult]:
        first = batch[0]
        return [
            AnalysisResult(id=first.id, status="ok", correct_answers=[1]),
            AnalysisResult(id="intrus", status="ok", correct_answers=[0]),
        ]


def test_items_missing_from_the_reply_are_flagged() -> None:
    results = asyncio.run(analyze_in_chunks(_items(3), analyzer=_PartialAnalyzer(), batch_size=3))

    assert results["q0"].correct_answers == [1]
    assert results["q1"].error == MISSING_RESULT_ERROR
    assert results["q2"].error == MISSING_RESULT_ERROR
    assert "intrus" not in results


def test_stop_request_cancels_unstarted_batches(fake_analyzer) -> None:
    analyzer = fake_analyzer()

    results = asyncio.run(
        analyze_in_chunks(
            _items(6),
            analyzer=analyzer,
            batch_size=2,
            concurrency=1,
            should_stop=lambda: len(analyzer.batches) >= 1,
        )
    )

    assert analyzer.batches == [["q0", "q1"]]
    assert results["q1"].status == "ok"
    assert [results[key].error for key in ("q2", "q3", "q4", "q5")] == [CANCELLED_ERROR] * 4


def test_empty_input_never_calls_the_analyzer(fake_analyzer) -> None:
    analyzer = fake_analyzer()
    assert asyncio.run(analyze_in_chunks([], analyzer=analyzer)) == {}
    assert analyzer.batches == []


def test_check_result_downgrades_inconsistent_answers() -> None:
    item = _items(1)[0]

    out_of_range = check_result(item, AnalysisResult(id="q0", status="ok", correct_answers=[3]))
    assert out_of_range.status == "error"
    assert out_of_range.error == "AI answer index out of range"

    wrong_count = check_result(
        item,
        AnalysisResult(id="q0", status="ok", correct_answers=[0], option_explanations=["a", "b"]),
    )
    assert wrong_count.error == "AI returned 2 option explanation(s) for 3 option(s)"

    fine = AnalysisResult(id="q0", status="ok", no_answer=True)
    assert check_result(item, fine) is fine


def test_qroc_batches_use_their_own_results(fake_qroc_analyzer) -> None:
    analyzer = fake_qroc_analyzer()
    items = [
        QrocWorkItem(id=f"r{index}", question_text="Signe ?", answer_text=f"Réponse {index}")
        for index in range(3)
    ]

    results = asyncio.run(analyze_qroc_in_chunks(items, analyzer=analyzer, batch_size=2))

    assert analyzer.batches == [["r0", "r1"], ["r2"]]
    assert results["r2"].explanation == "Explication: Réponse 2"
