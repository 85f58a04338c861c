"""Bounded-concurrency batch runner with per-batch error isolation.

Items are split into fixed-size batches. ``min(concurrency, batches)``
workers pull the next batch index from a shared counter, so a slow batch
never holds back the others. Every item ends up with a result: a failing or
timed-out batch marks each of its items as an error, items the analyzer
skipped get ``Missing result for item`` and items of batches never started
because of cancellation get ``Cancelled``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import (
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from analysis.client import BatchAnalyzer
from analysis.qroc import QrocAnalyzer
from schemas.internal.analysis import (
    AnalysisResult,
    BatchProgress,
    QrocResult,
    QrocWorkItem,
    WorkItem,
)

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")

ProgressCallback = Callable[[BatchProgress], None]
StopCheck = Callable[[], bool]

CANCELLED_ERROR = "Cancelled"
MISSING_RESULT_ERROR = "Missing result for item"


def partition(items: Sequence[ItemT], size: int) -> List[List[ItemT]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def progress_in_range(done: int, total: int, *, start: int = 10, end: int = 85) -> int:
    """Map ``done/total`` batches onto the ``[start, end]`` percentage range."""
    if total <= 0:
        return end
    done = max(0, min(done, total))
    return min(end, start + (done * (end - start)) // total)


async def run_batches(
    items: Sequence[ItemT],
    *,
    call: Callable[[List[ItemT]], Awaitable[Sequence[ResultT]]],
    item_id: Callable[[ItemT], str],
    result_id: Callable[[ResultT], str],
    failure: Callable[[str, str], ResultT],
    batch_size: int,
    concurrency: int,
    timeout: Optional[float] = None,
    on_batch_progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopCheck] = None,
    label: str = "batch",
) -> Dict[str, ResultT]:
    batches = partition(items, batch_size)
    total = len(batches)
    if total == 0:
        return {}

    results: Dict[str, ResultT] = {}
    counter = itertools.count()
    completed = 0
    workers = min(max(1, concurrency), total)
    logger.info(
        "Running %d %s(es) of up to %d item(s) with %d worker(s)",
        total,
        label,
        batch_size,
        workers,
    )

    async def run_one(index: int) -> None:
        batch = batches[index]
        started = time.perf_counter()
        try:
            if timeout is not None:
                returned = await asyncio.wait_for(call(batch), timeout)
            else:
                returned = await call(batch)
        except asyncio.TimeoutError:
            message = f"AI batch timed out after {timeout:g}s"
            logger.warning("%s %d/%d timed out", label, index + 1, total)
            returned = [failure(item_id(item), message) for item in batch]
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("%s %d/%d failed: %s", label, index + 1, total, message)
            returned = [failure(item_id(item), message) for item in batch]
        else:
            logger.info(
                "%s %d/%d done in %.0fms, size=%d",
                label,
                index + 1,
                total,
                (time.perf_counter() - started) * 1000,
                len(batch),
            )

        by_id: Dict[str, ResultT] = {}
        for result in returned:
            by_id.setdefault(result_id(result), result)
        for item in batch:
            key = item_id(item)
            found = by_id.get(key)
            results[key] = found if found is not None else failure(key, MISSING_RESULT_ERROR)

    async def worker() -> None:
        nonlocal completed
        while True:
            if should_stop is not None and should_stop():
                return
            index = next(counter)
            if index >= total:
                return
            await run_one(index)
            completed += 1
            if on_batch_progress is not None:
                on_batch_progress(BatchProgress(index=completed, total=total))

    await asyncio.gather(*(worker() for _ in range(workers)))

    merged: Dict[str, ResultT] = {}
    for item in items:
        key = item_id(item)
        result = results.get(key)
        merged[key] = result if result is not None else failure(key, CANCELLED_ERROR)
    return merged


async def analyze_in_chunks(
    items: Sequence[WorkItem],
    *,
    analyzer: BatchAnalyzer,
    batch_size: int = 100,
    concurrency: int = 6,
    on_batch_progress: Optional[ProgressCallback] = None,
    timeout: Optional[float] = None,
    should_stop: Optional[StopCheck] = None,
) -> Dict[str, AnalysisResult]:
    """Analyze MCQ work items; returns one result per item id."""
    raw = await run_batches(
        items,
        call=analyzer.analyze,
        item_id=lambda item: item.id,
        result_id=lambda result: result.id,
        failure=AnalysisResult.failure,
        batch_size=batch_size,
        concurrency=concurrency,
        timeout=timeout,
        on_batch_progress=on_batch_progress,
        should_stop=should_stop,
        label="MCQ batch",
    )
    return {item.id: check_result(item, raw[item.id]) for item in items}


async def analyze_qroc_in_chunks(
    items: Sequence[QrocWorkItem],
    *,
    analyzer: QrocAnalyzer,
    batch_size: int = 10,
    concurrency: int = 1,
    on_batch_progress: Optional[ProgressCallback] = None,
    timeout: Optional[float] = None,
    should_stop: Optional[StopCheck] = None,
) -> Dict[str, QrocResult]:
    return await run_batches(
        items,
        call=analyzer.analyze,
        item_id=lambda item: item.id,
        result_id=lambda result: result.id,
        failure=QrocResult.failure,
        batch_size=batch_size,
        concurrency=concurrency,
        timeout=timeout,
        on_batch_progress=on_batch_progress,
        should_stop=should_stop,
        label="QROC batch",
    )


def check_result(item: WorkItem, result: AnalysisResult) -> AnalysisResult:
    """Downgrade an ``ok`` result that does not fit the item's options."""
    if result.status != "ok":
        return result
    count = len(item.options)
    if any(index < 0 or index >= count for index in result.correct_answers or ()):
        return AnalysisResult.failure(item.id, "AI answer index out of range")
    explanations = result.option_explanations
    if explanations is not None and len(explanations) != count:
        return AnalysisResult.failure(
            item.id,
            f"AI returned {len(explanations)} option explanation(s) for {count} option(s)",
        )
    return result


__all__ = [
    "CANCELLED_ERROR",
    "MISSING_RESULT_ERROR",
    "ProgressCallback",
    "StopCheck",
    "analyze_in_chunks",
    "analyze_qroc_in_chunks",
    "check_result",
    "partition",
    "progress_in_range",
    "run_batches",
]
