from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from schemas.internal.jobs import JobKind, JobPhase
from sessions.registry import CANCELLED_MESSAGE, SessionRegistry


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_create_returns_a_queued_copy(registry: SessionRegistry) -> None:
    session = registry.create(JobKind.IMPORT, job_id="job-1", file_name="qcm.xlsx")

    assert session.phase is JobPhase.QUEUED
    assert session.progress == 0
    assert "job-1" in registry
    assert len(registry) == 1

    session.logs.append("local only")
    assert registry.get("job-1").logs == []

    with pytest.raises(ValueError, match="already exists"):
        registry.create(JobKind.IMPORT, job_id="job-1")


def test_update_merges_logs_stats_and_progress(registry: SessionRegistry) -> None:
    registry.create(JobKind.CORRECTION, job_id="job-1")

    registry.update("job-1", {"phase": JobPhase.RUNNING, "progress": 40}, log="Parsing")
    registry.update("job-1", {"progress": 20, "stats": {"total": 3}}, log="Analyzing")
    session = registry.update("job-1", {"stats": {"fixed": 2}})

    assert session.phase is JobPhase.RUNNING
    assert session.progress == 40
    assert session.logs == ["Parsing", "Analyzing"]
    assert session.stats == {"total": 3, "fixed": 2}


def test_update_clamps_and_rejects_unknown_fields(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    assert registry.update("job-1", {"progress": 250}).progress == 100
    with pytest.raises(ValueError, match="Unknown session fields: logs"):
        registry.update("job-1", {"logs": ["x"]})
    assert registry.update("missing", {"progress": 1}) is None


def test_phase_never_moves_back(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")
    registry.update("job-1", {"phase": JobPhase.RUNNING})

    assert registry.update("job-1", {"phase": JobPhase.QUEUED}).phase is JobPhase.RUNNING


def test_terminal_session_is_frozen_but_accepts_logs(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")
    done = registry.update("job-1", {"phase": JobPhase.COMPLETE, "message": "Done"})
    assert done.progress == 100

    after = registry.update(
        "job-1",
        {"phase": JobPhase.ERROR, "message": "late", "error": "late", "stats": {"late": 1}},
        log="late log",
    )

    assert after.phase is JobPhase.COMPLETE
    assert after.message == "Done"
    assert after.error is None
    assert after.stats == {"late": 1}
    assert after.logs[-1] == "late log"


def test_cancel_is_terminal_without_full_progress(registry: SessionRegistry) -> None:
    registry.create(JobKind.CORRECTION, job_id="job-1")
    registry.update("job-1", {"phase": JobPhase.RUNNING, "progress": 30})

    session = registry.cancel("job-1")

    assert session.cancelled
    assert session.phase is JobPhase.COMPLETE
    assert session.progress == 30
    assert session.message == CANCELLED_MESSAGE
    assert registry.is_cancelled("job-1")
    assert registry.is_cancelled("unknown")
    assert registry.cancel("unknown") is None


def test_results_and_artifacts_stay_out_of_snapshots(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    assert registry.set_result("job-1", b"xlsx")
    assert registry.set_artifact("job-1", "failed_rows.csv", b"a,b")
    assert not registry.set_result("missing", b"x")

    snapshot = registry.snapshot("job-1")
    assert snapshot["has_result"] is True
    assert b"xlsx" not in repr(snapshot).encode()
    assert registry.get_result("job-1") == b"xlsx"
    assert registry.get_artifact("job-1", "failed_rows.csv") == b"a,b"
    assert registry.get_artifact("job-1", "other") is None


def test_sweep_evicts_idle_terminal_sessions_only() -> None:
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60.0, clock=clock)
    registry.create(JobKind.IMPORT, job_id="done")
    registry.create(JobKind.IMPORT, job_id="running")
    registry.set_result("done", b"data")
    registry.update("done", {"phase": JobPhase.COMPLETE})
    registry.update("running", {"phase": JobPhase.RUNNING})

    clock.now += 30
    assert registry.sweep() == []

    clock.now += 31
    assert registry.sweep() == ["done"]
    assert registry.get("done") is None
    assert registry.get_result("done") is None
    assert registry.get("running") is not None


def test_invalid_ttl() -> None:
    with pytest.raises(ValueError):
        SessionRegistry(ttl_seconds=0)


def test_list_sessions_filters_and_orders_newest_first() -> None:
    clock = FakeClock()
    registry = SessionRegistry(ttl_seconds=60.0, clock=clock)
    for index, (kind, owner) in enumerate(
        [
            (JobKind.IMPORT, "alice"),
            (JobKind.CORRECTION, "alice"),
            (JobKind.IMPORT, "bob"),
            (JobKind.IMPORT, "alice"),
        ]
    ):
        clock.now += 1
        registry.create(kind, job_id=f"job-{index}", owner_id=owner)

    listed = registry.list_sessions(owner_id="alice", kind=JobKind.IMPORT)
    assert [summary.id for summary in listed] == ["job-3", "job-0"]
    assert [summary.id for summary in registry.list_sessions(limit=2)] == ["job-3", "job-2"]
    assert registry.list_sessions(limit=0) == []


def test_watch_counts_open_streams(registry: SessionRegistry) -> None:
    with registry.watch("job-1"):
        with registry.watch("job-1"):
            assert registry.watcher_count("job-1") == 2
        with registry.watch("job-2"):
            assert registry.watcher_count() == 2
    assert registry.watcher_count("job-1") == 0
    assert registry.watcher_count() == 0


def test_concurrent_updates_keep_every_log_and_stat(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    def push(index: int) -> None:
        registry.update("job-1", {"stats": {f"k{index}": index}}, log=str(index))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(push, range(200)))

    session = registry.get("job-1")
    assert sorted(session.logs, key=int) == [str(index) for index in range(200)]
    assert session.stats == {f"k{index}": index for index in range(200)}
