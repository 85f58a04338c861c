from __future__ import annotations

import asyncio
import json

from schemas.internal.jobs import JobKind, JobPhase
from sessions.registry import SessionRegistry
from sessions.runner import JobRunner
from sessions.stream import ProgressStream, format_sse


def test_crashed_job_ends_in_error(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    async def crash() -> None:
        registry.update("job-1", {"phase": JobPhase.RUNNING})
        raise RuntimeError("disk full")

    async def main() -> None:
        runner = JobRunner(registry)
        runner.submit("job-1", crash())
        await runner.join()
        assert runner.active == 0

    asyncio.run(main())

    session = registry.get("job-1")
    assert session.phase is JobPhase.ERROR
    assert session.message == "Error: disk full"
    assert session.error == "disk full"
    assert session.logs[-1] == "Error: disk full"


def test_shutdown_interrupts_running_jobs(registry: SessionRegistry) -> None:
    registry.create(JobKind.CORRECTION, job_id="job-1")

    async def forever() -> None:
        await asyncio.sleep(60)

    async def main() -> None:
        runner = JobRunner(registry)
        runner.submit("job-1", forever())
        await asyncio.sleep(0)
        await runner.shutdown()

    asyncio.run(main())

    session = registry.get("job-1")
    assert session.phase is JobPhase.ERROR
    assert session.message == "Job interrupted"


def test_format_sse_frame() -> None:
    frame = format_sse({"message": "Terminé", "progress": 100})
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: ") :]) == {"message": "Terminé", "progress": 100}


async def _collect(stream: ProgressStream) -> list[dict]:
    return [json.loads(frame[len("data: ") :]) async for frame in stream]


def test_stream_ends_after_terminal_snapshot(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")
    registry.update("job-1", {"phase": JobPhase.RUNNING, "progress": 50})

    async def main() -> list[dict]:
        stream = ProgressStream(registry, "job-1", interval=0.01)
        frames = []
        async for frame in stream:
            assert registry.watcher_count("job-1") == 1
            frames.append(json.loads(frame[len("data: ") :]))
            registry.update("job-1", {"phase": JobPhase.COMPLETE})
        return frames

    frames = asyncio.run(main())

    assert [frame["phase"] for frame in frames] == ["running", "complete"]
    assert frames[-1]["progress"] == 100
    assert registry.watcher_count() == 0


def test_stream_stops_on_disconnect_and_missing_session(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    async def disconnected() -> bool:
        return True

    assert asyncio.run(
        _collect(ProgressStream(registry, "job-1", is_disconnected=disconnected))
    ) == []
    assert asyncio.run(_collect(ProgressStream(registry, "missing"))) == []
    assert registry.watcher_count() == 0


def test_closing_the_generator_releases_the_watcher(registry: SessionRegistry) -> None:
    registry.create(JobKind.IMPORT, job_id="job-1")

    async def main() -> None:
        frames = ProgressStream(registry, "job-1", interval=0.01).frames()
        await frames.__anext__()
        assert registry.watcher_count("job-1") == 1
        await frames.aclose()

    asyncio.run(main())
    assert registry.watcher_count("job-1") == 0
