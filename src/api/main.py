from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.actions import config, health, jobs, rag
from core.config import get_settings
from sessions.registry import SessionRegistry
from sessions.runner import JobRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    registry = SessionRegistry(settings.session_ttl_seconds)
    runner = JobRunner(registry)
    app.state.registry = registry
    app.state.runner = runner
    sweeper = asyncio.create_task(registry.run_sweeper(settings.session_sweep_interval))
    logger.info("Session sweeper started (ttl=%ss)", settings.session_ttl_seconds)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await runner.shutdown()


app = FastAPI(title="Question Bank API", lifespan=lifespan)

# Fixed prefixes first; the jobs router matches /{collection}.
app.include_router(health.router)
app.include_router(config.router)
app.include_router(rag.router)
app.include_router(jobs.router)
