from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_registry
from sessions.registry import SessionRegistry

router = APIRouter()

class HealthResponse(BaseModel):
    status: str
    version: str
    sessions: int
    active_streams: int

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    """Check the health of the API."""
    try:
        app_version = version("qbank")
    except PackageNotFoundError:
        app_version = "unknown"
    return HealthResponse(
        status="ok",
        version=app_version,
        sessions=len(registry),
        active_streams=registry.watcher_count(),
    )
