from fastapi import APIRouter, Depends

from core.config import Settings, get_settings

router = APIRouter()


@router.get("/config", response_model=Settings, tags=["System"])
async def get_configuration(settings: Settings = Depends(get_settings)):
    """Effective runtime configuration; the LangSmith key is never included."""
    return settings


@router.get("/config/features", tags=["System"])
async def get_features(settings: Settings = Depends(get_settings)) -> dict[str, bool]:
    """Whether correction, embeddings, RAG and tracing can run."""
    return settings.features()
