"""Model catalog listing endpoint."""

from fastapi import APIRouter, Depends

from orchestrator.fallback_orchestrator import FallbackOrchestrator
from orchestrator.model_catalog import ModelCatalog
from server.dependencies import get_api_key, get_catalog, get_orchestrator
from server.schemas.responses import ModelInfoDTO, ModelListResponseDTO

router = APIRouter(prefix="/v1", tags=["Models"])


@router.get("/models", response_model=ModelListResponseDTO)
async def list_models(
    api_key: str = Depends(get_api_key),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
    catalog: ModelCatalog = Depends(get_catalog),
):
    """List catalog models and the active fallback ladder."""
    config = orchestrator.config
    default_model = orchestrator.default_model
    if not config.contains(default_model):
        default_model = config.ladder[0]

    return ModelListResponseDTO(
        default_model=default_model,
        fallback_ladder=list(config.ladder),
        timeout_ms=config.timeout_ms,
        max_attempts=config.max_attempts,
        models=[
            ModelInfoDTO(**info.to_dict(), in_fallback_ladder=config.contains(info.model))
            for info in catalog.list_models()
        ],
    )
