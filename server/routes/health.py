"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from server.dependencies import get_catalog, get_config
from server.schemas.responses import HealthResponseDTO
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health", response_model=HealthResponseDTO)
async def health_check():
    """Report whether the model catalog loads and the provider key is configured."""
    try:
        catalog = get_catalog()
        config = get_config()
    except Exception as exc:
        logger.error("Health check failed", extra={"extra_fields": {"error": str(exc)}})
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "timestamp": _timestamp(), "error": str(exc)},
            headers=NO_CACHE_HEADERS,
        )

    body = HealthResponseDTO(
        status="healthy",
        timestamp=_timestamp(),
        version="1.0.0",
        services={
            "model_catalog": f"{len(catalog.list_models())} models",
            "anthropic": "configured" if config.ANTHROPIC_API_KEY else "missing_api_key",
        },
    )
    return JSONResponse(content=body.model_dump(), headers=NO_CACHE_HEADERS)
