"""FastAPI dependencies for authentication, the model catalog and orchestrator access."""

import os

from fastapi import Header, HTTPException, Request, status

from server.utils import redact_sensitive_headers
from utils.logger import get_logger

logger = get_logger(__name__)


async def get_api_key(request: Request, x_api_key: str | None = Header(None)):
    """Validate API key from X-API-Key header."""
    valid_keys_str = os.getenv("API_KEYS", "")
    request_id = getattr(request.state, "request_id", "unknown")
    redacted_headers = redact_sensitive_headers(dict(request.headers))

    if not valid_keys_str:
        logger.error(
            "API authentication not configured",
            extra={"extra_fields": {"request_id": request_id, "headers": redacted_headers}},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API authentication not configured",
        )

    valid_keys = [k.strip() for k in valid_keys_str.split(",") if k.strip()]

    if not x_api_key or x_api_key not in valid_keys:
        logger.warning(
            "API authentication failed",
            extra={"extra_fields": {"request_id": request_id, "headers": redacted_headers}},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key"
        )

    return x_api_key


def get_config():
    """Dependency to get the process configuration (singleton pattern)."""
    from config.config import Config

    if not hasattr(get_config, "_instance"):
        get_config._instance = Config()
    return get_config._instance


def get_catalog():
    """Dependency to get the model catalog (singleton pattern)."""
    if not hasattr(get_catalog, "_instance"):
        get_catalog._instance = get_config().load_catalog()
    return get_catalog._instance


def get_orchestrator():
    """Dependency to get orchestrator instance (singleton pattern)."""
    from api.anthropic_client import AnthropicChatClient
    from orchestrator.fallback_orchestrator import FallbackOrchestrator

    if not hasattr(get_orchestrator, "_instance"):
        config = get_config()
        problems = config.validate()
        if problems:
            logger.error(
                "Model provider not configured",
                extra={"extra_fields": {"problems": problems}},
            )
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Model provider not configured",
            )
        catalog = get_catalog()
        fallback_config = config.fallback_config(catalog)
        client = AnthropicChatClient(
            api_key=config.ANTHROPIC_API_KEY,
            base_url=config.ANTHROPIC_BASE_URL,
            default_system_prompt=config.DEFAULT_SYSTEM_PROMPT,
        )
        get_orchestrator._instance = FallbackOrchestrator(
            client,
            config=fallback_config,
            catalog=catalog,
            default_model=config.default_model(catalog, fallback_config),
        )
        logger.info(
            "Fallback orchestrator initialized",
            extra={
                "extra_fields": {
                    "ladder": list(fallback_config.ladder),
                    "timeout_ms": fallback_config.timeout_ms,
                    "max_attempts": fallback_config.max_attempts,
                }
            },
        )
    return get_orchestrator._instance
