"""Shared utilities for FastAPI routes."""

from collections.abc import Mapping

from fastapi import HTTPException, status

from orchestrator.fallback_types import FallbackConfig

MAX_MESSAGE_CHARS = 50000
MAX_TOTAL_CHARS = 500000
MAX_SYSTEM_PROMPT_CHARS = 50000
MAX_REQUEST_TIMEOUT_MS = 300000
MAX_REQUEST_ATTEMPTS = 10
SENSITIVE_HEADERS = {"x-api-key", "authorization"}


def build_request_config(
    base: FallbackConfig, timeout_ms: int | None = None, max_attempts: int | None = None
) -> FallbackConfig:
    """Apply per-request overrides on top of the server's FallbackConfig."""
    if timeout_ms is None and max_attempts is None:
        return base
    return FallbackConfig(
        ladder=base.ladder,
        timeout_ms=timeout_ms if timeout_ms is not None else base.timeout_ms,
        max_attempts=max_attempts if max_attempts is not None else base.max_attempts,
    )


def ensure_model_in_ladder(model: str | None, config: FallbackConfig) -> None:
    if model is None:
        return
    if not config.contains(model):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"model must be one of: {', '.join(config.ladder)}",
        )


def redact_sensitive_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Redact auth-bearing headers before logging.
    """
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS and value:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted
