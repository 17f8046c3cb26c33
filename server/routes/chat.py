"""Chat endpoints: one-shot and server-sent-events streaming generation."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from orchestrator.errors import FallbackFailedError
from orchestrator.fallback_orchestrator import FallbackOrchestrator
from orchestrator.model_catalog import ModelCatalog
from server.dependencies import get_api_key, get_catalog, get_orchestrator
from server.schemas.requests import ChatRequest
from server.schemas.responses import ChatResponseDTO
from server.utils import build_request_config, ensure_model_in_ladder
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _failure_detail(exc: FallbackFailedError, catalog: ModelCatalog) -> dict:
    detail = exc.to_dict()
    if exc.fallback is not None:
        detail["fallback_explanation"] = catalog.explain_fallback(exc.fallback)
    return detail


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


@router.post("/chat", response_model=ChatResponseDTO)
async def chat(
    request: ChatRequest,
    http_request: Request,
    api_key: str = Depends(get_api_key),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
    catalog: ModelCatalog = Depends(get_catalog),
):
    """Generate a full response, substituting models on overload or timeout."""
    config = build_request_config(orchestrator.config, request.timeout_ms, request.max_attempts)
    ensure_model_in_ladder(request.model, config)
    request_id = getattr(http_request.state, "request_id", "unknown")

    try:
        result = await orchestrator.generate(
            request.message_dicts(),
            system_prompt=request.system_prompt,
            starting_model=request.model,
            config=config,
        )
    except FallbackFailedError as exc:
        logger.warning(
            "Chat request failed",
            extra={
                "extra_fields": {
                    "request_id": request_id,
                    "model": exc.model,
                    "attempts": exc.attempts,
                    "stop_reason": exc.stop_reason.value,
                    "error_class": exc.error_class.value,
                }
            },
        )
        raise HTTPException(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE
                if exc.recoverable
                else status.HTTP_502_BAD_GATEWAY
            ),
            detail=_failure_detail(exc, catalog),
        ) from exc

    return ChatResponseDTO.from_generation_result(result, catalog)


@router.post("/chat/stream")
async def chat_stream(
    request: ChatRequest,
    http_request: Request,
    api_key: str = Depends(get_api_key),
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
    catalog: ModelCatalog = Depends(get_catalog),
):
    """Stream a response as server-sent events, one StreamEvent per ``data:`` line."""
    config = build_request_config(orchestrator.config, request.timeout_ms, request.max_attempts)
    ensure_model_in_ladder(request.model, config)
    request_id = getattr(http_request.state, "request_id", "unknown")
    messages = request.message_dicts()

    async def event_source():
        events = orchestrator.generate_stream(
            messages,
            system_prompt=request.system_prompt,
            starting_model=request.model,
            config=config,
        )
        try:
            async for event in events:
                data = event.to_dict()
                if event.type == "fallback" and event.fallback is not None:
                    data["explanation"] = catalog.explain_fallback(event.fallback)
                yield _sse(data)
        except Exception as exc:
            # the orchestrator reports model failures as events; this is a bug path
            logger.exception(
                "Streaming chat aborted",
                extra={"extra_fields": {"request_id": request_id, "error": str(exc)}},
            )
            yield _sse({"type": "error", "content": "", "is_complete": True, "error": str(exc)})
        finally:
            await events.aclose()

    return StreamingResponse(event_source(), media_type="text/event-stream", headers=SSE_HEADERS)
