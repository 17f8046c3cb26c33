"""Pydantic response models (DTOs) for FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class TokenUsageDTO(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class AttemptRecordDTO(BaseModel):
    model: str
    attempt: int
    reason: str | None = None
    original_model: str
    failed_model: str | None = None
    error_message: str | None = None

    @classmethod
    def from_record(cls, record):
        return cls(**record.to_dict())


class ChatResponseDTO(BaseModel):
    request_id: str
    text: str
    model: str
    attempts: int
    latency_ms: int
    token_usage: TokenUsageDTO
    finish_reason: str | None = None
    fallback: AttemptRecordDTO | None = None
    fallback_history: list[AttemptRecordDTO] = Field(default_factory=list)
    fallback_explanation: str | None = None
    timestamp: str

    @classmethod
    def from_generation_result(cls, result, catalog=None):
        """Convert GenerationResult to DTO."""
        explanation = None
        if result.fallback is not None and catalog is not None:
            explanation = catalog.explain_fallback(result.fallback)

        return cls(
            request_id=result.request_id,
            text=result.text,
            model=result.model,
            attempts=result.attempts,
            latency_ms=result.latency_ms,
            token_usage=TokenUsageDTO(**result.token_usage.to_dict()),
            finish_reason=result.finish_reason,
            fallback=AttemptRecordDTO.from_record(result.fallback) if result.fallback else None,
            fallback_history=[AttemptRecordDTO.from_record(r) for r in result.fallback_history],
            fallback_explanation=explanation,
            timestamp=result.timestamp,
        )


class ModelInfoDTO(BaseModel):
    model: str
    display_name: str
    description: str
    cost_tier: str
    max_tokens: int
    strengths: list[str] = Field(default_factory=list)
    best_for: list[str] = Field(default_factory=list)
    in_fallback_ladder: bool = False


class ModelListResponseDTO(BaseModel):
    default_model: str
    fallback_ladder: list[str]
    timeout_ms: int
    max_attempts: int
    models: list[ModelInfoDTO]


class HealthResponseDTO(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    services: dict[str, Any] = Field(default_factory=dict)
