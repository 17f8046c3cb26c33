"""Pydantic request models for FastAPI endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from server.utils import (
    MAX_MESSAGE_CHARS,
    MAX_REQUEST_ATTEMPTS,
    MAX_REQUEST_TIMEOUT_MS,
    MAX_SYSTEM_PROMPT_CHARS,
    MAX_TOTAL_CHARS,
)


class ChatMessageItem(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content cannot be empty")
        return value


class ChatRequest(BaseModel):
    messages: List[ChatMessageItem] = Field(..., min_length=1)
    system_prompt: Optional[str] = Field(None, max_length=MAX_SYSTEM_PROMPT_CHARS)
    model: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0, le=MAX_REQUEST_TIMEOUT_MS)
    max_attempts: Optional[int] = Field(None, ge=1, le=MAX_REQUEST_ATTEMPTS)

    @model_validator(mode="after")
    def validate_total_length(self):
        total = sum(len(m.content) for m in self.messages)
        if total > MAX_TOTAL_CHARS:
            raise ValueError(f"total content length exceeds maximum ({MAX_TOTAL_CHARS} chars)")
        return self

    def message_dicts(self) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]
