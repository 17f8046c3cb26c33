from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from orchestrator.fallback_types import AttemptRecord

FinishReason = Optional[Literal["stop", "length", "tool", "content_filter", "error"]]

_FINISH_REASON_MAP = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool",
    "refusal": "content_filter",
}


def normalize_finish_reason(stop_reason: str | None) -> FinishReason:
    if stop_reason is None:
        return None
    return _FINISH_REASON_MAP.get(stop_reason, None)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0 and (self.prompt_tokens > 0 or self.completion_tokens > 0):
            object.__setattr__(self, "total_tokens", self.prompt_tokens + self.completion_tokens)

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Completion:
    """What a chat client returns for one non-streaming call."""

    text: str
    model: str
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: FinishReason = None


@dataclass(frozen=True)
class GenerationResult:
    request_id: str
    text: str
    model: str
    attempts: int
    latency_ms: int
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: FinishReason = None
    fallback: AttemptRecord | None = None
    fallback_history: tuple[AttemptRecord, ...] = ()
    timestamp: str = field(default_factory=_utc_timestamp)

    @property
    def used_fallback(self) -> bool:
        return self.fallback is not None

    @property
    def original_model(self) -> str:
        return self.fallback.original_model if self.fallback else self.model

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "text": self.text if len(self.text) <= 200 else self.text[:200] + "...",
            "model": self.model,
            "attempts": self.attempts,
            "latency_ms": self.latency_ms,
            "token_usage": self.token_usage.to_dict(),
            "finish_reason": self.finish_reason,
            "fallback": self.fallback.to_dict() if self.fallback else None,
            "fallback_history": [r.to_dict() for r in self.fallback_history],
            "timestamp": self.timestamp,
        }
