from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ModelIdentifier = str

DEFAULT_FALLBACK_LADDER: tuple[ModelIdentifier, ...] = (
    "claude-sonnet-4-20250514",  # primary, best balance
    "claude-3-5-sonnet-20241022",  # reliable
    "claude-3-haiku-20240307",  # fast and cheap
    "claude-opus-4-1-20250805",  # premium, last resort
)
DEFAULT_TIMEOUT_MS = 45000
DEFAULT_MAX_ATTEMPTS = 4


class ErrorClass(str, Enum):
    OVERLOAD = "overload"
    TIMEOUT = "timeout"
    OTHER = "other"


class FallbackReason(str, Enum):
    OVERLOADED = "overloaded"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    ERROR = "error"


class NextAction(str, Enum):
    FALLBACK = "fallback"
    STOP = "stop"


class StopReason(str, Enum):
    NON_RECOVERABLE = "non_recoverable"
    MAX_ATTEMPTS = "max_attempts"
    LADDER_EXHAUSTED = "ladder_exhausted"
    PARTIAL_CONTENT = "partial_content"


@dataclass(frozen=True)
class FallbackConfig:
    ladder: tuple[ModelIdentifier, ...] = DEFAULT_FALLBACK_LADDER
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self):
        ladder = tuple(self.ladder)
        if not ladder:
            raise ValueError("Fallback ladder must contain at least one model")
        if len(set(ladder)) != len(ladder):
            raise ValueError(f"Fallback ladder contains duplicate models: {list(ladder)}")
        if int(self.timeout_ms) <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")
        if int(self.max_attempts) < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        object.__setattr__(self, "ladder", ladder)

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def contains(self, model: ModelIdentifier) -> bool:
        return model in self.ladder

    def next_model(self, current: ModelIdentifier) -> ModelIdentifier | None:
        if current not in self.ladder:
            return None
        idx = self.ladder.index(current)
        if idx + 1 >= len(self.ladder):
            return None
        return self.ladder[idx + 1]


@dataclass(frozen=True)
class AttemptRecord:
    model: ModelIdentifier  # model switched to
    attempt: int  # attempt number of that model
    reason: FallbackReason | None
    original_model: ModelIdentifier
    failed_model: ModelIdentifier | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "attempt": self.attempt,
            "reason": self.reason.value if self.reason else None,
            "original_model": self.original_model,
            "failed_model": self.failed_model,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class FallbackDecision:
    action: NextAction
    next_model: ModelIdentifier | None
    reason: str
    details: dict[str, Any] = field(default_factory=dict)
