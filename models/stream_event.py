"""
StreamEvent - one item of a streamed generation.

A stream is a sequence of zero or more ``content`` events, at most one
``fallback`` event (always ahead of the substituted model's first content),
and exactly one terminal event: ``complete`` on success or ``error`` on
failure. Both terminal kinds carry ``is_complete=True``.
"""

from dataclasses import dataclass
from typing import Any, Literal

from orchestrator.fallback_types import AttemptRecord

EventType = Literal["content", "fallback", "complete", "error"]


@dataclass(frozen=True)
class StreamEvent:
    type: EventType
    content: str = ""
    is_complete: bool = False
    error: str | None = None
    model: str | None = None
    attempts: int = 0
    fallback: AttemptRecord | None = None
    fallback_history: tuple[AttemptRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    @classmethod
    def content_event(cls, text: str, *, model: str, attempts: int) -> "StreamEvent":
        return cls(type="content", content=text, model=model, attempts=attempts)

    @classmethod
    def fallback_event(
        cls, record: AttemptRecord, history: tuple[AttemptRecord, ...]
    ) -> "StreamEvent":
        return cls(
            type="fallback",
            model=record.model,
            attempts=record.attempt,
            fallback=record,
            fallback_history=history,
        )

    @classmethod
    def complete_event(
        cls, *, model: str, attempts: int, history: tuple[AttemptRecord, ...] = ()
    ) -> "StreamEvent":
        return cls(
            type="complete",
            is_complete=True,
            model=model,
            attempts=attempts,
            fallback=history[-1] if history else None,
            fallback_history=history,
        )

    @classmethod
    def error_event(
        cls,
        message: str,
        *,
        model: str,
        attempts: int,
        history: tuple[AttemptRecord, ...] = (),
    ) -> "StreamEvent":
        return cls(
            type="error",
            is_complete=True,
            error=message,
            model=model,
            attempts=attempts,
            fallback=history[-1] if history else None,
            fallback_history=history,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "content": self.content,
            "is_complete": self.is_complete,
            "model": self.model,
            "attempts": self.attempts,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.fallback is not None:
            data["fallback"] = self.fallback.to_dict()
            data["fallback_history"] = [r.to_dict() for r in self.fallback_history]
        return data
