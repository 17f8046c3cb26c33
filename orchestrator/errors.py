"""Exceptions raised by the fallback orchestrator."""

from orchestrator.fallback_types import AttemptRecord, ErrorClass, StopReason


class AttemptTimeoutError(TimeoutError):
    """A single model attempt did not answer within the per-attempt deadline."""

    def __init__(self, model: str, timeout_ms: int):
        super().__init__(f"Request to {model} timed out after {timeout_ms}ms")
        self.model = model
        self.timeout_ms = timeout_ms


class FallbackFailedError(Exception):
    """
    A generation request ended in the Failed state.

    The message is the last underlying error's message and the underlying
    exception is chained as ``__cause__``. Any fallback transitions that
    happened before the failure are kept on ``fallback_history``.
    """

    def __init__(
        self,
        last_error: BaseException,
        *,
        error_class: ErrorClass,
        stop_reason: StopReason,
        model: str,
        attempts: int,
        fallback_history: list[AttemptRecord] | None = None,
    ):
        super().__init__(str(last_error) or type(last_error).__name__)
        self.last_error = last_error
        self.error_class = error_class
        self.stop_reason = stop_reason
        self.model = model
        self.attempts = attempts
        self.fallback_history = list(fallback_history or [])

    @property
    def fallback(self) -> AttemptRecord | None:
        return self.fallback_history[-1] if self.fallback_history else None

    @property
    def recoverable(self) -> bool:
        return self.error_class != ErrorClass.OTHER

    def to_dict(self) -> dict:
        return {
            "message": str(self),
            "error_class": self.error_class.value,
            "stop_reason": self.stop_reason.value,
            "model": self.model,
            "attempts": self.attempts,
            "fallback_history": [r.to_dict() for r in self.fallback_history],
        }
